"""Value objects and session state for the generation layer."""

from tutor_llm.llm_stream.models.conversation import (
    AssignmentContext,
    ConversationRecord,
    ConversationType,
    TutoringContext,
)
from tutor_llm.llm_stream.models.generation import (
    ChatMessage,
    GenerationRequest,
    GenerationResult,
    ProviderProfile,
    TokenUsage,
    estimate_tokens,
)
from tutor_llm.llm_stream.models.session import StreamingSession, Subscriber

__all__ = [
    "ChatMessage",
    "GenerationRequest",
    "GenerationResult",
    "ProviderProfile",
    "TokenUsage",
    "estimate_tokens",
    "ConversationType",
    "AssignmentContext",
    "TutoringContext",
    "ConversationRecord",
    "StreamingSession",
    "Subscriber",
]
