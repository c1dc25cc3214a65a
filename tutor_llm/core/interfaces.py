"""
Collaborator Interfaces

Abstract boundaries to the systems this layer consumes but does not own:
the relational store and the channel that reaches the browser. Hosts
provide concrete implementations; tests provide in-memory ones.
"""

from abc import ABC, abstractmethod

from tutor_llm.core.config.constants import MessageRole
from tutor_llm.llm_stream.models.conversation import ConversationRecord
from tutor_llm.llm_stream.models.generation import ProviderProfile, TokenUsage


class PersistenceGateway(ABC):
    """
    Access to stored conversations and provider profiles.

    Called only at the boundary of a completed exchange: once to load the
    conversation before generating, once per stored message afterwards and,
    when concept tagging is on, once to tag the exchange.
    """

    @abstractmethod
    async def load_conversation(self, conversation_id: str) -> ConversationRecord:
        """
        Load a conversation with its prior messages and tutoring context.

        Args:
            conversation_id: Conversation to load.

        Returns:
            ConversationRecord: Stored conversation (messages oldest first).
        """
        pass

    @abstractmethod
    async def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        usage: TokenUsage | None = None,
    ) -> None:
        """
        Store one message of a completed exchange.

        Args:
            conversation_id: Conversation the message belongs to.
            role: USER or ASSISTANT.
            content: Full message text.
            usage: Token usage (assistant messages only).
        """
        pass

    @abstractmethod
    async def get_provider_profiles(self) -> list[ProviderProfile]:
        """Return stored provider profiles (may be empty)."""
        pass

    @abstractmethod
    async def tag_concepts(self, conversation_id: str, concepts: list[str]) -> None:
        """Add concept tags to a conversation (duplicates are the store's to merge)."""
        pass


class TransportGateway(ABC):
    """Delivery of streaming output to whatever channel serves a conversation."""

    @abstractmethod
    async def deliver_token(self, conversation_id: str, token: str) -> None:
        pass

    @abstractmethod
    async def deliver_complete(self, conversation_id: str, full_text: str, usage: TokenUsage) -> None:
        pass

    @abstractmethod
    async def deliver_error(self, conversation_id: str, error_kind: str, message: str) -> None:
        pass
