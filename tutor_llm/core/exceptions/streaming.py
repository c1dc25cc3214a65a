"""
Streaming Session Exceptions

Author: System Architect
Date: 2025-12-08
"""

from tutor_llm.core.exceptions.base import TutorBaseError


class StreamingError(TutorBaseError):
    """
    Base exception for streaming session errors.

    Also used to wrap unexpected failures inside a session task so that the
    subscriber always receives a ``TutorBaseError`` through ``on_error``.
    """
    pass


class SendWhileBusyError(StreamingError):
    """
    Raised when a message is sent to a conversation that already has a
    pending or streaming generation.
    """

    def __init__(self, conversation_id: str, details: dict | None = None):
        super().__init__(
            "A response is already being generated for this conversation",
            conversation_id=conversation_id,
            details=details,
        )
        self.details.setdefault("suggestion", "Wait for the current response or cancel it")
