"""
Message Validators

Validates chat input before a streaming session is created.
"""

from tutor_llm.core.config.settings import get_settings
from tutor_llm.core.exceptions import InvalidInputError


class MessageValidator:
    """Validates conversation ids and chat message content."""

    def __init__(self, max_length: int | None = None):
        self.max_length = max_length or get_settings().chat.MAX_MESSAGE_LENGTH

    def validate_conversation_id(self, conversation_id: str) -> None:
        """Conversation id must be a non-blank string."""
        if not isinstance(conversation_id, str) or not conversation_id.strip():
            raise InvalidInputError("Conversation id cannot be empty", field="conversation_id")

    def validate_content(self, content: str) -> None:
        """Validate content is non-empty and within the configured size limit."""
        if not isinstance(content, str) or not content.strip():
            raise InvalidInputError("Message cannot be empty", field="content")

        if len(content) > self.max_length:
            raise InvalidInputError(
                f"Message too long (max {self.max_length} characters)",
                field="content",
                details={"length": len(content), "max_length": self.max_length},
            )

    def validate(self, conversation_id: str, content: str) -> None:
        self.validate_conversation_id(conversation_id)
        self.validate_content(content)
