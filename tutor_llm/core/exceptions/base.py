"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.

Author: System Architect
Date: 2025-12-08
"""

from typing import Any


class TutorBaseError(Exception):
    """
    Base exception for all tutoring LLM layer errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling
    - Conversation ID correlation
    - Structured error logging

    Attributes:
        message: Error message
        conversation_id: Conversation the error belongs to (if any)
        details: Additional error details (dict); ``provider`` is set by
            every provider-originated error

    Example:
        raise ProviderUnavailableError(
            "Gemini returned 503",
            details={"provider": "gemini", "status_code": 503}
        )
    """

    def __init__(
        self, message: str, conversation_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.conversation_id = conversation_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    @property
    def provider(self) -> str | None:
        """Identity of the provider the error is attributed to, if known."""
        return self.details.get("provider")

    @property
    def suggestion(self) -> str | None:
        return self.details.get("suggestion")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/transport payloads.

        Returns:
            Dict with error_type, message, conversation_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "conversation_id": self.conversation_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "TutorBaseError":
        """
        Add a suggestion to help callers recover from the error.

        Returns:
            Self (for method chaining)
        """
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "TutorBaseError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        conversation_str = f", conversation_id='{self.conversation_id}'" if self.conversation_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{conversation_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        conversation_id: str | None = None,
        **details
    ) -> "TutorBaseError":
        """
        Create an error of this class from another exception.

        Useful for wrapping third-party SDK exceptions with additional context.

        Example:
            >>> try:
            ...     await client.messages.create(...)
            ... except anthropic.APIConnectionError as e:
            ...     raise ProviderUnavailableError.from_exception(e, provider="claude") from e
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, conversation_id=conversation_id, details=error_details)


# Configuration exception (kept here as it's fundamental)
class ConfigurationError(TutorBaseError):
    """Raised when configuration is invalid or missing."""
    pass
