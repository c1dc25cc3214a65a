"""
Structured Output Exceptions

Raised while turning raw model text into structured values. None of these
are retried or routed to a fallback provider.

Author: System Architect
Date: 2025-12-08
"""

from tutor_llm.core.exceptions.base import TutorBaseError


class OutputError(TutorBaseError):
    """Base exception for output extraction errors."""
    pass


class TruncatedOutputError(OutputError):
    """
    Raised when the model output was cut off before the JSON value closed.

    Common causes:
    - max_output_tokens too small for the requested content
    - Too many items requested in one call
    """

    def __init__(self, message: str, conversation_id: str | None = None, details: dict | None = None):
        super().__init__(message, conversation_id=conversation_id, details=details)
        self.details.setdefault(
            "suggestion", "Reduce the requested output size (for example fewer questions)"
        )


class MalformedOutputError(OutputError):
    """
    Raised when the output looks complete but is not valid JSON.

    Common causes:
    - Prose mixed into the JSON body
    - Trailing commas or single-quoted strings
    """
    pass


class SchemaValidationError(OutputError):
    """
    Raised when parsed output does not satisfy the expected schema.

    ``field`` names the offending field (a dotted path for nested values).
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        conversation_id: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, conversation_id=conversation_id, details=details)
        self.field = field
        if field is not None:
            self.details["field"] = field
