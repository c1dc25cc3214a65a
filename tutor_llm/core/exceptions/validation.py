"""
Input Validation Exceptions

Author: System Architect
Date: 2025-12-08
"""

from tutor_llm.core.exceptions.base import TutorBaseError


class ValidationError(TutorBaseError):
    """Base exception for input validation errors."""

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


class InvalidInputError(ValidationError):
    """
    Raised when caller input is rejected before any provider call.

    Common causes:
    - Empty chat message
    - Message longer than MAX_MESSAGE_LENGTH
    - Missing conversation id
    - Quiz request with zero questions or no question types
    """
    pass
