"""
Core Module

Foundational components: configuration, logging, exceptions and the
collaborator interfaces.
"""

from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    OutputError,
    ProviderError,
    SendWhileBusyError,
    StreamingError,
    TutorBaseError,
    ValidationError,
)
from .logging import (
    clear_conversation_id,
    get_conversation_id,
    get_logger,
    log_stage,
    set_conversation_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_conversation_id",
    "get_conversation_id",
    "clear_conversation_id",
    "log_stage",
    "TutorBaseError",
    "ConfigurationError",
    "ProviderError",
    "OutputError",
    "StreamingError",
    "SendWhileBusyError",
    "ValidationError",
    "InvalidInputError",
]
