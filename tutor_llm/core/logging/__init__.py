"""Structured logging helpers."""

from tutor_llm.core.logging.logger import (
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
]
