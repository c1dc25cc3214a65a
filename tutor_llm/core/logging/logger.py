"""
Structured Logging Module using structlog

This module provides structured logging with:
- Conversation ID correlation across a streaming session
- Stage identifiers for execution flow
- JSON formatting for log aggregation
- Automatic redaction of credentials and student PII

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation
- Async-safe through context variables

Author: System Architect
Date: 2025-12-05
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from tutor_llm.core.config.settings import get_settings

# Context variable for the conversation being processed (task-local under asyncio)
conversation_id_ctx: ContextVar[str | None] = ContextVar("conversation_id", default=None)

_REDACTIONS = (
    (re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b"), "[EMAIL]"),
    (re.compile(r"\bsk-[a-zA-Z0-9_-]+\b"), "[REDACTED]"),  # OpenAI / Anthropic keys
    (re.compile(r"\bAIza[a-zA-Z0-9_-]+\b"), "[REDACTED]"),  # Google keys
    (re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"), "[PHONE]"),
)


def add_conversation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add the conversation ID from context to the log event.

    STAGE-L.1: Conversation ID injection
    """
    conversation_id = conversation_id_ctx.get()
    if conversation_id and "conversation_id" not in event_dict:
        event_dict["conversation_id"] = conversation_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact credentials and PII from string fields.

    STAGE-L.3: PII redaction

    Patterns redacted:
    - Email addresses -> [EMAIL]
    - API keys (sk-..., AIza...) -> [REDACTED]
    - Phone numbers -> [PHONE]

    Every string value is scrubbed, not just the event message.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            for pattern, replacement in _REDACTIONS:
                value = pattern.sub(replacement, value)
            event_dict[key] = value
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Upper-case the level name.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def stringify_stage(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Render ``Stage`` enum members as their plain value."""
    stage = event_dict.get("stage")
    if stage is not None and hasattr(stage, "value"):
        event_dict["stage"] = stage.value
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_conversation_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            stringify_stage,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage=Stage.PROVIDER_CALL)
    """
    return structlog.get_logger(name)


def set_conversation_id(conversation_id: str) -> None:
    """
    Bind a conversation ID to the current context.

    Session tasks call this on start so every log line they emit is correlated.
    """
    conversation_id_ctx.set(conversation_id)


def get_conversation_id() -> str | None:
    return conversation_id_ctx.get()


def clear_conversation_id() -> None:
    conversation_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Usage:
        log_stage(logger, Stage.FALLBACK, "Switching provider", provider="claude")
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=stage, **kwargs)
