"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the tutoring LLM layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management

Author: System Architect
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of every log event.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    - SEQUENCE: Numeric order (0.0, 1.0, 2.0) or alphabetic prefix (P, X)
    - DESCRIPTIVE_NAME: Clear, uppercase description with underscores

    Examples:
        logger.info("Fallback engaged", stage=Stage.FALLBACK)
    """

    # Generation lifecycle (sequential)
    INITIALIZATION = "0.0_INITIALIZATION"
    INPUT_VALIDATION = "1.0_INPUT_VALIDATION"
    PROMPT_BUILD = "2.0_PROMPT_BUILD"
    PROVIDER_SELECTION = "3.0_PROVIDER_SELECTION"
    PROVIDER_CALL = "4.0_PROVIDER_CALL"
    FALLBACK = "4.1_FALLBACK"
    OUTPUT_EXTRACTION = "5.0_OUTPUT_EXTRACTION"
    DOMAIN_VALIDATION = "5.1_DOMAIN_VALIDATION"
    COMPLETION = "6.0_COMPLETION"

    # Streaming sessions
    SESSION_START = "S.1_SESSION_START"
    SESSION_STREAMING = "S.2_SESSION_STREAMING"
    SESSION_TERMINAL = "S.3_SESSION_TERMINAL"
    SESSION_CANCEL = "S.4_SESSION_CANCEL"
    SESSION_PERSIST = "S.5_SESSION_PERSIST"

    # Cross-cutting concerns
    PROVIDER_ERROR = "P_PROVIDER_ERROR"
    TRANSPORT = "T_TRANSPORT"
    LOGGING = "L_LOGGING_OPERATIONS"


# ============================================================================
# LLM Providers
# ============================================================================


class LLMProvider(str, Enum):
    """
    Supported LLM backends.

    ``fake`` is a scripted local backend used for demos and tests.
    """

    GEMINI = "gemini"
    CLAUDE = "claude"
    OPENAI = "openai"
    FAKE = "fake"


# ============================================================================
# Output Shapes
# ============================================================================


class ExpectedShape(str, Enum):
    """
    Shape the caller expects the generated text to take.

    FREE_TEXT: returned as-is (trimmed)
    JSON_OBJECT: must parse as a JSON object
    JSON_ARRAY: must parse as a JSON array
    """

    FREE_TEXT = "free_text"
    JSON_OBJECT = "json_object"
    JSON_ARRAY = "json_array"


# ============================================================================
# Session States
# ============================================================================


class SessionState(str, Enum):
    """
    Streaming session lifecycle.

    PENDING -> STREAMING -> COMPLETED | FAILED | CANCELLED
    PENDING -> FAILED | CANCELLED
    """

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED)


# ============================================================================
# Chat Roles
# ============================================================================


class MessageRole(str, Enum):
    """Roles for conversation turns."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# ============================================================================
# Quiz Question Types
# ============================================================================


class QuestionType(str, Enum):
    """Question types the quiz pipeline can generate."""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    FREE_RESPONSE = "FREE_RESPONSE"


# ============================================================================
# Generation Defaults
# ============================================================================

# Quiz generation
QUIZ_DEFAULT_NUM_QUESTIONS = 10
QUIZ_MULTIPLE_CHOICE_SHARE = 0.7  # share of MC questions when both types are requested
QUIZ_TEMPERATURE = 0.7
QUIZ_MAX_OUTPUT_TOKENS = 3000
QUIZ_OPTION_LABELS = ("A", "B", "C", "D")

# Grading
GRADING_TEMPERATURE = 0.3
GRADING_MAX_OUTPUT_TOKENS = 500
GRADING_DEFAULT_CONFIDENCE = 0.8
GRADING_CORRECT_THRESHOLD = 0.7  # score at or above this counts as correct

# Curriculum analysis and scheduling
CURRICULUM_ANALYSIS_TEMPERATURE = 0.5
CURRICULUM_ANALYSIS_MAX_OUTPUT_TOKENS = 2000
SCHEDULE_TEMPERATURE = 0.7
SCHEDULE_MAX_OUTPUT_TOKENS = 4000
SCHEDULE_SUGGESTIONS_MAX_OUTPUT_TOKENS = 1500
SCHEDULE_UNIT_GAP_DAYS = 1  # next unit starts one day after the previous ends

# Concept extraction
CONCEPTS_TEMPERATURE = 0.3
CONCEPTS_MAX_OUTPUT_TOKENS = 200

# Chat
CHAT_TEMPERATURE = 0.7
CHAT_HISTORY_LIMIT = 10  # most recent turns sent with each chat request

# Token estimation (used when a provider omits usage)
CHARS_PER_TOKEN = 4

# ============================================================================
# Transport Event Names
# ============================================================================

EVENT_MESSAGE_STREAM = "ai:message:stream"
EVENT_MESSAGE_COMPLETE = "ai:message:complete"
EVENT_ERROR = "ai:error"
