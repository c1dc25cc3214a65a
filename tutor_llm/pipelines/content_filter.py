"""
Content Filter

Academic-integrity checks on chat traffic, applied to the student's message
before a session starts and to the tutor's finished reply before it is
stored.

STUDENT MESSAGE:
- Requests for a direct answer are allowed; the tutor prompt already steers
  the model back to guiding questions
- Pasted assignment text is allowed (flagged in the logs only)
- Inappropriate language is blocked

TUTOR REPLY:
- A reply that gives away a multiple choice answer, or contains
  inappropriate language, is flagged for review. When a replacement is
  available it is stored instead of the reply.

Streamed tokens have already reached the student by the time the reply is
checked, so the filter only decides what is persisted.
"""

import re
from re import Pattern

from pydantic import BaseModel

from tutor_llm.core.config.constants import Stage
from tutor_llm.core.logging import get_logger

logger = get_logger(__name__)

DIRECT_ANSWER_REQUEST_PATTERNS: list[Pattern] = [
    re.compile(r"give\s+me\s+the\s+answer", re.IGNORECASE),
    re.compile(r"what\s+is\s+the\s+answer", re.IGNORECASE),
    re.compile(r"tell\s+me\s+the\s+answer", re.IGNORECASE),
    re.compile(r"just\s+give\s+me", re.IGNORECASE),
    re.compile(r"solve\s+this\s+for\s+me", re.IGNORECASE),
    re.compile(r"do\s+this\s+for\s+me", re.IGNORECASE),
    re.compile(r"complete\s+this\s+for\s+me", re.IGNORECASE),
    re.compile(r"finish\s+this\s+for\s+me", re.IGNORECASE),
    re.compile(r"what\s+should\s+I\s+write", re.IGNORECASE),
    re.compile(r"write\s+this\s+for\s+me", re.IGNORECASE),
]

COPY_PASTE_PATTERNS: list[Pattern] = [
    re.compile(r"^question\s+\d+:", re.IGNORECASE),
    re.compile(r"^problem\s+\d+:", re.IGNORECASE),
    re.compile(r"^assignment\s+question", re.IGNORECASE),
    re.compile(r"select\s+the\s+correct\s+answer", re.IGNORECASE),
    re.compile(r"choose\s+all\s+that\s+apply", re.IGNORECASE),
]

INAPPROPRIATE_PATTERNS: list[Pattern] = [
    re.compile(r"\b(fuck|shit|damn|hell|ass|bitch)\b", re.IGNORECASE),
]

DIRECT_ANSWER_GIVEN_PATTERNS: list[Pattern] = [
    re.compile(r"the\s+answer\s+is\s+[A-D]\b", re.IGNORECASE),
    re.compile(r"the\s+correct\s+answer\s+is", re.IGNORECASE),
    re.compile(r"select\s+option\s+[A-D]\b", re.IGNORECASE),
    re.compile(r"choose\s+[A-D]\b", re.IGNORECASE),
]

COPY_PASTE_MIN_LENGTH = 500  # longer messages are treated as pasted

DIRECT_ANSWER_REDIRECT = (
    "I can see you're looking for an answer, but my goal is to help you learn! "
    "Let's work through this together. What have you tried so far?"
)
GUIDED_REPLY_REPLACEMENT = (
    "I apologize, but I should guide you to the answer rather than give it directly. "
    "Let me help you think through this step by step..."
)


class FilterResult(BaseModel):
    """Outcome of a content check."""

    allowed: bool = True
    reason: str | None = None
    severity: str | None = None
    flag_for_review: bool = False
    suggested_response: str | None = None


def _matches(patterns: list[Pattern], content: str) -> bool:
    return any(pattern.search(content) for pattern in patterns)


def filter_student_message(content: str) -> FilterResult:
    if _matches(DIRECT_ANSWER_REQUEST_PATTERNS, content):
        return FilterResult(
            reason="Student asking for direct answer",
            severity="low",
            suggested_response=DIRECT_ANSWER_REDIRECT,
        )

    if _matches(COPY_PASTE_PATTERNS, content) or len(content) > COPY_PASTE_MIN_LENGTH:
        return FilterResult(reason="Possible assignment question copy-paste", severity="low")

    if _matches(INAPPROPRIATE_PATTERNS, content):
        return FilterResult(
            allowed=False,
            reason="Inappropriate language detected",
            severity="high",
            flag_for_review=True,
        )

    return FilterResult()


def filter_tutor_reply(content: str) -> FilterResult:
    if _matches(DIRECT_ANSWER_GIVEN_PATTERNS, content):
        return FilterResult(
            allowed=False,
            reason="AI response contains direct answer",
            severity="critical",
            flag_for_review=True,
            suggested_response=GUIDED_REPLY_REPLACEMENT,
        )

    if _matches(INAPPROPRIATE_PATTERNS, content):
        return FilterResult(
            allowed=False,
            reason="Inappropriate content in AI response",
            severity="critical",
            flag_for_review=True,
        )

    return FilterResult()


def log_filter_result(result: FilterResult, source: str, conversation_id: str) -> None:
    if result.reason is None:
        return
    log = logger.warning if result.flag_for_review else logger.info
    log(
        "Content filter matched",
        stage=Stage.DOMAIN_VALIDATION,
        conversation_id=conversation_id,
        source=source,
        allowed=result.allowed,
        reason=result.reason,
        severity=result.severity,
    )
