"""
Conversation Models

What the persistence collaborator hands back for a conversation: the prior
turns plus the tutoring context used to build the system prompt.
"""

from enum import Enum

from pydantic import BaseModel, Field

from tutor_llm.llm_stream.models.generation import ChatMessage


class ConversationType(str, Enum):
    GENERAL_HELP = "GENERAL_HELP"
    ASSIGNMENT_HELP = "ASSIGNMENT_HELP"
    CONCEPT_REVIEW = "CONCEPT_REVIEW"


class AssignmentContext(BaseModel):
    """The assignment a student is currently working on."""

    model_config = {"frozen": True}

    title: str
    questions_completed: int = Field(default=0, ge=0)
    total_questions: int = Field(default=0, ge=0)
    concepts: tuple[str, ...] = ()


class TutoringContext(BaseModel):
    """Student and class facts that shape the tutor's system prompt."""

    model_config = {"frozen": True}

    grade_level: str = "middle school"
    class_name: str | None = None
    subject: str | None = None
    struggling_concepts: tuple[str, ...] = ()
    mastered_concepts: tuple[str, ...] = ()
    assignment: AssignmentContext | None = None


class ConversationRecord(BaseModel):
    """A stored conversation as loaded from persistence (messages oldest first)."""

    model_config = {"frozen": True}

    conversation_id: str
    conversation_type: ConversationType = ConversationType.GENERAL_HELP
    context: TutoringContext = Field(default_factory=TutoringContext)
    messages: tuple[ChatMessage, ...] = ()
