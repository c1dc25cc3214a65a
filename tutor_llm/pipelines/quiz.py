"""
Quiz Generation Pipeline

Generates a quiz from curriculum text and enforces the quiz rules the model
cannot be trusted with:

    - exactly ``num_questions`` questions
    - only the requested question types
    - multiple choice: exactly four options labelled A-D, correct label among them
    - free response: a non-empty reference answer
    - ``total_points`` is always recomputed from the questions
"""

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from tutor_llm.core.config.constants import (
    QUIZ_DEFAULT_NUM_QUESTIONS,
    QUIZ_MAX_OUTPUT_TOKENS,
    QUIZ_MULTIPLE_CHOICE_SHARE,
    QUIZ_OPTION_LABELS,
    QUIZ_TEMPERATURE,
    ExpectedShape,
    QuestionType,
    Stage,
)
from tutor_llm.core.exceptions import QuizValidationError
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import GenerationRequest
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.prompts import QUIZ_SYSTEM_PROMPT, build_quiz_prompt

logger = get_logger(__name__)

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuizOptions(BaseModel):
    """Caller options for one quiz generation."""

    num_questions: int = Field(default=QUIZ_DEFAULT_NUM_QUESTIONS, ge=1, le=50)
    question_types: tuple[QuestionType, ...] = (
        QuestionType.MULTIPLE_CHOICE,
        QuestionType.FREE_RESPONSE,
    )
    difficulty: str = "mixed"
    subject: str | None = None
    grade_level: str | None = None
    assignment_type: str = "QUIZ"

    @field_validator("question_types")
    @classmethod
    def at_least_one_type(cls, v):
        if not v:
            raise ValueError("question_types must name at least one type")
        return tuple(dict.fromkeys(v))

    def question_split(self) -> tuple[int, int]:
        """(multiple choice, free response) counts asked of the model."""
        has_mc = QuestionType.MULTIPLE_CHOICE in self.question_types
        has_fr = QuestionType.FREE_RESPONSE in self.question_types
        if has_mc and has_fr:
            share = QUIZ_MULTIPLE_CHOICE_SHARE
        elif has_mc:
            share = 1.0
        else:
            share = 0.0
        num_mc = math.floor(self.num_questions * share)
        return num_mc, self.num_questions - num_mc


class QuizOption(BaseModel):
    model_config = _CAMEL

    letter: str
    text: str

    @field_validator("letter")
    @classmethod
    def normalize_letter(cls, v: str) -> str:
        return v.strip().upper()


class QuizQuestion(BaseModel):
    """One generated question. MC and FR questions share the model."""

    model_config = _CAMEL

    type: QuestionType
    question_text: str = Field(..., min_length=1)
    points: int = Field(..., ge=0)
    concept: str | None = None
    difficulty: Literal["easy", "medium", "hard"] | None = None
    options: list[QuizOption] = Field(default_factory=list)
    correct_option: str | None = None
    correct_answer: str | None = None
    rubric: str | None = None
    explanation: str | None = None

    @field_validator("correct_option")
    @classmethod
    def normalize_correct_option(cls, v: str | None) -> str | None:
        return v.strip().upper() if v is not None else None


class GeneratedQuiz(BaseModel):
    """
    A validated quiz.

    Any ``totalPoints`` in the model output is ignored; ``total_points`` is
    the sum of the question points.
    """

    model_config = _CAMEL

    title: str = Field(..., min_length=1)
    description: str = ""
    questions: list[QuizQuestion]
    estimated_time_minutes: int | None = Field(default=None, ge=0)

    @computed_field
    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @property
    def multiple_choice_count(self) -> int:
        return sum(1 for q in self.questions if q.type is QuestionType.MULTIPLE_CHOICE)

    @property
    def free_response_count(self) -> int:
        return sum(1 for q in self.questions if q.type is QuestionType.FREE_RESPONSE)


def _check_multiple_choice(question: QuizQuestion, index: int) -> None:
    letters = [option.letter for option in question.options]
    if sorted(letters) != sorted(QUIZ_OPTION_LABELS):
        raise QuizValidationError(
            f"Multiple choice question {index} must have exactly options "
            f"{', '.join(QUIZ_OPTION_LABELS)}, got {letters or 'none'}",
            field=f"questions[{index}].options",
        )
    if question.correct_option not in QUIZ_OPTION_LABELS:
        raise QuizValidationError(
            f"Multiple choice question {index} has invalid correct option "
            f"{question.correct_option!r}",
            field=f"questions[{index}].correctOption",
        )


def validate_quiz(quiz: GeneratedQuiz, options: QuizOptions) -> GeneratedQuiz:
    """
    Apply the quiz rules to an already schema-valid quiz.

    Raises:
        QuizValidationError: On the first rule violation, naming the field
    """
    if len(quiz.questions) != options.num_questions:
        raise QuizValidationError(
            f"Expected {options.num_questions} questions, got {len(quiz.questions)}",
            field="questions",
            details={"expected": options.num_questions, "actual": len(quiz.questions)},
        )

    for index, question in enumerate(quiz.questions):
        if question.type not in options.question_types:
            raise QuizValidationError(
                f"Question {index} has type {question.type.value}, which was not requested",
                field=f"questions[{index}].type",
            )
        if question.type is QuestionType.MULTIPLE_CHOICE:
            _check_multiple_choice(question, index)
        elif not (question.correct_answer or "").strip():
            raise QuizValidationError(
                f"Free response question {index} is missing a reference answer",
                field=f"questions[{index}].correctAnswer",
            )

    return quiz


async def generate_quiz(
    orchestrator: ProviderOrchestrator,
    curriculum_text: str,
    options: QuizOptions | None = None,
    *,
    allow_fallback: bool = True,
) -> GeneratedQuiz:
    """
    Generate and validate a quiz for ``curriculum_text``.

    Raises:
        Provider and output errors from the orchestrator, QuizValidationError
    """
    options = options or QuizOptions()
    num_mc, num_fr = options.question_split()

    request = GenerationRequest(
        system_prompt=QUIZ_SYSTEM_PROMPT,
        user_prompt=build_quiz_prompt(curriculum_text, options, num_mc, num_fr),
        max_output_tokens=QUIZ_MAX_OUTPUT_TOKENS,
        temperature=QUIZ_TEMPERATURE,
        expected_shape=ExpectedShape.JSON_OBJECT,
    )
    result = await orchestrator.generate(
        request,
        schema=GeneratedQuiz,
        required_keys=("title", "questions"),
        allow_fallback=allow_fallback,
    )
    quiz = validate_quiz(result.data, options)

    logger.info(
        "Quiz generated",
        stage=Stage.DOMAIN_VALIDATION,
        provider=result.provider_used,
        questions=len(quiz.questions),
        multiple_choice=quiz.multiple_choice_count,
        free_response=quiz.free_response_count,
        total_points=quiz.total_points,
    )
    return quiz
