"""
Free Response Grading Pipeline

Grades one student answer against a reference answer. Grading never opts
into provider fallback: the same rubric read by a different model family
would not grade consistently.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tutor_llm.core.config.constants import (
    GRADING_CORRECT_THRESHOLD,
    GRADING_DEFAULT_CONFIDENCE,
    GRADING_MAX_OUTPUT_TOKENS,
    GRADING_TEMPERATURE,
    ExpectedShape,
    Stage,
)
from tutor_llm.core.exceptions import GradingValidationError
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import GenerationRequest
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.prompts import GRADING_SYSTEM_PROMPT, build_grading_prompt

logger = get_logger(__name__)


class GradingOutput(BaseModel):
    """Grading as returned by the model, before range checks."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    score: float
    feedback: str = ""
    is_correct: bool | None = None
    confidence: float | None = None
    suggestions: list[str] = Field(default_factory=list)


class GradingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=0.0, le=1.0)
    feedback: str
    is_correct: bool
    confidence: float
    suggestions: tuple[str, ...] = ()
    points_awarded: float = 0.0
    provider_used: str | None = None


def validate_grading(output: GradingOutput, max_points: float = 1.0) -> GradingResult:
    """
    Check the model's grading and fill in defaults.

    Raises:
        GradingValidationError: Score outside [0, 1], confidence outside
            [0, 1] or empty feedback
    """
    if not 0.0 <= output.score <= 1.0:
        raise GradingValidationError(
            f"Score must be between 0 and 1, got {output.score}",
            field="score",
            details={"score": output.score},
        )
    if not output.feedback.strip():
        raise GradingValidationError("Grading has no feedback", field="feedback")

    confidence = GRADING_DEFAULT_CONFIDENCE if output.confidence is None else output.confidence
    if not 0.0 <= confidence <= 1.0:
        raise GradingValidationError(
            f"Confidence must be between 0 and 1, got {confidence}", field="confidence"
        )

    is_correct = output.is_correct
    if is_correct is None:
        is_correct = output.score >= GRADING_CORRECT_THRESHOLD

    return GradingResult(
        score=output.score,
        feedback=output.feedback.strip(),
        is_correct=is_correct,
        confidence=confidence,
        suggestions=tuple(s for s in output.suggestions if s.strip()),
        points_awarded=round(output.score * max_points, 2),
    )


async def grade_free_response(
    orchestrator: ProviderOrchestrator,
    question_text: str,
    reference_answer: str,
    student_answer: str,
    rubric: str | None = None,
    max_points: float = 1.0,
) -> GradingResult:
    """
    Grade ``student_answer`` on the preferred provider only.

    Raises:
        Provider and output errors from the orchestrator, GradingValidationError
    """
    request = GenerationRequest(
        system_prompt=GRADING_SYSTEM_PROMPT,
        user_prompt=build_grading_prompt(question_text, reference_answer, student_answer, rubric),
        max_output_tokens=GRADING_MAX_OUTPUT_TOKENS,
        temperature=GRADING_TEMPERATURE,
        expected_shape=ExpectedShape.JSON_OBJECT,
    )
    result = await orchestrator.generate(
        request, schema=GradingOutput, required_keys=("score", "feedback"), allow_fallback=False
    )
    grading = validate_grading(result.data, max_points).model_copy(
        update={"provider_used": result.provider_used}
    )

    logger.info(
        "Answer graded",
        stage=Stage.DOMAIN_VALIDATION,
        provider=result.provider_used,
        score=grading.score,
        is_correct=grading.is_correct,
        confidence=grading.confidence,
    )
    return grading
