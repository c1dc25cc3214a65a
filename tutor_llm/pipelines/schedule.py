"""
Curriculum Scheduling Pipeline

Breaks curriculum text into teaching units, checks every unit has sub-units
and lays the units out on the school calendar.

Calendar layout:
    The first unit starts on the school-year start date. A unit lasts its
    ``estimated_weeks``; the next one starts SCHEDULE_UNIT_GAP_DAYS after the
    previous one ends.

The target unit count is only a hint in the prompt. The generated count is
reported on the result and never asserted against the target.
"""

from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tutor_llm.core.config.constants import (
    SCHEDULE_MAX_OUTPUT_TOKENS,
    SCHEDULE_SUGGESTIONS_MAX_OUTPUT_TOKENS,
    SCHEDULE_TEMPERATURE,
    SCHEDULE_UNIT_GAP_DAYS,
    ExpectedShape,
    Stage,
)
from tutor_llm.core.exceptions import ScheduleValidationError
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import GenerationRequest
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.prompts import (
    SCHEDULE_SYSTEM_PROMPT,
    build_schedule_prompt,
    build_schedule_suggestions_prompt,
)

logger = get_logger(__name__)

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScheduleOptions(BaseModel):
    grade_level: str
    subject: str
    school_year_start: date
    school_year_end: date | None = None
    total_weeks: int = Field(default=36, ge=1)
    target_units: int | None = Field(default=None, ge=1)
    pacing_preference: Literal["slow", "standard", "fast"] | None = None


# ============================================================================
# Model output
# ============================================================================

class SubUnit(BaseModel):
    model_config = _CAMEL

    name: str = Field(..., min_length=1)
    description: str = ""
    order_index: int = 0
    concepts: list[str] = Field(default_factory=list)
    learning_objectives: list[str] = Field(default_factory=list)
    estimated_hours: float = Field(default=0.0, ge=0)


class GeneratedUnit(BaseModel):
    model_config = _CAMEL

    title: str = Field(..., min_length=1)
    description: str = ""
    estimated_weeks: float = Field(..., gt=0)
    estimated_hours: float = Field(default=0.0, ge=0)
    difficulty_level: int = Field(default=3, ge=1, le=5)
    difficulty_reasoning: str = ""
    sub_units: list[SubUnit] = Field(default_factory=list)
    build_upon_topics: list[str] = Field(default_factory=list)
    suggested_assessments: list[dict[str, Any]] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)


class ScheduleMetadata(BaseModel):
    model_config = _CAMEL

    total_units: int | None = None
    estimated_total_weeks: float | None = None
    difficulty_progression: str = ""


class GeneratedSchedule(BaseModel):
    model_config = _CAMEL

    units: list[GeneratedUnit]
    metadata: ScheduleMetadata = Field(default_factory=ScheduleMetadata)


# ============================================================================
# Pipeline output
# ============================================================================

class ScheduledUnit(BaseModel):
    """A unit placed on the calendar."""

    model_config = ConfigDict(frozen=True)

    order_index: int
    title: str
    description: str
    start_date: date
    end_date: date
    estimated_weeks: float
    estimated_hours: float
    difficulty_level: int
    sub_units: tuple[SubUnit, ...]
    build_upon_topics: tuple[str, ...] = ()
    ai_confidence: float = 0.0


class ScheduleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    units: tuple[ScheduledUnit, ...]
    unit_count: int
    target_units: int | None = None
    ai_confidence: float
    difficulty_progression: str = ""
    provider_used: str | None = None

    @property
    def end_date(self) -> date | None:
        return self.units[-1].end_date if self.units else None


class ScheduleSuggestion(BaseModel):
    model_config = _CAMEL

    type: str = "content"
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    affected_units: list[int] = Field(default_factory=list)
    priority: Literal["low", "medium", "high"] = "medium"


# ============================================================================
# Steps
# ============================================================================

def validate_schedule(schedule: GeneratedSchedule) -> GeneratedSchedule:
    """
    Raises:
        ScheduleValidationError: No units, or a unit without sub-units
    """
    if not schedule.units:
        raise ScheduleValidationError("Schedule has no units", field="units")
    for index, unit in enumerate(schedule.units):
        if not unit.sub_units:
            raise ScheduleValidationError(
                f"Unit {index} ({unit.title!r}) has no sub-units",
                field=f"units[{index}].subUnits",
            )
    return schedule


def layout_unit_dates(units: Sequence[GeneratedUnit], start: date) -> list[ScheduledUnit]:
    """Place units back to back on the calendar starting at ``start``."""
    scheduled = []
    current = start
    for index, unit in enumerate(units, start=1):
        end = current + timedelta(weeks=unit.estimated_weeks)
        scheduled.append(
            ScheduledUnit(
                order_index=index,
                title=unit.title,
                description=unit.description,
                start_date=current,
                end_date=end,
                estimated_weeks=unit.estimated_weeks,
                estimated_hours=unit.estimated_hours,
                difficulty_level=unit.difficulty_level,
                sub_units=tuple(sorted(unit.sub_units, key=lambda s: s.order_index)),
                build_upon_topics=tuple(unit.build_upon_topics),
                ai_confidence=unit.confidence_score,
            )
        )
        current = end + timedelta(days=SCHEDULE_UNIT_GAP_DAYS)
    return scheduled


async def generate_schedule(
    orchestrator: ProviderOrchestrator,
    curriculum_text: str,
    options: ScheduleOptions,
    *,
    allow_fallback: bool = True,
) -> ScheduleResult:
    """
    Generate, validate and lay out a curriculum schedule.

    Raises:
        Provider and output errors from the orchestrator, ScheduleValidationError
    """
    request = GenerationRequest(
        system_prompt=SCHEDULE_SYSTEM_PROMPT,
        user_prompt=build_schedule_prompt(curriculum_text, options),
        max_output_tokens=SCHEDULE_MAX_OUTPUT_TOKENS,
        temperature=SCHEDULE_TEMPERATURE,
        expected_shape=ExpectedShape.JSON_OBJECT,
    )
    result = await orchestrator.generate(
        request, schema=GeneratedSchedule, required_keys=("units",), allow_fallback=allow_fallback
    )
    schedule = validate_schedule(result.data)
    units = layout_unit_dates(schedule.units, options.school_year_start)

    confidence = sum(u.confidence_score for u in schedule.units) / len(schedule.units)
    schedule_result = ScheduleResult(
        units=tuple(units),
        unit_count=len(units),
        target_units=options.target_units,
        ai_confidence=round(confidence, 4),
        difficulty_progression=schedule.metadata.difficulty_progression,
        provider_used=result.provider_used,
    )

    if options.school_year_end and schedule_result.end_date > options.school_year_end:
        logger.warning(
            "Schedule runs past the end of the school year",
            stage=Stage.DOMAIN_VALIDATION,
            schedule_end=schedule_result.end_date.isoformat(),
            school_year_end=options.school_year_end.isoformat(),
        )

    logger.info(
        "Schedule generated",
        stage=Stage.DOMAIN_VALIDATION,
        provider=result.provider_used,
        unit_count=schedule_result.unit_count,
        target_units=options.target_units,
        ai_confidence=schedule_result.ai_confidence,
    )
    return schedule_result


async def suggest_improvements(
    orchestrator: ProviderOrchestrator,
    units: Sequence[ScheduledUnit],
    total_weeks: int,
    grade_level: str,
    subject: str,
    *,
    allow_fallback: bool = True,
) -> list[ScheduleSuggestion]:
    """Ask the model for pacing, ordering and difficulty suggestions on a schedule."""
    request = GenerationRequest(
        system_prompt=SCHEDULE_SYSTEM_PROMPT,
        user_prompt=build_schedule_suggestions_prompt(units, total_weeks, grade_level, subject),
        max_output_tokens=SCHEDULE_SUGGESTIONS_MAX_OUTPUT_TOKENS,
        temperature=SCHEDULE_TEMPERATURE,
        expected_shape=ExpectedShape.JSON_ARRAY,
    )
    result = await orchestrator.generate(
        request,
        schema=list[ScheduleSuggestion],
        required_keys=("title", "description"),
        allow_fallback=allow_fallback,
    )
    return result.data
