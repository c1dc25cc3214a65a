"""
Curriculum Analysis Pipeline

Summarizes uploaded curriculum text into a summary, a topic outline, the
concepts it covers and measurable learning objectives.
"""

from collections.abc import Sequence

from pydantic import BaseModel, Field

from tutor_llm.core.config.constants import (
    CURRICULUM_ANALYSIS_MAX_OUTPUT_TOKENS,
    CURRICULUM_ANALYSIS_TEMPERATURE,
    ExpectedShape,
    Stage,
)
from tutor_llm.core.exceptions import CurriculumAnalysisValidationError
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import GenerationRequest
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.prompts import (
    CURRICULUM_ANALYSIS_SYSTEM_PROMPT,
    build_curriculum_analysis_prompt,
)

logger = get_logger(__name__)


class OutlineTopic(BaseModel):
    name: str
    subtopics: list[str] = Field(default_factory=list)


class CurriculumOutline(BaseModel):
    topics: list[OutlineTopic] = Field(default_factory=list)


class CurriculumAnalysis(BaseModel):
    summary: str
    outline: CurriculumOutline
    concepts: list[str]
    objectives: list[str]


def validate_analysis(analysis: CurriculumAnalysis) -> CurriculumAnalysis:
    """Every section must be present and non-empty."""
    if not analysis.summary.strip():
        raise CurriculumAnalysisValidationError("Analysis has an empty summary", field="summary")
    if not analysis.outline.topics:
        raise CurriculumAnalysisValidationError("Analysis outline has no topics", field="outline.topics")
    for index, topic in enumerate(analysis.outline.topics):
        if not topic.name.strip():
            raise CurriculumAnalysisValidationError(
                f"Outline topic {index} has no name", field=f"outline.topics[{index}].name"
            )
    if not analysis.concepts:
        raise CurriculumAnalysisValidationError("Analysis lists no concepts", field="concepts")
    if not analysis.objectives:
        raise CurriculumAnalysisValidationError("Analysis lists no objectives", field="objectives")
    return analysis


async def analyze_curriculum(
    orchestrator: ProviderOrchestrator,
    curriculum_text: str,
    subject: str | None = None,
    grade_level: str | None = None,
    focus_areas: Sequence[str] = (),
    *,
    allow_fallback: bool = True,
) -> CurriculumAnalysis:
    request = GenerationRequest(
        system_prompt=CURRICULUM_ANALYSIS_SYSTEM_PROMPT,
        user_prompt=build_curriculum_analysis_prompt(
            curriculum_text, subject, grade_level, focus_areas
        ),
        max_output_tokens=CURRICULUM_ANALYSIS_MAX_OUTPUT_TOKENS,
        temperature=CURRICULUM_ANALYSIS_TEMPERATURE,
        expected_shape=ExpectedShape.JSON_OBJECT,
    )
    result = await orchestrator.generate(
        request,
        schema=CurriculumAnalysis,
        required_keys=("summary", "outline", "concepts", "objectives"),
        allow_fallback=allow_fallback,
    )
    analysis = validate_analysis(result.data)

    logger.info(
        "Curriculum analyzed",
        stage=Stage.DOMAIN_VALIDATION,
        provider=result.provider_used,
        topics=len(analysis.outline.topics),
        concepts=len(analysis.concepts),
        objectives=len(analysis.objectives),
    )
    return analysis
