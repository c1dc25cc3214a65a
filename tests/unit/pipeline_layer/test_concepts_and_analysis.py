"""
Unit Tests for Concept Extraction and Curriculum Analysis
"""

import pytest

from tutor_llm.core.config.constants import ExpectedShape
from tutor_llm.core.exceptions import (
    CurriculumAnalysisValidationError,
    MalformedOutputError,
    SchemaValidationError,
)
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.concepts import extract_concepts, normalize_concepts
from tutor_llm.pipelines.curriculum_analysis import analyze_curriculum
from tests.test_fixtures.payload_factory import PayloadFactory
from tests.test_fixtures.provider_factory import ProviderTestFactory

TEXT = "Water evaporates from oceans, condenses into clouds and falls as rain."


def _orchestrator(*responses: str):
    provider = ProviderTestFactory.success_provider(name="primary", responses=responses)
    return ProviderOrchestrator(ProviderTestFactory.registry(provider)), provider


@pytest.mark.unit
class TestNormalizeConcepts:
    """Test normalize_concepts."""

    def test_trims_dedupes_and_keeps_order(self):
        """Test duplicates are dropped case-insensitively, keeping the first spelling."""
        concepts = normalize_concepts(["Evaporation", " condensation ", "", "evaporation", "  ", "Precipitation"])

        assert concepts == ["Evaporation", "condensation", "Precipitation"]

    def test_empty(self):
        """Test an empty list stays empty."""
        assert normalize_concepts([]) == []


@pytest.mark.unit
class TestExtractConcepts:
    """Test extract_concepts."""

    @pytest.mark.asyncio
    async def test_extract_concepts(self):
        """Test a fenced JSON array becomes a normalized concept list."""
        orchestrator, provider = _orchestrator('```json\n["evaporation", "Condensation", "evaporation"]\n```')

        concepts = await extract_concepts(orchestrator, TEXT, subject="Science")

        assert concepts == ["evaporation", "Condensation"]
        request = provider.requests[0]
        assert request.expected_shape is ExpectedShape.JSON_ARRAY
        assert "Subject: Science" in request.user_prompt

    @pytest.mark.asyncio
    async def test_object_items_rejected(self):
        """Test the array must hold strings."""
        orchestrator, _ = _orchestrator('[{"name": "evaporation"}]')

        with pytest.raises(SchemaValidationError):
            await extract_concepts(orchestrator, TEXT)

    @pytest.mark.asyncio
    async def test_prose_rejected(self):
        """Test a prose answer ending in a bracket is malformed, not silently accepted."""
        orchestrator, _ = _orchestrator("The concepts are [evaporation]")

        with pytest.raises(MalformedOutputError):
            await extract_concepts(orchestrator, TEXT)


@pytest.mark.unit
class TestAnalyzeCurriculum:
    """Test analyze_curriculum."""

    @pytest.mark.asyncio
    async def test_analysis(self):
        """Test a complete analysis is returned with the prompt context included."""
        orchestrator, provider = _orchestrator(PayloadFactory.analysis())

        analysis = await analyze_curriculum(
            orchestrator, TEXT, subject="Science", grade_level="5th grade", focus_areas=["weather", "climate"]
        )

        assert analysis.outline.topics[0].name == "Water cycle"
        assert analysis.concepts == ["evaporation", "condensation"]
        prompt = provider.requests[0].user_prompt
        assert "**Focus Areas:** weather, climate" in prompt
        assert "**Grade Level:** 5th grade" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"summary": "  "}, "summary"),
            ({"outline": {"topics": []}}, "outline.topics"),
            ({"outline": {"topics": [{"name": ""}]}}, "outline.topics[0].name"),
            ({"concepts": []}, "concepts"),
            ({"objectives": []}, "objectives"),
        ],
    )
    async def test_empty_sections_rejected(self, overrides, field):
        """Test every section must be non-empty."""
        orchestrator, _ = _orchestrator(PayloadFactory.analysis(**overrides))

        with pytest.raises(CurriculumAnalysisValidationError) as exc_info:
            await analyze_curriculum(orchestrator, TEXT)

        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_missing_section_rejected(self):
        """Test a missing top-level key fails before schema validation."""
        raw = PayloadFactory.analysis().replace('"objectives"', '"goals"')
        orchestrator, _ = _orchestrator(raw)

        with pytest.raises(SchemaValidationError) as exc_info:
            await analyze_curriculum(orchestrator, TEXT)

        assert exc_info.value.field == "objectives"
