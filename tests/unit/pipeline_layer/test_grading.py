"""
Unit Tests for the Grading Pipeline
"""

import pytest

from tutor_llm.core.exceptions import GradingValidationError, ProviderUnavailableError
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.grading import GradingOutput, grade_free_response, validate_grading
from tests.test_fixtures.payload_factory import PayloadFactory
from tests.test_fixtures.provider_factory import ProviderTestFactory


def _grade_args() -> dict:
    return {
        "question_text": "Why do we need a common denominator?",
        "reference_answer": "So the parts being added are the same size.",
        "student_answer": "Because the pieces have to match in size.",
    }


@pytest.mark.unit
class TestValidateGrading:
    """Test validate_grading."""

    def test_full_grading_kept(self):
        """Test a complete grading is passed through."""
        result = validate_grading(
            GradingOutput(score=0.5, feedback=" Partly right. ", is_correct=True, confidence=0.6, suggestions=["", "More detail"])
        )

        assert result.score == 0.5
        assert result.feedback == "Partly right."
        assert result.is_correct is True
        assert result.confidence == 0.6
        assert result.suggestions == ("More detail",)

    @pytest.mark.parametrize("score,expected", [(0.7, True), (0.69, False), (1.0, True), (0.0, False)])
    def test_is_correct_defaults_from_score(self, score, expected):
        """Test a missing isCorrect is derived from the 0.7 threshold."""
        result = validate_grading(GradingOutput(score=score, feedback="ok"))

        assert result.is_correct is expected

    def test_confidence_default(self):
        """Test a missing confidence defaults to 0.8."""
        assert validate_grading(GradingOutput(score=1.0, feedback="ok")).confidence == 0.8

    @pytest.mark.parametrize("score", [-0.1, 1.5, 85])
    def test_score_out_of_range(self, score):
        """Test scores outside [0, 1] are rejected."""
        with pytest.raises(GradingValidationError) as exc_info:
            validate_grading(GradingOutput(score=score, feedback="ok"))

        assert exc_info.value.field == "score"

    def test_confidence_out_of_range(self):
        """Test confidence outside [0, 1] is rejected."""
        with pytest.raises(GradingValidationError) as exc_info:
            validate_grading(GradingOutput(score=0.5, feedback="ok", confidence=2))

        assert exc_info.value.field == "confidence"

    @pytest.mark.parametrize("feedback", ["", "  "])
    def test_feedback_required(self, feedback):
        """Test empty feedback is rejected."""
        with pytest.raises(GradingValidationError) as exc_info:
            validate_grading(GradingOutput(score=0.5, feedback=feedback))

        assert exc_info.value.field == "feedback"

    def test_points_awarded(self):
        """Test points are the score scaled to the question's points."""
        result = validate_grading(GradingOutput(score=0.85, feedback="ok"), max_points=15)

        assert result.points_awarded == 12.75


@pytest.mark.unit
class TestGradeFreeResponse:
    """Test grade_free_response end to end."""

    @pytest.mark.asyncio
    async def test_grade(self):
        """Test a model grading becomes a GradingResult with its provider."""
        provider = ProviderTestFactory.success_provider(name="primary", responses=(PayloadFactory.grading(),))
        orchestrator = ProviderOrchestrator(ProviderTestFactory.registry(provider))

        result = await grade_free_response(orchestrator, rubric="Mentions equal-sized parts", **_grade_args())

        assert result.score == 0.85
        assert result.is_correct is True
        assert result.provider_used == "primary"
        prompt = provider.requests[0].user_prompt
        assert "Mentions equal-sized parts" in prompt
        assert "Because the pieces have to match in size." in prompt

    @pytest.mark.asyncio
    async def test_prompt_without_rubric(self):
        """Test the rubric section is left out when there is no rubric."""
        provider = ProviderTestFactory.success_provider(responses=(PayloadFactory.grading(),))
        orchestrator = ProviderOrchestrator(ProviderTestFactory.registry(provider))

        await grade_free_response(orchestrator, **_grade_args())

        assert "Grading Rubric" not in provider.requests[0].user_prompt

    @pytest.mark.asyncio
    async def test_out_of_range_score_from_model(self):
        """Test a percentage score from the model is rejected, not rescaled."""
        provider = ProviderTestFactory.success_provider(responses=(PayloadFactory.grading(score=85),))
        orchestrator = ProviderOrchestrator(ProviderTestFactory.registry(provider))

        with pytest.raises(GradingValidationError):
            await grade_free_response(orchestrator, **_grade_args())

    @pytest.mark.asyncio
    async def test_grading_never_falls_back(self):
        """Test grading stays on the preferred provider even when a fallback exists."""
        failing = ProviderTestFactory.failing_provider(name="primary", error=ProviderUnavailableError("down"))
        backup = ProviderTestFactory.success_provider(name="backup", responses=(PayloadFactory.grading(),))
        orchestrator = ProviderOrchestrator(ProviderTestFactory.registry(failing, backup, fallback="backup"))

        with pytest.raises(ProviderUnavailableError):
            await grade_free_response(orchestrator, **_grade_args())

        assert backup.requests == []
