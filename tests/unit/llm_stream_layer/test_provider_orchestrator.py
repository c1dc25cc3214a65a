"""
Unit Tests for ProviderOrchestrator

Tests the fallback policy for one-shot and streaming generations, output
extraction on the generate path and cost calculation.
"""

import pytest
from pydantic import BaseModel

from tutor_llm.core.config.constants import ExpectedShape
from tutor_llm.core.exceptions import (
    ConfigurationError,
    MalformedOutputError,
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderUnavailableError,
    SchemaValidationError,
    TruncatedOutputError,
)
from tutor_llm.llm_stream.models.generation import GenerationRequest, TokenUsage
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tests.test_fixtures.provider_factory import ProviderTestFactory


class _Payload(BaseModel):
    a: int


def _json_request(shape: ExpectedShape = ExpectedShape.JSON_OBJECT) -> GenerationRequest:
    return GenerationRequest(user_prompt="Return JSON", expected_shape=shape)


def _orchestrator(primary, fallback=None) -> ProviderOrchestrator:
    providers = (primary, fallback) if fallback is not None else (primary,)
    return ProviderOrchestrator(
        ProviderTestFactory.registry(*providers, fallback=fallback.name if fallback else None)
    )


async def _drain(orchestrator, request, **kwargs):
    return [chunk async for chunk in orchestrator.stream(request, **kwargs)]


@pytest.mark.unit
class TestGenerate:
    """Test ProviderOrchestrator.generate on the happy path."""

    @pytest.mark.asyncio
    async def test_generate_extracts_json(self, orchestrator):
        """Test JSON output is parsed into result.data."""
        result = await orchestrator.generate(_json_request())

        assert result.data == {"a": 1}
        assert result.provider_used == "primary"

    @pytest.mark.asyncio
    async def test_generate_validates_schema(self, orchestrator):
        """Test a schema turns data into the model instance."""
        result = await orchestrator.generate(_json_request(), schema=_Payload)

        assert result.data == _Payload(a=1)

    @pytest.mark.asyncio
    async def test_generate_free_text_trims(self):
        """Test free-text data is the trimmed text."""
        orchestrator = _orchestrator(ProviderTestFactory.success_provider(responses=("  Keep going!  ",)))

        result = await orchestrator.generate(GenerationRequest(user_prompt="Encourage me"))

        assert result.data == "Keep going!"
        assert result.text == "  Keep going!  "

    @pytest.mark.asyncio
    async def test_generate_fills_cost(self):
        """Test the result carries the cost of its usage."""
        usage = TokenUsage(prompt_tokens=500_000, completion_tokens=250_000)
        orchestrator = _orchestrator(ProviderTestFactory.success_provider(usage=usage))

        result = await orchestrator.generate(_json_request())

        # 0.5M input at $1 + 0.25M output at $2
        assert result.cost_usd == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_fallback_unused_when_primary_succeeds(self):
        """Test the fallback is not called when the primary answers."""
        primary = ProviderTestFactory.success_provider(name="primary")
        fallback = ProviderTestFactory.success_provider(name="backup")

        result = await _orchestrator(primary, fallback).generate(_json_request(), allow_fallback=True)

        assert result.provider_used == "primary"
        assert fallback.requests == []


@pytest.mark.unit
class TestGenerateFallback:
    """Test the fallback policy on ProviderOrchestrator.generate."""

    @pytest.mark.asyncio
    async def test_auth_error_never_falls_back(self):
        """Test an auth error is raised without attempting the fallback."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderAuthError("bad key"))
        fallback = ProviderTestFactory.success_provider(name="backup")

        with pytest.raises(ProviderAuthError) as exc_info:
            await _orchestrator(primary, fallback).generate(_json_request(), allow_fallback=True)

        assert fallback.requests == []
        assert exc_info.value.details["attempted_providers"] == ["primary"]
        assert exc_info.value.details["last_provider"] == "primary"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [ProviderRateLimitError("slow down"), ProviderUnavailableError("503")]
    )
    async def test_transient_error_falls_back(self, error):
        """Test rate limits and outages move on to the fallback."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=error)
        fallback = ProviderTestFactory.success_provider(name="backup")

        result = await _orchestrator(primary, fallback).generate(_json_request(), allow_fallback=True)

        assert result.provider_used == "backup"
        assert result.data == {"a": 1}
        assert primary.calls == 1

    @pytest.mark.asyncio
    async def test_transient_error_without_opt_in(self):
        """Test the fallback is skipped unless the caller allows it."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderUnavailableError("503"))
        fallback = ProviderTestFactory.success_provider(name="backup")

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await _orchestrator(primary, fallback).generate(_json_request())

        assert fallback.requests == []
        assert exc_info.value.details["attempted_providers"] == ["primary"]

    @pytest.mark.asyncio
    async def test_both_fail_raises_primary_error(self):
        """Test the primary's error is raised with the fallback's attached."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderRateLimitError("429"))
        fallback = ProviderTestFactory.failing_provider(name="backup", error=ProviderUnavailableError("down"))

        with pytest.raises(ProviderRateLimitError) as exc_info:
            await _orchestrator(primary, fallback).generate(_json_request(), allow_fallback=True)

        details = exc_info.value.details
        assert details["provider"] == "primary"
        assert details["attempted_providers"] == ["primary", "backup"]
        assert details["last_provider"] == "backup"
        assert details["fallback_error"]["error_type"] == "ProviderUnavailableError"
        assert details["fallback_error"]["provider"] == "backup"

    @pytest.mark.asyncio
    async def test_fallback_auth_error_raised_with_primary_summary(self):
        """Test an auth failure on the fallback is raised and names the primary's error."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderUnavailableError("down"))
        fallback = ProviderTestFactory.failing_provider(name="backup", error=ProviderAuthError("bad key"))

        with pytest.raises(ProviderAuthError) as exc_info:
            await _orchestrator(primary, fallback).generate(_json_request(), allow_fallback=True)

        details = exc_info.value.details
        assert details["provider"] == "backup"
        assert details["last_provider"] == "backup"
        assert details["primary_error"]["error_type"] == "ProviderUnavailableError"

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        """Test a provider timeout counts as transient."""
        primary = ProviderTestFactory.slow_provider(name="primary", delay=0.5, timeout=0.05)
        fallback = ProviderTestFactory.success_provider(name="backup")

        result = await _orchestrator(primary, fallback).generate(_json_request(), allow_fallback=True)

        assert result.provider_used == "backup"


@pytest.mark.unit
class TestGenerateOutputErrors:
    """Test output errors are raised and never retried."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response,error_type",
        [
            ('{"a": 1', TruncatedOutputError),
            ("{a: 1}", MalformedOutputError),
            ('{"b": 2}', SchemaValidationError),
        ],
    )
    async def test_output_error_does_not_fall_back(self, response, error_type):
        """Test a bad answer from the primary is raised even with a fallback available."""
        primary = ProviderTestFactory.success_provider(name="primary", responses=(response,))
        fallback = ProviderTestFactory.success_provider(name="backup")

        with pytest.raises(error_type) as exc_info:
            await _orchestrator(primary, fallback).generate(
                _json_request(), schema=_Payload, allow_fallback=True
            )

        assert fallback.requests == []
        assert len(primary.requests) == 1
        assert exc_info.value.details["provider"] == "primary"

    @pytest.mark.asyncio
    async def test_required_keys_checked(self, orchestrator):
        """Test required keys are enforced on the generate path."""
        with pytest.raises(SchemaValidationError) as exc_info:
            await orchestrator.generate(_json_request(), required_keys=("a", "b"))

        assert exc_info.value.field == "b"


@pytest.mark.unit
class TestStream:
    """Test ProviderOrchestrator.stream."""

    @pytest.mark.asyncio
    async def test_stream_stamps_provider(self, orchestrator):
        """Test each chunk carries the provider that produced it."""
        chunks = await _drain(orchestrator, GenerationRequest(user_prompt="hi"))

        assert "".join(c.content for c in chunks) == "Hello world!"
        assert {c.provider for c in chunks} == {"primary"}
        assert chunks[-1].usage is not None

    @pytest.mark.asyncio
    async def test_stream_falls_back_before_first_token(self):
        """Test a stream that fails before any content moves on to the fallback."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderUnavailableError("down"))
        fallback = ProviderTestFactory.success_provider(name="backup")

        chunks = await _drain(
            _orchestrator(primary, fallback), GenerationRequest(user_prompt="hi"), allow_fallback=True
        )

        assert "".join(c.content for c in chunks) == "Hello world!"
        assert {c.provider for c in chunks} == {"backup"}

    @pytest.mark.asyncio
    async def test_stream_never_falls_back_after_content(self):
        """Test a mid-stream failure is raised once content has been yielded."""
        primary = ProviderTestFactory.mid_stream_failure_provider(name="primary")
        fallback = ProviderTestFactory.success_provider(name="backup")
        received = []

        with pytest.raises(ProviderUnavailableError) as exc_info:
            async for chunk in _orchestrator(primary, fallback).stream(
                GenerationRequest(user_prompt="hi"), allow_fallback=True
            ):
                received.append(chunk.content)

        assert received == ["Partial", " answer"]
        assert fallback.requests == []
        assert exc_info.value.details["attempted_providers"] == ["primary"]

    @pytest.mark.asyncio
    async def test_stream_auth_error_not_retried(self):
        """Test auth failures on a stream are raised immediately."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderAuthError("bad key"))
        fallback = ProviderTestFactory.success_provider(name="backup")

        with pytest.raises(ProviderAuthError):
            await _drain(_orchestrator(primary, fallback), GenerationRequest(user_prompt="hi"), allow_fallback=True)

        assert fallback.requests == []

    @pytest.mark.asyncio
    async def test_stream_both_fail(self):
        """Test the primary's error is raised when both streams fail before content."""
        primary = ProviderTestFactory.failing_provider(name="primary", error=ProviderRateLimitError("429"))
        fallback = ProviderTestFactory.failing_provider(name="backup")

        with pytest.raises(ProviderRateLimitError) as exc_info:
            await _drain(_orchestrator(primary, fallback), GenerationRequest(user_prompt="hi"), allow_fallback=True)

        assert exc_info.value.details["last_provider"] == "backup"
        assert exc_info.value.details["fallback_error"]["error_type"] == "ProviderUnavailableError"

    @pytest.mark.asyncio
    async def test_closing_stream_closes_provider(self):
        """Test closing the orchestrator stream early closes the provider stream."""
        provider = ProviderTestFactory.gated_provider(name="primary")
        provider.release.set()
        stream = _orchestrator(provider).stream(GenerationRequest(user_prompt="hi"))

        first = await stream.__anext__()
        await stream.aclose()

        assert first.content == "Let's"
        assert provider.closed


@pytest.mark.unit
class TestCalculateCost:
    """Test ProviderOrchestrator.calculate_cost."""

    def test_cost_uses_provider_profile(self, orchestrator):
        """Test cost is priced with the named provider's profile."""
        cost = orchestrator.calculate_cost("primary", TokenUsage(prompt_tokens=2_000_000, completion_tokens=1_000_000))

        assert cost == pytest.approx(4.0)

    def test_unknown_provider(self, orchestrator):
        """Test pricing an unregistered provider is a configuration error."""
        with pytest.raises(ConfigurationError):
            orchestrator.calculate_cost("nope", TokenUsage())
