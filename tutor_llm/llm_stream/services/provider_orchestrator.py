"""
Provider Orchestrator

Chooses the provider for each generation, applies the fallback policy and
hands structured output through the extractor before anything reaches a
pipeline.

Fallback policy (per request):
    - The chain is the preferred provider, plus the configured fallback only
      when the caller opts in with ``allow_fallback=True``.
    - ProviderAuthError and every output error (truncated, malformed,
      schema) are raised immediately. They are never retried.
    - ProviderRateLimitError / ProviderUnavailableError move on to the
      fallback, once. If that fails too, the primary's error is raised with
      ``attempted_providers``, ``last_provider`` and ``fallback_error``
      attached to its details.
    - Streaming only falls back while no content has reached the caller.

Author: Senior Solution Architect
Date: 2025-12-06
"""

from collections.abc import AsyncGenerator, Sequence
from contextlib import aclosing
from typing import Any

from tutor_llm.core.config.constants import Stage
from tutor_llm.core.exceptions import OutputError, ProviderError, TutorBaseError
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_providers.base_provider import ProviderRegistry, StreamChunk
from tutor_llm.llm_stream.models.generation import GenerationRequest, GenerationResult, TokenUsage
from tutor_llm.llm_stream.services.output_extractor import StructuredOutputExtractor

logger = get_logger(__name__)


def _summarize(error: TutorBaseError) -> dict[str, Any]:
    return {
        "error_type": type(error).__name__,
        "message": error.message,
        "provider": error.provider,
    }


def _annotate(error: TutorBaseError, provider: str, attempted: Sequence[str], **extra: Any) -> TutorBaseError:
    error.details.setdefault("provider", provider)
    error.details["attempted_providers"] = list(attempted)
    error.details["last_provider"] = attempted[-1]
    error.details.update(extra)
    return error


class ProviderOrchestrator:
    """
    Single entry point for provider calls.

    STAGE-3/4/5: Provider selection, call and output extraction

    Usage:
        orchestrator = ProviderOrchestrator(build_provider_registry())
        result = await orchestrator.generate(request, schema=QuizPayload, allow_fallback=True)
        result.data  # validated QuizPayload
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        extractor: StructuredOutputExtractor | None = None,
    ):
        self.registry = registry
        self.extractor = extractor or StructuredOutputExtractor()

    def calculate_cost(self, provider: str, usage: TokenUsage) -> float:
        """USD cost of ``usage`` on ``provider`` (linear in tokens)."""
        return self.registry.profile(provider).calculate_cost(usage)

    async def generate(
        self,
        request: GenerationRequest,
        *,
        schema: Any = None,
        required_keys: Sequence[str] = (),
        allow_fallback: bool = False,
    ) -> GenerationResult:
        """
        Run one non-streaming generation.

        Args:
            request: What to generate
            schema: Optional pydantic model/type the output must satisfy
            required_keys: Top-level keys the JSON output must contain
            allow_fallback: Try the configured fallback on transient errors

        Returns:
            GenerationResult with ``data`` holding the extracted value
            (trimmed text for FREE_TEXT) and ``cost_usd`` filled in

        Raises:
            ProviderAuthError, ProviderRateLimitError, ProviderUnavailableError,
            TruncatedOutputError, MalformedOutputError, SchemaValidationError
        """
        chain = self.registry.chain(allow_fallback)
        attempted: list[str] = []
        primary_error: ProviderError | None = None

        for client in chain:
            attempted.append(client.name)
            if primary_error is not None:
                logger.warning(
                    "Falling back to secondary provider",
                    stage=Stage.FALLBACK,
                    provider=client.name,
                    failed_provider=primary_error.provider,
                    error_type=type(primary_error).__name__,
                )

            try:
                result = await client.complete(request)
            except ProviderError as e:
                if not e.transient:
                    if primary_error is not None:
                        raise _annotate(
                            e, client.name, attempted, primary_error=_summarize(primary_error)
                        )
                    raise _annotate(e, client.name, attempted)
                if primary_error is None:
                    primary_error = e
                    continue
                raise _annotate(
                    primary_error,
                    primary_error.provider or attempted[0],
                    attempted,
                    fallback_error=_summarize(e),
                )

            try:
                data = self.extractor.extract(
                    result.text, request.expected_shape, schema=schema, required_keys=required_keys
                )
            except OutputError as e:
                logger.error(
                    "Output extraction failed",
                    stage=Stage.OUTPUT_EXTRACTION,
                    provider=client.name,
                    error_type=type(e).__name__,
                    error=e.message,
                )
                raise _annotate(e, client.name, attempted)

            cost = self.calculate_cost(client.name, result.usage)
            logger.info(
                "Generation completed",
                stage=Stage.COMPLETION,
                provider=client.name,
                attempted_providers=attempted,
                expected_shape=request.expected_shape.value,
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                cost_usd=cost,
            )
            return result.model_copy(update={"data": data, "cost_usd": cost})

        # Every provider in the chain failed transiently
        raise _annotate(primary_error, primary_error.provider or attempted[0], attempted)

    async def stream(
        self,
        request: GenerationRequest,
        *,
        allow_fallback: bool = False,
    ) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream a free-text generation, stamping each chunk with its provider.

        A transient failure moves on to the fallback only if no content has
        been yielded yet; after that the error propagates as-is.
        """
        chain = self.registry.chain(allow_fallback)
        attempted: list[str] = []
        primary_error: ProviderError | None = None

        for client in chain:
            attempted.append(client.name)
            if primary_error is not None:
                logger.warning(
                    "Falling back to secondary provider for stream",
                    stage=Stage.FALLBACK,
                    provider=client.name,
                    failed_provider=primary_error.provider,
                )

            emitted = False
            try:
                async with aclosing(client.stream(request)) as chunks:
                    async for chunk in chunks:
                        chunk.provider = client.name
                        if chunk.content:
                            emitted = True
                        yield chunk
                return
            except ProviderError as e:
                if emitted or not e.transient:
                    extra = {"primary_error": _summarize(primary_error)} if primary_error else {}
                    raise _annotate(e, client.name, attempted, **extra)
                if primary_error is None:
                    primary_error = e
                    continue
                raise _annotate(
                    primary_error,
                    primary_error.provider or attempted[0],
                    attempted,
                    fallback_error=_summarize(e),
                )

        raise _annotate(primary_error, primary_error.provider or attempted[0], attempted)
