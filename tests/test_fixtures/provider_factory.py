"""
Provider Test Factory

Creates controllable provider stubs for testing various scenarios.
"""

import asyncio
from collections.abc import Sequence

from tutor_llm.llm_providers.base_provider import (
    BaseProvider,
    ProviderConfig,
    ProviderRegistry,
    StreamChunk,
)
from tutor_llm.llm_stream.models.generation import GenerationRequest, ProviderProfile, TokenUsage


class ProviderTestFactory:
    """Factory for creating test provider stubs."""

    @staticmethod
    def profile(
        name: str = "test", input_cost: float = 1.0, output_cost: float = 2.0
    ) -> ProviderProfile:
        """Create a profile with round cost figures."""
        return ProviderProfile(
            name=name,
            model_id=f"{name}-model",
            api_key_ref="TEST_API_KEY",
            cost_per_million_input_tokens=input_cost,
            cost_per_million_output_tokens=output_cost,
        )

    @staticmethod
    def config(name: str = "test", timeout: float = 5.0) -> ProviderConfig:
        return ProviderConfig(
            profile=ProviderTestFactory.profile(name), api_key="test-key", timeout=timeout
        )

    @staticmethod
    def success_provider(
        name: str = "test",
        responses: Sequence[str] = ('{"a": 1}',),
        chunks: Sequence[str] | None = None,
        usage: TokenUsage | None = None,
        timeout: float = 5.0,
    ) -> BaseProvider:
        """
        Create a provider that always succeeds.

        ``complete`` returns ``responses`` in turn; ``stream`` yields
        ``chunks`` (default: "Hello", " world", "!") followed by a usage
        chunk when ``usage`` is given.
        """
        stream_chunks = list(chunks) if chunks is not None else ["Hello", " world", "!"]

        class SuccessProvider(BaseProvider):
            def __init__(self):
                super().__init__(ProviderTestFactory.config(name, timeout))
                self.requests: list[GenerationRequest] = []
                self._responses = list(responses)

            async def _complete_internal(self, request, model):
                self.requests.append(request)
                text = self._responses[(len(self.requests) - 1) % len(self._responses)]
                return StreamChunk(content=text, finish_reason="stop", model=model, usage=usage)

            async def _stream_internal(self, request, model):
                self.requests.append(request)
                for content in stream_chunks:
                    yield StreamChunk(content=content, model=model)
                if usage is not None:
                    yield StreamChunk(content="", finish_reason="stop", model=model, usage=usage)

        return SuccessProvider()

    @staticmethod
    def failing_provider(name: str = "failing", error: Exception | None = None) -> BaseProvider:
        """Create a provider that always fails before producing anything."""
        if error is None:
            error = RuntimeError("Provider failure")

        class FailingProvider(BaseProvider):
            def __init__(self):
                super().__init__(ProviderTestFactory.config(name))
                self.calls = 0

            async def _complete_internal(self, request, model):
                self.calls += 1
                raise error

            async def _stream_internal(self, request, model):
                self.calls += 1
                raise error
                yield  # Make it a generator

        return FailingProvider()

    @staticmethod
    def mid_stream_failure_provider(
        name: str = "flaky", chunks: Sequence[str] = ("Partial", " answer"), error: Exception | None = None
    ) -> BaseProvider:
        """Create a provider that streams some chunks and then fails."""
        if error is None:
            error = RuntimeError("Connection reset")

        class MidStreamFailureProvider(BaseProvider):
            def __init__(self):
                super().__init__(ProviderTestFactory.config(name))

            async def _complete_internal(self, request, model):
                raise error

            async def _stream_internal(self, request, model):
                for content in chunks:
                    yield StreamChunk(content=content, model=model)
                raise error

        return MidStreamFailureProvider()

    @staticmethod
    def slow_provider(name: str = "slow", delay: float = 1.0, timeout: float = 5.0) -> BaseProvider:
        """Create a provider that sleeps ``delay`` seconds before every answer/chunk."""

        class SlowProvider(BaseProvider):
            def __init__(self):
                super().__init__(ProviderTestFactory.config(name, timeout=timeout))

            async def _complete_internal(self, request, model):
                await asyncio.sleep(delay)
                return StreamChunk(content='{"slow": true}', finish_reason="stop", model=model)

            async def _stream_internal(self, request, model):
                for content in ("slow", " tokens"):
                    await asyncio.sleep(delay)
                    yield StreamChunk(content=content, model=model)

        return SlowProvider()

    @staticmethod
    def gated_provider(name: str = "gated", chunks: Sequence[str] = ("Let's", " think", ".")) -> BaseProvider:
        """
        Create a streaming provider that waits on ``provider.release`` before
        the first chunk, so tests can observe a session mid-flight.
        """

        class GatedProvider(BaseProvider):
            def __init__(self):
                super().__init__(ProviderTestFactory.config(name))
                self.release = asyncio.Event()
                self.started = asyncio.Event()
                self.closed = False

            async def _complete_internal(self, request, model):
                await self.release.wait()
                return StreamChunk(content="".join(chunks), finish_reason="stop", model=model)

            async def _stream_internal(self, request, model):
                self.started.set()
                try:
                    await self.release.wait()
                    for content in chunks:
                        yield StreamChunk(content=content, model=model)
                        await asyncio.sleep(0)
                finally:
                    self.closed = True

        return GatedProvider()

    @staticmethod
    def registry(
        *providers: BaseProvider, preferred: str | None = None, fallback: str | None = None
    ) -> ProviderRegistry:
        """Registry over ``providers``; the first one is preferred unless named."""
        return ProviderRegistry.from_clients(
            providers, preferred=preferred or providers[0].name, fallback=fallback
        )
