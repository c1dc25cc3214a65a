import asyncio
import random
from collections.abc import AsyncGenerator, Sequence

from tutor_llm.core.config.constants import ExpectedShape
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_providers.base_provider import BaseProvider, ProviderConfig, StreamChunk
from tutor_llm.llm_stream.models.generation import GenerationRequest, TokenUsage

logger = get_logger(__name__)

_DEFAULT_TUTOR_REPLY = (
    "Good question! Before I explain, what do you already know about this topic? "
    "Try breaking the problem into smaller steps and tell me what the first step might be."
)


class FakeProvider(BaseProvider):
    """
    A fake LLM provider for local experiments and tests.

    Replies are taken from ``responses`` in order (cycling), or a canned
    tutoring reply when none are scripted. JSON-shaped requests without a
    script get an empty JSON value of the right shape. Streaming splits the
    reply into small chunks with optional simulated latency.
    """

    def __init__(
        self,
        config: ProviderConfig,
        responses: Sequence[str] | None = None,
        chars_per_chunk: int = 4,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        super().__init__(config)
        self.responses = list(responses or [])
        self.chars_per_chunk = max(1, chars_per_chunk)
        self.min_latency = min_latency
        self.max_latency = max(max_latency, min_latency)
        self._next_response = 0

    def _reply_for(self, request: GenerationRequest) -> str:
        if self.responses:
            reply = self.responses[self._next_response % len(self.responses)]
            self._next_response += 1
            return reply
        if request.expected_shape is ExpectedShape.JSON_OBJECT:
            return "{}"
        if request.expected_shape is ExpectedShape.JSON_ARRAY:
            return "[]"
        return _DEFAULT_TUTOR_REPLY

    async def _pause(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    async def _complete_internal(self, request: GenerationRequest, model: str) -> StreamChunk:
        await self._pause()
        text = self._reply_for(request)
        return StreamChunk(
            content=text,
            finish_reason="stop",
            model=model,
            usage=TokenUsage.estimate(request.prompt_text(), text),
        )

    async def _stream_internal(
        self, request: GenerationRequest, model: str
    ) -> AsyncGenerator[StreamChunk, None]:
        text = self._reply_for(request)
        for start in range(0, len(text), self.chars_per_chunk):
            await self._pause()
            yield StreamChunk(content=text[start : start + self.chars_per_chunk], model=model)

        yield StreamChunk(
            content="",
            finish_reason="stop",
            model=model,
            usage=TokenUsage.estimate(request.prompt_text(), text),
        )
