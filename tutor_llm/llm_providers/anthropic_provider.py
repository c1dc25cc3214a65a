"""
Anthropic Claude LLM Provider Implementation

This module implements the Claude provider using the official AsyncAnthropic
client (Messages API).

Architectural Decision: Use official SDK
- ``messages.stream`` yields text deltas and a final message with usage
- SDK retries disabled; fallback policy lives in the orchestrator

Author: Senior Solution Architect
Date: 2025-12-05
"""

from collections.abc import AsyncGenerator
from typing import Any

from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncAnthropic,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from tutor_llm.core.config.constants import MessageRole, Stage
from tutor_llm.core.exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_providers.base_provider import (
    BaseProvider,
    ProviderConfig,
    StreamChunk,
    classify_provider_exception,
)
from tutor_llm.llm_stream.models.generation import GenerationRequest, TokenUsage

logger = get_logger(__name__)


def build_anthropic_messages(request: GenerationRequest) -> list[dict[str, Any]]:
    """
    Prior turns plus the user prompt, as the Messages API expects them.

    The API requires alternating roles starting with ``user``; consecutive
    turns with the same role are merged and a leading assistant turn is dropped.
    """
    messages: list[dict[str, Any]] = []
    turns = [(t.role, t.content) for t in request.history if t.role is not MessageRole.SYSTEM]
    turns.append((MessageRole.USER, request.user_prompt))
    for role, content in turns:
        if not messages and role is MessageRole.ASSISTANT:
            continue
        if messages and messages[-1]["role"] == role.value:
            messages[-1]["content"] = f"{messages[-1]['content']}\n\n{content}"
        else:
            messages.append({"role": role.value, "content": content})
    return messages


def _usage_from_message(message: Any) -> TokenUsage | None:
    usage = getattr(message, "usage", None)
    if usage is None:
        return None
    return TokenUsage(
        prompt_tokens=int(getattr(usage, "input_tokens", 0) or 0),
        completion_tokens=int(getattr(usage, "output_tokens", 0) or 0),
    )


def _message_text(message: Any) -> str:
    return "".join(
        getattr(block, "text", "")
        for block in getattr(message, "content", None) or []
        if getattr(block, "type", None) == "text"
    )


class AnthropicProvider(BaseProvider):
    """
    Concrete implementation of the Anthropic Claude provider.

    STAGE-CLAUDE: Claude provider operations
    """

    def __init__(self, config: ProviderConfig, client: AsyncAnthropic | None = None):
        super().__init__(config)
        self.client = client or AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url or None,
            timeout=config.timeout,
            max_retries=0,
        )

    def _request_kwargs(self, request: GenerationRequest, model: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_output_tokens,
            "temperature": request.temperature,
            "messages": build_anthropic_messages(request),
        }
        if request.system_prompt:
            kwargs["system"] = request.system_prompt
        return kwargs

    async def _complete_internal(self, request: GenerationRequest, model: str) -> StreamChunk:
        try:
            message = await self.client.messages.create(**self._request_kwargs(request, model))
        except APIError as api_error:
            raise self._translate_error(api_error) from api_error

        return StreamChunk(
            content=_message_text(message),
            finish_reason=getattr(message, "stop_reason", None),
            model=getattr(message, "model", model),
            usage=_usage_from_message(message),
        )

    async def _stream_internal(
        self, request: GenerationRequest, model: str
    ) -> AsyncGenerator[StreamChunk, None]:
        try:
            async with self.client.messages.stream(**self._request_kwargs(request, model)) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield StreamChunk(content=text, model=model)
                final_message = await stream.get_final_message()

            yield StreamChunk(
                content="",
                finish_reason=getattr(final_message, "stop_reason", None) or "stop",
                model=getattr(final_message, "model", model),
                usage=_usage_from_message(final_message),
            )
        except APIError as api_error:
            raise self._translate_error(api_error) from api_error

    def _translate_error(self, error: APIError) -> ProviderError:
        details = {"provider": self.name}

        if isinstance(error, (AuthenticationError, PermissionDeniedError)):
            logger.error("Claude authentication failed", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderAuthError("Invalid Anthropic API key", details=details).with_suggestion(
                "Check ANTHROPIC_API_KEY"
            )

        if isinstance(error, RateLimitError):
            logger.warning("Claude rate limit exceeded", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderRateLimitError("Claude rate limit exceeded", details=details)

        if isinstance(error, APIConnectionError):
            logger.error("Claude connection failed", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderUnavailableError("Could not connect to Anthropic", details=details)

        if isinstance(error, APIStatusError):
            return classify_provider_exception(error, self.name)

        logger.error("Claude API error", stage=Stage.PROVIDER_ERROR, error=str(error))
        return ProviderUnavailableError(f"Anthropic API error: {error.message}", details=details)
