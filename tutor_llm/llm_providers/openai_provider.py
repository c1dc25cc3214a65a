"""
OpenAI LLM Provider Implementation

This module implements the OpenAI provider using the official AsyncOpenAI client.
It handles authentication, completion, streaming, and error mapping to the
internal exception hierarchy.

Architectural Decision: Use official SDK
- Best compatibility with OpenAI features (usage on the final stream chunk)
- SDK retries disabled; fallback policy lives in the orchestrator

Author: Senior Solution Architect
Date: 2025-12-05
"""

from collections.abc import AsyncGenerator
from typing import Any

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from tutor_llm.core.config.constants import Stage
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

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"


def build_openai_messages(request: GenerationRequest) -> list[dict[str, str]]:
    """System prompt, prior turns, then the current user prompt."""
    messages: list[dict[str, str]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    for turn in request.history:
        messages.append({"role": turn.role.value, "content": turn.content})
    messages.append({"role": "user", "content": request.user_prompt})
    return messages


def _usage_from_response(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


class OpenAIProvider(BaseProvider):
    """
    Concrete implementation of the OpenAI LLM provider.

    STAGE-OPENAI: OpenAI provider operations

    Manages the AsyncOpenAI client and translates OpenAI-specific exceptions
    into the provider error taxonomy.
    """

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        """
        Initialize the OpenAI provider.

        Args:
            config: Configuration object containing API key, base URL, etc.
            client: Pre-built client (tests inject a mock here)
        """
        super().__init__(config)

        use_custom_url = config.base_url and config.base_url != OPENAI_DEFAULT_BASE_URL
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url if use_custom_url else None,
            timeout=config.timeout,
            max_retries=0,
        )

    async def _complete_internal(self, request: GenerationRequest, model: str) -> StreamChunk:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=build_openai_messages(request),
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
            )
        except APIError as api_error:
            raise self._translate_error(api_error) from api_error

        choice = response.choices[0] if response.choices else None
        return StreamChunk(
            content=(choice.message.content or "") if choice else "",
            finish_reason=choice.finish_reason if choice else None,
            model=response.model,
            usage=_usage_from_response(response.usage),
        )

    async def _stream_internal(
        self, request: GenerationRequest, model: str
    ) -> AsyncGenerator[StreamChunk, None]:
        try:
            stream_response = await self.client.chat.completions.create(
                model=model,
                messages=build_openai_messages(request),
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )

            finish_reason = None
            async for chunk in stream_response:
                if chunk.choices:
                    delta = chunk.choices[0].delta
                    if chunk.choices[0].finish_reason:
                        finish_reason = chunk.choices[0].finish_reason
                    if delta is not None and delta.content:
                        yield StreamChunk(content=delta.content, model=chunk.model)

                # With include_usage the last chunk has no choices and carries usage
                if getattr(chunk, "usage", None) is not None:
                    yield StreamChunk(
                        content="",
                        finish_reason=finish_reason or "stop",
                        model=chunk.model,
                        usage=_usage_from_response(chunk.usage),
                    )
        except APIError as api_error:
            raise self._translate_error(api_error) from api_error

    def _translate_error(self, error: APIError) -> ProviderError:
        details = {"provider": self.name}

        if isinstance(error, (AuthenticationError, PermissionDeniedError)):
            logger.error("OpenAI authentication failed", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderAuthError("Invalid OpenAI API key", details=details).with_suggestion(
                "Check OPENAI_API_KEY"
            )

        if isinstance(error, RateLimitError):
            logger.warning("OpenAI rate limit exceeded", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderRateLimitError("OpenAI rate limit exceeded", details=details)

        if isinstance(error, APIConnectionError):
            logger.error("OpenAI connection failed", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderUnavailableError("Could not connect to OpenAI", details=details)

        if isinstance(error, APIStatusError):
            return classify_provider_exception(error, self.name)

        logger.error("OpenAI API error", stage=Stage.PROVIDER_ERROR, error=str(error))
        return ProviderUnavailableError(
            f"OpenAI API returned an error: {error.message}",
            details={**details, "code": error.code},
        )
