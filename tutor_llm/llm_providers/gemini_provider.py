"""
Google Gemini LLM Provider Implementation

This module implements the Gemini provider using the google-generativeai library.
It maps Gemini's content/parts protocol and usage metadata onto StreamChunk.

Architectural Decision: Use google-generativeai SDK
- Native support for system instructions and chat history
- Handles authentication via API key
- Async streaming through ``generate_content_async(stream=True)``

Author: Senior Solution Architect
Date: 2025-12-05
"""

from collections.abc import AsyncGenerator
from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

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


def build_gemini_contents(request: GenerationRequest) -> list[dict[str, Any]]:
    """Gemini calls the assistant role ``model``; the system prompt travels separately."""
    contents = []
    for turn in request.history:
        role = "model" if turn.role is MessageRole.ASSISTANT else "user"
        contents.append({"role": role, "parts": [turn.content]})
    contents.append({"role": "user", "parts": [request.user_prompt]})
    return contents


def _usage_from_metadata(metadata: Any) -> TokenUsage | None:
    if metadata is None:
        return None
    prompt_tokens = getattr(metadata, "prompt_token_count", 0) or 0
    completion_tokens = getattr(metadata, "candidates_token_count", 0) or 0
    if not prompt_tokens and not completion_tokens:
        return None
    return TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)


def _chunk_text(response: Any) -> str:
    # ``.text`` raises ValueError when a chunk carries no text part (e.g. the closing chunk)
    try:
        return response.text or ""
    except ValueError:
        return ""


def _finish_reason(response: Any) -> str | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return getattr(reason, "name", str(reason)).lower()


class GeminiProvider(BaseProvider):
    """
    Concrete implementation of the Google Gemini LLM provider.

    STAGE-GEMINI: Gemini provider operations
    """

    def __init__(self, config: ProviderConfig):
        super().__init__(config)

        # The SDK is configured globally; one key per process is assumed
        genai.configure(api_key=config.api_key)

    def _model(self, request: GenerationRequest, model: str) -> "genai.GenerativeModel":
        return genai.GenerativeModel(model, system_instruction=request.system_prompt or None)

    def _generation_config(self, request: GenerationRequest) -> "genai.GenerationConfig":
        return genai.GenerationConfig(
            temperature=request.temperature,
            max_output_tokens=request.max_output_tokens,
        )

    async def _complete_internal(self, request: GenerationRequest, model: str) -> StreamChunk:
        try:
            response = await self._model(request, model).generate_content_async(
                build_gemini_contents(request),
                generation_config=self._generation_config(request),
            )
        except google_exceptions.GoogleAPIError as api_error:
            raise self._translate_error(api_error) from api_error

        return StreamChunk(
            content=_chunk_text(response),
            finish_reason=_finish_reason(response),
            model=model,
            usage=_usage_from_metadata(getattr(response, "usage_metadata", None)),
        )

    async def _stream_internal(
        self, request: GenerationRequest, model: str
    ) -> AsyncGenerator[StreamChunk, None]:
        try:
            response_stream = await self._model(request, model).generate_content_async(
                build_gemini_contents(request),
                generation_config=self._generation_config(request),
                stream=True,
            )

            usage = None
            finish_reason = None
            async for chunk in response_stream:
                # usage_metadata is cumulative; the last one wins
                usage = _usage_from_metadata(getattr(chunk, "usage_metadata", None)) or usage
                finish_reason = _finish_reason(chunk) or finish_reason
                text = _chunk_text(chunk)
                if text:
                    yield StreamChunk(content=text, model=model)

            yield StreamChunk(
                content="", model=model, finish_reason=finish_reason or "stop", usage=usage
            )
        except google_exceptions.GoogleAPIError as api_error:
            raise self._translate_error(api_error) from api_error

    def _translate_error(self, error: google_exceptions.GoogleAPIError) -> ProviderError:
        details = {"provider": self.name}

        if isinstance(error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)) or (
            isinstance(error, google_exceptions.InvalidArgument) and "api key" in str(error).lower()
        ):
            logger.error("Gemini authentication failed", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderAuthError("Invalid Gemini API key", details=details).with_suggestion(
                "Check GEMINI_API_KEY"
            )

        if isinstance(error, google_exceptions.ResourceExhausted):
            logger.warning("Gemini rate limit exceeded", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderRateLimitError("Gemini rate limit exceeded", details=details)

        if isinstance(
            error,
            (
                google_exceptions.ServiceUnavailable,
                google_exceptions.DeadlineExceeded,
                google_exceptions.InternalServerError,
            ),
        ):
            logger.error("Gemini service unavailable", stage=Stage.PROVIDER_ERROR, error=str(error))
            return ProviderUnavailableError("Gemini service unavailable", details=details)

        logger.error("Gemini API error", stage=Stage.PROVIDER_ERROR, error=str(error))
        return classify_provider_exception(error, self.name)
