"""
Base Provider Abstract Class

This module defines the abstract base class for all LLM provider clients.
Concrete implementations (Gemini, Claude, OpenAI, Fake) inherit from this class.

Architectural Decision: Abstract base class for consistent patterns
- One call shape for every backend (``complete`` / ``stream``)
- Wall-clock timeout enforced here, once, for every backend
- Uniform error classification (auth / rate limit / unavailable)
- No retries: fallback policy belongs to the orchestrator

Author: Senior Solution Architect
Date: 2025-12-05
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

from tutor_llm.core.config.constants import Stage
from tutor_llm.core.exceptions import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import (
    GenerationRequest,
    GenerationResult,
    ProviderProfile,
    TokenUsage,
)

logger = get_logger(__name__)

AUTH_STATUS_CODES = frozenset({401, 403})
RATE_LIMIT_STATUS_CODES = frozenset({429})


@dataclass
class StreamChunk:
    """
    Represents a single chunk of a provider response.

    ``complete`` implementations return one chunk holding the whole text.
    The last chunk of every stream carries ``usage``.

    Attributes:
        content: Text content of the chunk
        finish_reason: Why generation ended (if applicable)
        model: Model that generated the chunk
        usage: Token usage (final chunk only)
        timestamp: When chunk was received
        provider: Provider that produced the chunk (stamped by the orchestrator)
    """
    content: str
    finish_reason: str | None = None
    model: str | None = None
    usage: TokenUsage | None = None
    timestamp: str | None = None
    provider: str | None = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ProviderConfig:
    """
    Configuration for an LLM provider client.

    Attributes:
        profile: Static profile (name, model id, cost table)
        api_key: Credential resolved from ``profile.api_key_ref``
        base_url: Base URL for API (empty means SDK default)
        timeout: Per-request wall clock in seconds
    """
    profile: ProviderProfile
    api_key: str
    base_url: str = ""
    timeout: float = 60.0

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def default_model(self) -> str:
        return self.profile.model_id


@runtime_checkable
class ProviderClient(Protocol):
    """
    Capability every backend exposes to the orchestrator.

    Implementations are stateless with respect to requests and safe to call
    concurrently; they never retry on their own.
    """

    name: str
    profile: ProviderProfile

    async def complete(self, request: GenerationRequest) -> GenerationResult:
        ...

    def stream(self, request: GenerationRequest) -> AsyncIterator[StreamChunk]:
        ...


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("status_code", "status", "code"):
            value = getattr(current, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(current, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
        current = current.__cause__ or current.__context__
    return None


def classify_provider_exception(exc: Exception, provider: str) -> ProviderError:
    """
    Map an unrecognised SDK exception onto the provider error taxonomy.

    401/403 -> ProviderAuthError, 429 -> ProviderRateLimitError,
    anything else -> ProviderUnavailableError.
    """
    if isinstance(exc, ProviderError):
        exc.details.setdefault("provider", provider)
        return exc

    status_code = extract_status_code(exc)
    details = {"provider": provider, "status_code": status_code}
    if status_code in AUTH_STATUS_CODES:
        return ProviderAuthError.from_exception(
            exc, message=f"{provider} rejected the credentials", **details
        )
    if status_code in RATE_LIMIT_STATUS_CODES:
        return ProviderRateLimitError.from_exception(
            exc, message=f"{provider} rate limit exceeded", **details
        )
    return ProviderUnavailableError.from_exception(
        exc, message=f"{provider} request failed: {exc}", **details
    )


class BaseProvider(ABC):
    """
    Abstract base class for LLM provider clients.

    STAGE-4: Provider call

    This class provides:
    - ``complete`` and ``stream`` with the wall-clock timeout applied
    - Classification of anything a subclass did not map itself
    - Usage estimation when the backend reports none
    - Structured logging of every call

    Subclasses must implement:
    - _complete_internal(): one-shot generation returning a single StreamChunk
    - _stream_internal(): incremental generation yielding StreamChunks

    Subclasses map the SDK exceptions they know about; anything else that
    escapes is classified by HTTP status code.
    """

    def __init__(self, config: ProviderConfig):
        """
        Initialize base provider.

        Args:
            config: Provider configuration
        """
        self.config = config
        self.profile = config.profile
        self.name = config.name

        logger.info(
            "Provider initialized",
            stage=Stage.INITIALIZATION,
            provider=self.name,
            model=config.default_model,
            timeout=config.timeout,
        )

    async def complete(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate a full response.

        Raises:
            ProviderAuthError: Credentials rejected
            ProviderRateLimitError: Backend throttled the request
            ProviderUnavailableError: Network/5xx/timeout/unknown failure
        """
        model = self.config.default_model
        logger.info(
            "Starting completion",
            stage=Stage.PROVIDER_CALL,
            provider=self.name,
            model=model,
            expected_shape=request.expected_shape.value,
            max_output_tokens=request.max_output_tokens,
        )

        try:
            chunk = await asyncio.wait_for(
                self._complete_internal(request, model), timeout=self.config.timeout
            )
        except asyncio.TimeoutError as e:
            raise self._timeout_error() from e
        except ProviderError as e:
            e.details.setdefault("provider", self.name)
            self._log_failure(e)
            raise
        except Exception as e:
            error = classify_provider_exception(e, self.name)
            self._log_failure(error)
            raise error from e

        usage = chunk.usage or TokenUsage.estimate(request.prompt_text(), chunk.content)
        logger.info(
            "Completion finished",
            stage=Stage.PROVIDER_CALL,
            provider=self.name,
            finish_reason=chunk.finish_reason,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
        )
        return GenerationResult(
            text=chunk.content,
            usage=usage,
            provider_used=self.name,
            model=chunk.model or model,
            cost_usd=self.profile.calculate_cost(usage),
        )

    async def stream(self, request: GenerationRequest) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream a response chunk by chunk.

        The whole stream shares one wall-clock budget; each chunk may take at
        most whatever is left of it. The deadline also runs while the
        consumer holds the stream between chunks, so a subscriber that is
        slow to take a token spends the same budget. The final chunk always
        carries usage (estimated when the backend reports none).

        Yields:
            StreamChunk: Response chunks in provider order
        """
        model = self.config.default_model
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.timeout

        logger.info(
            "Starting stream",
            stage=Stage.PROVIDER_CALL,
            provider=self.name,
            model=model,
            history_turns=len(request.history),
        )

        iterator = self._stream_internal(request, model).__aiter__()
        chunk_count = 0
        parts: list[str] = []
        usage: TokenUsage | None = None
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise self._timeout_error()
                try:
                    chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as e:
                    raise self._timeout_error() from e
                except ProviderError as e:
                    e.details.setdefault("provider", self.name)
                    self._log_failure(e, chunk_count=chunk_count)
                    raise
                except Exception as e:
                    error = classify_provider_exception(e, self.name)
                    self._log_failure(error, chunk_count=chunk_count)
                    raise error from e

                chunk_count += 1
                parts.append(chunk.content)
                if chunk.usage is not None:
                    usage = chunk.usage
                yield chunk
        finally:
            await iterator.aclose()

        if usage is None:
            usage = TokenUsage.estimate(request.prompt_text(), "".join(parts))
            yield StreamChunk(content="", finish_reason="stop", model=model, usage=usage)

        logger.info(
            "Stream completed",
            stage=Stage.PROVIDER_CALL,
            provider=self.name,
            chunk_count=chunk_count,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
        )

    def _timeout_error(self) -> ProviderUnavailableError:
        logger.error(
            "Provider timed out",
            stage=Stage.PROVIDER_ERROR,
            provider=self.name,
            timeout=self.config.timeout,
        )
        return ProviderUnavailableError(
            f"{self.name} did not answer within {self.config.timeout}s",
            details={"provider": self.name, "timeout": self.config.timeout},
        )

    def _log_failure(self, error: ProviderError, **extra: Any) -> None:
        logger.error(
            "Provider call failed",
            stage=Stage.PROVIDER_ERROR,
            provider=self.name,
            error_type=type(error).__name__,
            error=error.message,
            **extra,
        )

    @abstractmethod
    async def _complete_internal(self, request: GenerationRequest, model: str) -> StreamChunk:
        """
        Provider-specific one-shot generation.

        Returns:
            StreamChunk: The whole response text, with usage when available
        """
        pass

    @abstractmethod
    def _stream_internal(
        self, request: GenerationRequest, model: str
    ) -> AsyncGenerator[StreamChunk, None]:
        """
        Provider-specific streaming generation.

        Yields:
            StreamChunk: Response chunks; the last one should carry usage
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', model='{self.config.default_model}')"


class ProviderRegistry:
    """
    Immutable name -> client mapping, built once at startup.

    STAGE-3: Provider selection

    Holds the preferred provider and the optional fallback. The registry is
    injected into the orchestrator, so tests build one from fake clients
    with ``from_clients``.

    Usage:
        registry = ProviderRegistry.from_clients([gemini, claude], preferred="gemini", fallback="claude")
        registry.chain(allow_fallback=True)  # (gemini, claude)
    """

    def __init__(
        self,
        clients: Mapping[str, ProviderClient],
        preferred: str,
        fallback: str | None = None,
    ):
        if preferred not in clients:
            raise ConfigurationError(
                f"Preferred provider '{preferred}' is not configured",
                details={"provider": preferred, "configured": sorted(clients)},
            ).with_suggestion("Set the provider's API key or change AI_PROVIDER")
        if fallback is not None and fallback not in clients:
            raise ConfigurationError(
                f"Fallback provider '{fallback}' is not configured",
                details={"provider": fallback, "configured": sorted(clients)},
            ).with_suggestion("Set the provider's API key or unset AI_FALLBACK_PROVIDER")

        self._clients: Mapping[str, ProviderClient] = MappingProxyType(dict(clients))
        self._preferred = preferred
        self._fallback = fallback if fallback != preferred else None

        logger.info(
            "Provider registry built",
            stage=Stage.PROVIDER_SELECTION,
            providers=sorted(self._clients),
            preferred=self._preferred,
            fallback=self._fallback,
        )

    @classmethod
    def from_clients(
        cls, clients: Iterable[ProviderClient], preferred: str, fallback: str | None = None
    ) -> "ProviderRegistry":
        return cls({client.name: client for client in clients}, preferred, fallback)

    @property
    def preferred(self) -> str:
        return self._preferred

    @property
    def fallback(self) -> str | None:
        return self._fallback

    def get(self, name: str) -> ProviderClient:
        try:
            return self._clients[name]
        except KeyError:
            raise ConfigurationError(
                f"Provider not registered: {name}", details={"provider": name}
            ) from None

    def profile(self, name: str) -> ProviderProfile:
        return self.get(name).profile

    def chain(self, allow_fallback: bool = False) -> tuple[ProviderClient, ...]:
        """Providers to try, in order: the preferred one, then the fallback if allowed."""
        chain = [self._clients[self._preferred]]
        if allow_fallback and self._fallback is not None:
            chain.append(self._clients[self._fallback])
        return tuple(chain)

    def names(self) -> list[str]:
        return list(self._clients)

    def __contains__(self, name: object) -> bool:
        return name in self._clients

    def __len__(self) -> int:
        return len(self._clients)
