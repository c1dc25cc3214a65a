"""
LLM Provider Registry

Builds the process-wide, immutable provider registry from validated settings
during application startup.

Architectural Decision: Centralized provider registration
- Single location for all provider configurations
- Conditional registration based on credential availability
- Built once and injected; no lazily-initialised client globals

Author: System Architect
Date: 2025-12-05
"""

from collections.abc import Iterable

from tutor_llm.core.config.constants import LLMProvider, Stage
from tutor_llm.core.config.settings import Settings, get_settings
from tutor_llm.core.logging.logger import get_logger
from tutor_llm.llm_providers.base_provider import BaseProvider, ProviderConfig, ProviderRegistry
from tutor_llm.llm_stream.models.generation import ProviderProfile

logger = get_logger(__name__)

_KNOWN_PROVIDERS = frozenset(p.value for p in LLMProvider)


def default_profiles(settings: Settings) -> dict[str, ProviderProfile]:
    """Provider profiles derived from settings, keyed by provider name."""
    return {
        LLMProvider.GEMINI.value: ProviderProfile(
            name=LLMProvider.GEMINI.value,
            model_id=settings.GEMINI_MODEL,
            api_key_ref="GEMINI_API_KEY",
            cost_per_million_input_tokens=settings.GEMINI_COST_INPUT_PER_MILLION,
            cost_per_million_output_tokens=settings.GEMINI_COST_OUTPUT_PER_MILLION,
        ),
        LLMProvider.CLAUDE.value: ProviderProfile(
            name=LLMProvider.CLAUDE.value,
            model_id=settings.CLAUDE_MODEL,
            api_key_ref="ANTHROPIC_API_KEY",
            cost_per_million_input_tokens=settings.CLAUDE_COST_INPUT_PER_MILLION,
            cost_per_million_output_tokens=settings.CLAUDE_COST_OUTPUT_PER_MILLION,
        ),
        LLMProvider.OPENAI.value: ProviderProfile(
            name=LLMProvider.OPENAI.value,
            model_id=settings.OPENAI_MODEL,
            api_key_ref="OPENAI_API_KEY",
            cost_per_million_input_tokens=settings.OPENAI_COST_INPUT_PER_MILLION,
            cost_per_million_output_tokens=settings.OPENAI_COST_OUTPUT_PER_MILLION,
        ),
        LLMProvider.FAKE.value: ProviderProfile(
            name=LLMProvider.FAKE.value,
            model_id="fake-model",
            api_key_ref="",
        ),
    }


def _create_client(profile: ProviderProfile, api_key: str, settings: Settings) -> BaseProvider:
    timeout = settings.PROVIDER_TIMEOUT

    if profile.name == LLMProvider.GEMINI.value:
        from tutor_llm.llm_providers.gemini_provider import GeminiProvider

        return GeminiProvider(ProviderConfig(profile=profile, api_key=api_key, timeout=timeout))

    if profile.name == LLMProvider.CLAUDE.value:
        from tutor_llm.llm_providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(ProviderConfig(profile=profile, api_key=api_key, timeout=timeout))

    if profile.name == LLMProvider.OPENAI.value:
        from tutor_llm.llm_providers.openai_provider import OpenAIProvider

        return OpenAIProvider(
            ProviderConfig(
                profile=profile,
                api_key=api_key,
                base_url=settings.OPENAI_BASE_URL,
                timeout=timeout,
            )
        )

    from tutor_llm.llm_providers.fake_provider import FakeProvider

    return FakeProvider(ProviderConfig(profile=profile, api_key="fake-key", timeout=timeout))


def build_provider_registry(
    settings: Settings | None = None,
    profiles: Iterable[ProviderProfile] | None = None,
) -> ProviderRegistry:
    """
    Create a client for every provider that has credentials and wrap them in a registry.

    Args:
        settings: Settings to read (defaults to the global settings)
        profiles: Stored profiles (e.g. from persistence) overriding the
            settings-derived ones with the same name

    Raises:
        ConfigurationError: If the preferred or fallback provider has no credentials
    """
    settings = settings or get_settings()

    resolved = default_profiles(settings)
    for profile in profiles or ():
        resolved[profile.name] = profile

    wanted = {settings.AI_PROVIDER, settings.AI_FALLBACK_PROVIDER}
    clients: dict[str, BaseProvider] = {}

    for name, profile in resolved.items():
        if name not in _KNOWN_PROVIDERS:
            logger.warning("Ignoring profile for unknown provider", stage=Stage.INITIALIZATION, provider=name)
            continue

        if name == LLMProvider.FAKE.value:
            if settings.USE_FAKE_LLM or name in wanted:
                clients[name] = _create_client(profile, "", settings)
                logger.info("Registered fake provider", stage=Stage.INITIALIZATION)
            continue

        api_key = getattr(settings, profile.api_key_ref, None) if profile.api_key_ref else None
        if not api_key:
            logger.debug("Skipping provider without credentials", stage=Stage.INITIALIZATION, provider=name)
            continue

        clients[name] = _create_client(profile, api_key, settings)
        logger.info("Registered provider", stage=Stage.INITIALIZATION, provider=name, model=profile.model_id)

    return ProviderRegistry(clients, settings.AI_PROVIDER, settings.AI_FALLBACK_PROVIDER)
