"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
tutoring LLM layer. Provider credentials, model identifiers, cost tables and
behavioural knobs are all read from the environment (or a ``.env`` file) once
at startup.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms

Author: System Architect
Date: 2025-12-05
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tutor_llm.core.config.constants import CHAT_HISTORY_LIMIT, LLMProvider

_VALID_PROVIDERS = [p.value for p in LLMProvider]


def _validate_provider_name(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    value = value.strip().lower()
    if value not in _VALID_PROVIDERS:
        raise ValueError(f"provider must be one of {_VALID_PROVIDERS}, got '{value}'")
    return value


class LLMProviderSettings(BaseSettings):
    """
    LLM provider configuration.

    STAGE-0.1: Provider selection, credentials and cost tables

    Supports: Google Gemini, Anthropic Claude, OpenAI (plus the local fake backend)
    """

    AI_PROVIDER: str = Field(default="gemini", description="Preferred provider")
    AI_FALLBACK_PROVIDER: str | None = Field(default=None, description="Opt-in fallback provider")

    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.0-flash-exp", description="Gemini model id")
    GEMINI_COST_INPUT_PER_MILLION: float = Field(default=0.075)
    GEMINI_COST_OUTPUT_PER_MILLION: float = Field(default=0.30)

    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    CLAUDE_MODEL: str = Field(default="claude-3-haiku-20240307", description="Claude model id")
    CLAUDE_COST_INPUT_PER_MILLION: float = Field(default=0.25)
    CLAUDE_COST_OUTPUT_PER_MILLION: float = Field(default=1.25)

    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-3.5-turbo", description="OpenAI model id")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_COST_INPUT_PER_MILLION: float = Field(default=0.50)
    OPENAI_COST_OUTPUT_PER_MILLION: float = Field(default=1.50)

    PROVIDER_TIMEOUT: float = Field(default=60.0, gt=0, description="Per-request wall clock (seconds)")
    DEFAULT_MAX_OUTPUT_TOKENS: int = Field(default=500, gt=0)
    USE_FAKE_LLM: bool = Field(default=False, description="Register the scripted local backend")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ChatSettings(BaseSettings):
    """
    Tutoring chat configuration.

    STAGE-0.2: Chat limits
    """

    CHAT_HISTORY_LIMIT: int = Field(default=CHAT_HISTORY_LIMIT, ge=0)
    MAX_MESSAGE_LENGTH: int = Field(default=10_000, gt=0)
    CHAT_TAG_CONCEPTS: bool = False

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Tutor LLM Orchestrator", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from tutor_llm.core.config.settings import get_settings

        settings = get_settings()
        preferred = settings.llm.AI_PROVIDER
        history = settings.chat.CHAT_HISTORY_LIMIT
    """

    # Provider selection
    AI_PROVIDER: str = Field(default="gemini", description="Preferred provider")
    AI_FALLBACK_PROVIDER: str | None = Field(default=None, description="Opt-in fallback provider")

    # Gemini
    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.0-flash-exp", description="Gemini model id")
    GEMINI_COST_INPUT_PER_MILLION: float = Field(default=0.075, ge=0)
    GEMINI_COST_OUTPUT_PER_MILLION: float = Field(default=0.30, ge=0)

    # Claude
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    CLAUDE_MODEL: str = Field(default="claude-3-haiku-20240307", description="Claude model id")
    CLAUDE_COST_INPUT_PER_MILLION: float = Field(default=0.25, ge=0)
    CLAUDE_COST_OUTPUT_PER_MILLION: float = Field(default=1.25, ge=0)

    # OpenAI
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-3.5-turbo", description="OpenAI model id")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_COST_INPUT_PER_MILLION: float = Field(default=0.50, ge=0)
    OPENAI_COST_OUTPUT_PER_MILLION: float = Field(default=1.50, ge=0)

    # Provider behaviour
    PROVIDER_TIMEOUT: float = Field(default=60.0, gt=0, description="Per-request wall clock (seconds)")
    DEFAULT_MAX_OUTPUT_TOKENS: int = Field(default=500, gt=0)
    USE_FAKE_LLM: bool = Field(default=False, description="Register the scripted local backend")

    # Chat
    CHAT_HISTORY_LIMIT: int = Field(default=CHAT_HISTORY_LIMIT, ge=0)
    MAX_MESSAGE_LENGTH: int = Field(default=10_000, gt=0)
    CHAT_TAG_CONCEPTS: bool = False

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Tutor LLM Orchestrator", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("AI_PROVIDER")
    @classmethod
    def validate_provider(cls, v):
        """Validate the preferred provider name."""
        validated = _validate_provider_name(v)
        if validated is None:
            raise ValueError("AI_PROVIDER cannot be empty")
        return validated

    @field_validator("AI_FALLBACK_PROVIDER")
    @classmethod
    def validate_fallback_provider(cls, v):
        """Validate the fallback provider name (empty means no fallback)."""
        return _validate_provider_name(v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def drop_self_fallback(self):
        """A fallback identical to the preferred provider is no fallback at all."""
        if self.AI_FALLBACK_PROVIDER == self.AI_PROVIDER:
            self.AI_FALLBACK_PROVIDER = None
        return self

    @property
    def llm(self) -> 'LLMProviderSettings':
        """Get LLM provider settings."""
        return LLMProviderSettings(
            AI_PROVIDER=self.AI_PROVIDER,
            AI_FALLBACK_PROVIDER=self.AI_FALLBACK_PROVIDER,
            GEMINI_API_KEY=self.GEMINI_API_KEY,
            GEMINI_MODEL=self.GEMINI_MODEL,
            GEMINI_COST_INPUT_PER_MILLION=self.GEMINI_COST_INPUT_PER_MILLION,
            GEMINI_COST_OUTPUT_PER_MILLION=self.GEMINI_COST_OUTPUT_PER_MILLION,
            ANTHROPIC_API_KEY=self.ANTHROPIC_API_KEY,
            CLAUDE_MODEL=self.CLAUDE_MODEL,
            CLAUDE_COST_INPUT_PER_MILLION=self.CLAUDE_COST_INPUT_PER_MILLION,
            CLAUDE_COST_OUTPUT_PER_MILLION=self.CLAUDE_COST_OUTPUT_PER_MILLION,
            OPENAI_API_KEY=self.OPENAI_API_KEY,
            OPENAI_MODEL=self.OPENAI_MODEL,
            OPENAI_BASE_URL=self.OPENAI_BASE_URL,
            OPENAI_COST_INPUT_PER_MILLION=self.OPENAI_COST_INPUT_PER_MILLION,
            OPENAI_COST_OUTPUT_PER_MILLION=self.OPENAI_COST_OUTPUT_PER_MILLION,
            PROVIDER_TIMEOUT=self.PROVIDER_TIMEOUT,
            DEFAULT_MAX_OUTPUT_TOKENS=self.DEFAULT_MAX_OUTPUT_TOKENS,
            USE_FAKE_LLM=self.USE_FAKE_LLM,
        )

    @property
    def chat(self) -> 'ChatSettings':
        """Get chat settings."""
        return ChatSettings(
            CHAT_HISTORY_LIMIT=self.CHAT_HISTORY_LIMIT,
            MAX_MESSAGE_LENGTH=self.MAX_MESSAGE_LENGTH,
            CHAT_TAG_CONCEPTS=self.CHAT_TAG_CONCEPTS,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the process-wide settings instance.

    Settings are loaded lazily on first access and cached afterwards.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """
    Force settings to be re-read from the environment.

    Mostly useful in tests that patch environment variables.
    """
    global _settings
    _settings = Settings()
    return _settings
