"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures.conversation_factory import (  # noqa: E402
    InMemoryPersistence,
    RecordingSubscriber,
)
from tests.test_fixtures.provider_factory import ProviderTestFactory  # noqa: E402


# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio is loaded via pyproject.toml configuration


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Settings for a process with only the fake backend.

    Built without reading ``.env`` so local developer files do not leak in.
    """
    from tutor_llm.core.config.settings import Settings

    return Settings(
        _env_file=None,
        AI_PROVIDER="fake",
        USE_FAKE_LLM=True,
        ENVIRONMENT="test",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture(autouse=True)
def clean_provider_env(monkeypatch):
    """Keep real credentials in the environment out of unit tests."""
    for key in ("GEMINI_API_KEY", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "AI_PROVIDER", "AI_FALLBACK_PROVIDER"):
        monkeypatch.delenv(key, raising=False)


# ============================================================================
# Provider Fixtures
# ============================================================================


@pytest.fixture
def success_provider():
    """Provider that answers '{"a": 1}' and streams 'Hello world!'."""
    return ProviderTestFactory.success_provider(name="primary")


@pytest.fixture
def orchestrator(success_provider):
    """Orchestrator over a single succeeding provider."""
    from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator

    return ProviderOrchestrator(ProviderTestFactory.registry(success_provider))


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def persistence():
    """Empty in-memory persistence gateway."""
    return InMemoryPersistence()


@pytest.fixture
def recorder():
    """Subscriber that records every callback."""
    return RecordingSubscriber()
