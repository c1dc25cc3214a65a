"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .conversation_factory import (
    ConversationTestFactory,
    FailingPersistence,
    GatedPersistence,
    InMemoryPersistence,
    RecordingSubscriber,
)
from .payload_factory import PayloadFactory
from .provider_factory import ProviderTestFactory

__all__ = [
    "ConversationTestFactory",
    "FailingPersistence",
    "GatedPersistence",
    "InMemoryPersistence",
    "PayloadFactory",
    "ProviderTestFactory",
    "RecordingSubscriber",
]
