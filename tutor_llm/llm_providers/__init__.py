"""
LLM provider clients.

Each backend implements the same ``complete`` / ``stream`` call shape on top
of ``BaseProvider``. Concrete SDK-backed clients are imported lazily by the
provider registry so that only configured backends load their SDKs.
"""

from tutor_llm.llm_providers.base_provider import (
    BaseProvider,
    ProviderClient,
    ProviderConfig,
    ProviderRegistry,
    StreamChunk,
    classify_provider_exception,
)
from tutor_llm.llm_providers.fake_provider import FakeProvider

__all__ = [
    "BaseProvider",
    "ProviderClient",
    "ProviderConfig",
    "ProviderRegistry",
    "StreamChunk",
    "FakeProvider",
    "classify_provider_exception",
]
