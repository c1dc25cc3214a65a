"""Orchestration services: output extraction, provider selection and session registry."""

from tutor_llm.llm_stream.services.output_extractor import StructuredOutputExtractor, extract
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.llm_stream.services.session_registry import SessionRegistry

__all__ = [
    "StructuredOutputExtractor",
    "extract",
    "ProviderOrchestrator",
    "SessionRegistry",
]
