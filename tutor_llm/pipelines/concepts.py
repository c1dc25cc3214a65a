"""Concept extraction: the academic concepts a piece of text discusses."""

from tutor_llm.core.config.constants import (
    CONCEPTS_MAX_OUTPUT_TOKENS,
    CONCEPTS_TEMPERATURE,
    ExpectedShape,
    Stage,
)
from tutor_llm.core.logging import get_logger
from tutor_llm.llm_stream.models.generation import GenerationRequest
from tutor_llm.llm_stream.services.provider_orchestrator import ProviderOrchestrator
from tutor_llm.pipelines.prompts import CONCEPTS_SYSTEM_PROMPT, build_concepts_prompt

logger = get_logger(__name__)


def normalize_concepts(concepts: list[str]) -> list[str]:
    """Trim, drop blanks and de-duplicate (case-insensitive), keeping first occurrences."""
    seen: set[str] = set()
    normalized = []
    for concept in concepts:
        name = concept.strip()
        key = name.casefold()
        if name and key not in seen:
            seen.add(key)
            normalized.append(name)
    return normalized


async def extract_concepts(
    orchestrator: ProviderOrchestrator,
    text: str,
    subject: str | None = None,
    *,
    allow_fallback: bool = True,
) -> list[str]:
    request = GenerationRequest(
        system_prompt=CONCEPTS_SYSTEM_PROMPT,
        user_prompt=build_concepts_prompt(text, subject),
        max_output_tokens=CONCEPTS_MAX_OUTPUT_TOKENS,
        temperature=CONCEPTS_TEMPERATURE,
        expected_shape=ExpectedShape.JSON_ARRAY,
    )
    result = await orchestrator.generate(request, schema=list[str], allow_fallback=allow_fallback)
    concepts = normalize_concepts(result.data)

    logger.debug(
        "Concepts extracted",
        stage=Stage.DOMAIN_VALIDATION,
        provider=result.provider_used,
        concepts=len(concepts),
    )
    return concepts
