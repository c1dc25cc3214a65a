"""
Generation Models

Immutable value objects that flow between pipelines, the orchestrator and
the provider clients. None of them carry a conversation identity: a request
describes *what* to generate, never *for whom*.
"""

import math
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, computed_field

from tutor_llm.core.config.constants import CHARS_PER_TOKEN, ExpectedShape, MessageRole

_ONE_MILLION = Decimal(1_000_000)


def estimate_tokens(text: str) -> int:
    """Rough token estimate used when a provider reports no usage."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TokenUsage(BaseModel):
    """Token counts reported by (or estimated for) one generation."""

    model_config = {"frozen": True}

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)

    @computed_field
    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @classmethod
    def estimate(cls, prompt_text: str, completion_text: str) -> "TokenUsage":
        return cls(
            prompt_tokens=estimate_tokens(prompt_text),
            completion_tokens=estimate_tokens(completion_text),
        )


class ProviderProfile(BaseModel):
    """
    Static description of one configured backend.

    Built once at startup and never mutated afterwards. ``api_key_ref`` names
    the environment variable holding the credential; the key itself never
    lives on the profile.
    """

    model_config = {"frozen": True}

    name: str = Field(..., min_length=1)
    model_id: str = Field(..., min_length=1)
    api_key_ref: str = Field(default="")
    cost_per_million_input_tokens: float = Field(default=0.0, ge=0)
    cost_per_million_output_tokens: float = Field(default=0.0, ge=0)

    def calculate_cost(self, usage: TokenUsage) -> float:
        """
        Cost in USD of a generation with the given usage.

        Linear in both token counts.
        """
        cost = (
            Decimal(usage.prompt_tokens) * Decimal(str(self.cost_per_million_input_tokens))
            + Decimal(usage.completion_tokens) * Decimal(str(self.cost_per_million_output_tokens))
        ) / _ONE_MILLION
        return float(cost)


class ChatMessage(BaseModel):
    """One prior turn of a conversation."""

    model_config = {"frozen": True}

    role: MessageRole
    content: str


class GenerationRequest(BaseModel):
    """
    A single generation, independent of which provider serves it.

    ``history`` holds prior chat turns (oldest first); it is empty for
    one-shot pipeline generations.
    """

    model_config = {"frozen": True}

    system_prompt: str = ""
    user_prompt: str = Field(..., min_length=1)
    max_output_tokens: int = Field(default=500, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    expected_shape: ExpectedShape = ExpectedShape.FREE_TEXT
    history: tuple[ChatMessage, ...] = ()

    def prompt_text(self) -> str:
        """All prompt text concatenated, for token estimation."""
        parts = [self.system_prompt, *(m.content for m in self.history), self.user_prompt]
        return "\n".join(p for p in parts if p)


class GenerationResult(BaseModel):
    """
    Outcome of a successful generation.

    ``data`` is filled in by the orchestrator: the extracted structured value
    for JSON shapes, the trimmed text for free text. Providers leave it unset.
    """

    model_config = {"frozen": True}

    text: str
    usage: TokenUsage
    provider_used: str
    model: str | None = None
    data: Any = None
    cost_usd: float = 0.0
