"""Provider output and consensus models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CONSENSUS_POLICY = "majority-of-successful-responses with confidence tiebreak"


class Completion(BaseModel):
    """Normalized reply of one provider call."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    text: str
    tokens: int | None = None


class ProviderFailure(BaseModel):
    """One provider that did not contribute an opinion, and why."""

    model_config = ConfigDict(frozen=True)

    provider: str
    error_type: str
    error: str

    @classmethod
    def from_exception(cls, provider: str, exc: BaseException) -> ProviderFailure:
        return cls(provider=provider, error_type=type(exc).__name__, error=str(exc))


class ProviderOpinion(BaseModel):
    """A provider's categorical answer plus its self-reported confidence.

    ``lists`` holds supplementary list fields (pros, cons, recommendations)
    that are unioned across opinions; ``fields`` holds any other scalar
    fields that are kept only when every opinion agrees on them.
    """

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str = ""
    recommendation: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    lists: dict[str, list[str]] = Field(default_factory=dict)
    fields: dict[str, Any] = Field(default_factory=dict)


class ConsensusResult(BaseModel):
    """The reduced decision of N provider opinions."""

    model_config = ConfigDict(frozen=True)

    recommendation: str
    confidence: float
    models_agree: bool
    winner: str
    # Mean confidence over every successful opinion, for reporting.
    mean_confidence: float
    votes: dict[str, int] = Field(default_factory=dict)
    merged_lists: dict[str, list[str]] = Field(default_factory=dict)
    agreed_fields: dict[str, Any] = Field(default_factory=dict)
    opinions: list[ProviderOpinion] = Field(default_factory=list)
    failures: list[ProviderFailure] = Field(default_factory=list)
    policy: str = CONSENSUS_POLICY

    @property
    def providers(self) -> list[str]:
        return [o.provider for o in self.opinions]
