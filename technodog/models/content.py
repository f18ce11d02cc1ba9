"""Knowledge-base records read and written by the agents.

These mirror the hosted tables the agents touch: artist catalog links,
doggy share statistics, books and curated channel videos.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class CandidateStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MergeCandidate(BaseModel):
    """A proposed link between a RAG artist row and a canonical artist.

    Resolution is human-reviewed unless the reported confidence crosses the
    configured auto-approve threshold.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    rag_artist_id: str
    canonical_artist_id: str
    confidence: float = 0.0
    reason: str = ""
    status: CandidateStatus = CandidateStatus.PENDING
    resolved_by: str | None = None
    version: int = 1


class SourceMapping(BaseModel):
    """A link from a source-system record to its canonical artist."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    source_system: str
    source_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))  # noqa: UP017


class ShareStats(BaseModel):
    """Aggregated doggy share events over a time window."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    by_platform: dict[str, int] = Field(default_factory=dict)
    by_doggy: dict[str, int] = Field(default_factory=dict)
    reshares: int = 0
    viral_chains: int = 0
    avg_chain_depth: float = 0.0
    top_performers: list[str] = Field(default_factory=list)

    @property
    def top_platform(self) -> str | None:
        if not self.by_platform:
            return None
        return max(self.by_platform.items(), key=lambda kv: kv[1])[0]

    @property
    def reshare_rate(self) -> float:
        return (self.reshares / self.total * 100.0) if self.total else 0.0


class Book(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    author: str = ""
    isbn: str | None = None
    publisher: str | None = None
    year_published: int | None = None
    pages: int | None = None
    status: str = "published"


class VerificationStatus(str, Enum):  # noqa: UP042
    VERIFIED = "verified"
    PARTIAL = "partial"
    NEEDS_REVIEW = "needs_review"


class BookResearchResult(BaseModel):
    """Research outcome for one book, returned for human review."""

    book_id: str
    title: str
    verified_data: dict[str, Any] = Field(default_factory=dict)
    unverified_data: dict[str, Any] = Field(default_factory=dict)
    verification_status: VerificationStatus = VerificationStatus.NEEDS_REVIEW
    model_agreement: dict[str, bool] = Field(
        default_factory=lambda: {"anthropic": False, "gemini": False, "openai": False}
    )
    sources: list[str] = Field(default_factory=list)
    discrepancies: list[str] = Field(default_factory=list)


class ChannelVideo(BaseModel):
    """A video fetched from one of the curated channel's playlists."""

    model_config = ConfigDict(frozen=True)

    video_id: str
    title: str = ""
    description: str = ""
    thumbnail_url: str = ""
    playlist_id: str = ""
    playlist_title: str = ""
    published_at: str | None = None


class VideoMatch(BaseModel):
    """A model-proposed placement of a video on a site page."""

    model_config = ConfigDict(frozen=True)

    video_id: str
    title: str
    page_type: str
    entity_slug: str | None = None
    reason: str = ""
    relevance_score: float = 0.0
