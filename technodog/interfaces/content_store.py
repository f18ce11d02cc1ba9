"""Abstract base classes for the knowledge-base tables the agents touch.

Each store covers one content area so an agent only depends on the
tables it actually reads or writes.  SQLite implementations live in
``technodog/providers/store/``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from technodog.models.content import (
    Book,
    CandidateStatus,
    ChannelVideo,
    MergeCandidate,
    SourceMapping,
    VideoMatch,
)


class IArtistStore(ABC):
    """Artist catalog: RAG rows, canonical rows, links and merge candidates."""

    @abstractmethod
    async def catalog_counts(self) -> dict[str, int]:
        """Return raw row counts for every artist table.

        Returns
        -------
        dict
            Keys ``dj_artists``, ``dj_artists_with_embeddings``,
            ``canonical_artists``, ``canonical_with_photos``,
            ``source_mappings``, ``rag_linked_to_canonical``,
            ``artist_claims``, ``artist_documents``, ``artist_profiles``.
        """

    @abstractmethod
    async def list_merge_candidates(
        self, status: CandidateStatus = CandidateStatus.PENDING, limit: int = 100
    ) -> list[MergeCandidate]:
        """Return merge candidates in ``status``, highest confidence first."""

    @abstractmethod
    async def resolve_merge_candidate(
        self,
        candidate_id: str,
        status: CandidateStatus,
        expected_version: int,
        resolved_by: str,
        mapping: SourceMapping | None = None,
    ) -> MergeCandidate:
        """Resolve a candidate (and optionally link it) with a version check."""


class IDoggyStore(ABC):
    """Doggy share events, landing-page analytics and client error logs."""

    @abstractmethod
    async def list_share_events(self, since: datetime) -> list[dict[str, Any]]:
        """Return share events created at or after ``since``, newest first."""

    @abstractmethod
    async def list_reshare_chains(self, limit: int = 50) -> list[dict[str, Any]]:
        """Return reshare events (with a parent), deepest chains first."""

    @abstractmethod
    async def list_page_events(self, since: datetime) -> list[dict[str, Any]]:
        """Return landing-page analytics events since ``since``."""

    @abstractmethod
    async def list_error_logs(self, since: datetime) -> list[dict[str, Any]]:
        """Return client error logs since ``since``."""

    @abstractmethod
    async def insert_error_log(self, entry: dict[str, Any]) -> dict[str, Any]:
        """Insert one client error log row and return it."""


class IPlaybookStore(ABC):
    """Playbook sections, templates and policies."""

    @abstractmethod
    async def list_sections(self, status: str | None = "active", limit: int = 10) -> list[dict[str, Any]]:
        """Return playbook sections, optionally filtered by status."""

    @abstractmethod
    async def upsert_section(
        self,
        section_key: str,
        title: str,
        content: str,
        sources: list[str],
        status: str = "draft",
    ) -> dict[str, Any]:
        """Insert or replace a section keyed on ``section_key``."""

    @abstractmethod
    async def update_section_content(
        self,
        section_key: str,
        content: str,
        sources: list[str],
        expected_version: int,
    ) -> dict[str, Any]:
        """Replace a section's content and bump its version, version-checked."""

    @abstractmethod
    async def insert_template(
        self,
        template_type: str,
        name: str,
        content: str,
        instructions: str,
    ) -> dict[str, Any]:
        """Insert a generated template."""

    @abstractmethod
    async def list_policies(self, limit: int = 5) -> list[dict[str, Any]]:
        """Return playbook policies."""

    @abstractmethod
    async def list_principles(self, limit: int = 10) -> list[dict[str, Any]]:
        """Return the project's principles and values."""


class IBookStore(ABC):
    """Published books whose bibliographic metadata is researched."""

    @abstractmethod
    async def list_books_missing_metadata(self, limit: int = 5) -> list[Book]:
        """Return published books lacking isbn, publisher or year."""

    @abstractmethod
    async def get_books(self, book_ids: list[str]) -> list[Book]:
        """Return the published books with the given ids."""


class IVideoStore(ABC):
    """Curated channel videos, their page assignments and sync status."""

    @abstractmethod
    async def upsert_videos(self, videos: list[ChannelVideo]) -> int:
        """Insert or update videos keyed on ``video_id``; return the count."""

    @abstractmethod
    async def list_unanalyzed_videos(self, limit: int = 50) -> list[ChannelVideo]:
        """Return videos not yet analysed."""

    @abstractmethod
    async def apply_matches(self, matches: list[VideoMatch]) -> int:
        """Upsert assignments for matches and mark their videos analysed."""

    @abstractmethod
    async def mark_analyzed(self, video_ids: list[str]) -> None:
        """Stamp videos as analysed without a relevance score."""

    @abstractmethod
    async def list_page_videos(
        self, page_type: str, entity_slug: str | None = None, limit: int = 6
    ) -> list[dict[str, Any]]:
        """Return active videos assigned to a page, featured first."""

    @abstractmethod
    async def record_sync(
        self, channel_id: str, channel_handle: str, videos_synced: int, playlists_synced: int
    ) -> dict[str, Any]:
        """Upsert the channel's sync status row."""

    @abstractmethod
    async def status(self) -> dict[str, Any]:
        """Return stored video and assignment counts plus the last sync row."""
