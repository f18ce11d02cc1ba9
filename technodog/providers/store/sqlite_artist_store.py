"""SQLite-backed artist catalog store.

Two artist tables coexist: ``dj_artists`` (RAG rows with embeddings) and
``canonical_artists`` (the curated catalog).  ``artist_source_map`` links a
source-system record to its canonical artist; a RAG row counts as linked
when a ``source_system = 'rag'`` mapping exists for it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from technodog.interfaces.content_store import IArtistStore
from technodog.models.content import CandidateStatus, MergeCandidate, SourceMapping
from technodog.providers.store.sqlite_base import SQLiteStore, to_iso, utcnow
from technodog.utils.errors import ConcurrencyConflictError, RecordNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_SCHEMA = (
    """\
CREATE TABLE IF NOT EXISTS dj_artists (
    id           TEXT PRIMARY KEY,
    artist_name  TEXT NOT NULL,
    embedding    TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS canonical_artists (
    artist_id       TEXT PRIMARY KEY,
    canonical_name  TEXT NOT NULL,
    photo_url       TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_source_map (
    artist_id      TEXT NOT NULL,
    source_system  TEXT NOT NULL,
    source_id      TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    PRIMARY KEY (source_system, source_id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_claims (
    id         TEXT PRIMARY KEY,
    artist_id  TEXT NOT NULL,
    claim      TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_documents (
    id         TEXT PRIMARY KEY,
    artist_id  TEXT NOT NULL,
    content    TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_profiles (
    profile_id     TEXT PRIMARY KEY,
    artist_id      TEXT NOT NULL,
    source_system  TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_merge_candidates (
    candidate_id         TEXT PRIMARY KEY,
    rag_artist_id        TEXT    NOT NULL,
    canonical_artist_id  TEXT    NOT NULL,
    confidence           REAL    NOT NULL DEFAULT 0,
    reason               TEXT,
    status               TEXT    NOT NULL DEFAULT 'pending',
    resolved_by          TEXT,
    resolved_at          TEXT,
    version              INTEGER NOT NULL DEFAULT 1,
    created_at           TEXT    NOT NULL
);
""",
)

_COUNT_QUERIES: dict[str, str] = {
    "dj_artists": "SELECT COUNT(*) FROM dj_artists",
    "dj_artists_with_embeddings": "SELECT COUNT(*) FROM dj_artists WHERE embedding IS NOT NULL",
    "canonical_artists": "SELECT COUNT(*) FROM canonical_artists",
    "canonical_with_photos": "SELECT COUNT(*) FROM canonical_artists WHERE photo_url IS NOT NULL",
    "source_mappings": "SELECT COUNT(*) FROM artist_source_map",
    "rag_linked_to_canonical": "SELECT COUNT(*) FROM artist_source_map WHERE source_system = 'rag'",
    "artist_claims": "SELECT COUNT(*) FROM artist_claims",
    "artist_documents": "SELECT COUNT(*) FROM artist_documents",
    "artist_profiles": "SELECT COUNT(*) FROM artist_profiles",
}


def _row_to_candidate(row: dict[str, Any]) -> MergeCandidate:
    return MergeCandidate(
        id=row["candidate_id"],
        rag_artist_id=row["rag_artist_id"],
        canonical_artist_id=row["canonical_artist_id"],
        confidence=row["confidence"] or 0.0,
        reason=row["reason"] or "",
        status=CandidateStatus(row["status"]),
        resolved_by=row["resolved_by"],
        version=row["version"],
    )


class SQLiteArtistStore(SQLiteStore, IArtistStore):
    _SCHEMA = _SCHEMA

    def __init__(self, db_path: str | Path) -> None:
        super().__init__(db_path)

    async def catalog_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        async with self._connect() as db:
            for key, sql in _COUNT_QUERIES.items():
                cursor = await db.execute(sql)
                row = await cursor.fetchone()
                counts[key] = int(row[0]) if row else 0
        return counts

    async def list_merge_candidates(
        self, status: CandidateStatus = CandidateStatus.PENDING, limit: int = 100
    ) -> list[MergeCandidate]:
        rows = await self._fetch_all(
            "SELECT * FROM artist_merge_candidates WHERE status = ? "
            "ORDER BY confidence DESC, created_at ASC LIMIT ?",
            (status.value, limit),
        )
        return [_row_to_candidate(r) for r in rows]

    async def get_merge_candidate(self, candidate_id: str) -> MergeCandidate:
        row = await self._fetch_one(
            "SELECT * FROM artist_merge_candidates WHERE candidate_id = ?", (candidate_id,)
        )
        if row is None:
            raise RecordNotFoundError(f"Merge candidate not found: {candidate_id}")
        return _row_to_candidate(row)

    async def resolve_merge_candidate(
        self,
        candidate_id: str,
        status: CandidateStatus,
        expected_version: int,
        resolved_by: str,
        mapping: SourceMapping | None = None,
    ) -> MergeCandidate:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE artist_merge_candidates SET status = ?, resolved_by = ?, resolved_at = ?, "
                "version = version + 1 WHERE candidate_id = ? AND version = ? AND status = ?",
                (
                    status.value,
                    resolved_by,
                    to_iso(utcnow()),
                    candidate_id,
                    expected_version,
                    CandidateStatus.PENDING.value,
                ),
            )
            updated = cursor.rowcount
            if updated and mapping is not None:
                await db.execute(
                    "INSERT OR IGNORE INTO artist_source_map "
                    "(artist_id, source_system, source_id, created_at) VALUES (?, ?, ?, ?)",
                    (
                        mapping.artist_id,
                        mapping.source_system,
                        mapping.source_id,
                        to_iso(mapping.created_at),
                    ),
                )
            if updated:
                await db.commit()

        if not updated:
            current = await self.get_merge_candidate(candidate_id)
            raise ConcurrencyConflictError(
                f"Merge candidate {candidate_id} already {current.status.value} "
                f"(version {current.version})"
            )

        logger.info(
            "merge_candidate_resolved",
            candidate_id=candidate_id,
            status=status.value,
            linked=mapping is not None,
        )
        return await self.get_merge_candidate(candidate_id)

    # -- seeding --------------------------------------------------------

    async def add_dj_artist(self, artist_id: str, name: str, embedding: list[float] | None = None) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT OR REPLACE INTO dj_artists (id, artist_name, embedding) VALUES (?, ?, ?)",
                (artist_id, name, ",".join(str(x) for x in embedding) if embedding else None),
            )
            await db.commit()

    async def add_canonical_artist(self, artist_id: str, name: str, photo_url: str | None = None) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT OR REPLACE INTO canonical_artists (artist_id, canonical_name, photo_url) "
                "VALUES (?, ?, ?)",
                (artist_id, name, photo_url),
            )
            await db.commit()

    async def add_source_mapping(self, mapping: SourceMapping) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT OR IGNORE INTO artist_source_map "
                "(artist_id, source_system, source_id, created_at) VALUES (?, ?, ?, ?)",
                (mapping.artist_id, mapping.source_system, mapping.source_id, to_iso(mapping.created_at)),
            )
            await db.commit()

    async def add_profile(self, profile_id: str, artist_id: str, source_system: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT OR REPLACE INTO artist_profiles (profile_id, artist_id, source_system) "
                "VALUES (?, ?, ?)",
                (profile_id, artist_id, source_system),
            )
            await db.commit()

    async def add_merge_candidate(self, candidate: MergeCandidate) -> MergeCandidate:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO artist_merge_candidates (candidate_id, rag_artist_id, "
                "canonical_artist_id, confidence, reason, status, resolved_by, version, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    candidate.id,
                    candidate.rag_artist_id,
                    candidate.canonical_artist_id,
                    candidate.confidence,
                    candidate.reason,
                    candidate.status.value,
                    candidate.resolved_by,
                    candidate.version,
                    to_iso(utcnow()),
                ),
            )
            await db.commit()
        return candidate
