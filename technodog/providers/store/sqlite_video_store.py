"""SQLite-backed curated channel videos, page assignments and sync status.

``curated_channel_videos`` is keyed on the YouTube ``video_id``.  An
assignment places one video on one page (``page_type`` + optional
``entity_slug``); the pair is unique so re-running analysis updates the
existing assignment instead of duplicating it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from uuid import uuid4

from technodog.interfaces.content_store import IVideoStore
from technodog.models.content import ChannelVideo, VideoMatch
from technodog.providers.store.sqlite_base import SQLiteStore, to_iso, utcnow
from technodog.utils.logging import get_logger

_logger = get_logger(__name__)

_SCHEMA = (
    """\
CREATE TABLE IF NOT EXISTS curated_channel_videos (
    id                  TEXT PRIMARY KEY,
    video_id            TEXT NOT NULL UNIQUE,
    title               TEXT NOT NULL DEFAULT '',
    description         TEXT,
    thumbnail_url       TEXT,
    playlist_id         TEXT,
    playlist_title      TEXT,
    published_at        TEXT,
    ai_relevance_score  REAL,
    ai_analyzed_at      TEXT,
    created_at          TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS curated_video_assignments (
    id                 TEXT PRIMARY KEY,
    video_id           TEXT    NOT NULL REFERENCES curated_channel_videos(id),
    page_type          TEXT    NOT NULL,
    entity_slug        TEXT    NOT NULL DEFAULT '',
    assigned_by        TEXT    NOT NULL DEFAULT 'ai',
    assignment_reason  TEXT,
    display_order      INTEGER NOT NULL DEFAULT 0,
    is_featured        INTEGER NOT NULL DEFAULT 0,
    is_active          INTEGER NOT NULL DEFAULT 1,
    created_at         TEXT    NOT NULL,
    UNIQUE (video_id, page_type, entity_slug)
);
""",
    """\
CREATE TABLE IF NOT EXISTS youtube_channel_sync (
    channel_id        TEXT PRIMARY KEY,
    channel_handle    TEXT NOT NULL,
    last_sync_at      TEXT NOT NULL,
    videos_synced     INTEGER NOT NULL DEFAULT 0,
    playlists_synced  INTEGER NOT NULL DEFAULT 0,
    sync_status       TEXT NOT NULL,
    created_at        TEXT NOT NULL
);
""",
)


def _row_to_video(row: dict[str, Any]) -> ChannelVideo:
    return ChannelVideo(
        video_id=row["video_id"],
        title=row["title"] or "",
        description=row["description"] or "",
        thumbnail_url=row["thumbnail_url"] or "",
        playlist_id=row["playlist_id"] or "",
        playlist_title=row["playlist_title"] or "",
        published_at=row["published_at"],
    )


class SQLiteVideoStore(SQLiteStore, IVideoStore):
    _SCHEMA = _SCHEMA

    def __init__(self, db_path: str | Path) -> None:
        super().__init__(db_path)

    async def upsert_videos(self, videos: list[ChannelVideo]) -> int:
        now = to_iso(utcnow())
        async with self._connect() as db:
            await db.executemany(
                "INSERT INTO curated_channel_videos (id, video_id, title, description, "
                "thumbnail_url, playlist_id, playlist_title, published_at, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(video_id) DO UPDATE SET title = excluded.title, "
                "description = excluded.description, thumbnail_url = excluded.thumbnail_url, "
                "playlist_id = excluded.playlist_id, playlist_title = excluded.playlist_title, "
                "published_at = excluded.published_at",
                [
                    (
                        uuid4().hex,
                        v.video_id,
                        v.title,
                        v.description,
                        v.thumbnail_url,
                        v.playlist_id,
                        v.playlist_title,
                        v.published_at,
                        now,
                    )
                    for v in videos
                ],
            )
            await db.commit()
        return len(videos)

    async def list_unanalyzed_videos(self, limit: int = 50) -> list[ChannelVideo]:
        rows = await self._fetch_all(
            "SELECT * FROM curated_channel_videos WHERE ai_analyzed_at IS NULL "
            "ORDER BY created_at ASC LIMIT ?",
            (limit,),
        )
        return [_row_to_video(r) for r in rows]

    async def apply_matches(self, matches: list[VideoMatch]) -> int:
        """Upsert one assignment per match and stamp the video as analysed.

        Matches naming an unknown video are skipped.  All writes share one
        transaction.
        """
        created = 0
        now = to_iso(utcnow())
        async with self._connect() as db:
            for match in matches:
                cursor = await db.execute(
                    "SELECT id FROM curated_channel_videos WHERE video_id = ?", (match.video_id,)
                )
                row = await cursor.fetchone()
                if row is None:
                    _logger.warning("assignment_unknown_video", video_id=match.video_id)
                    continue
                video_pk = row[0]
                await db.execute(
                    "INSERT INTO curated_video_assignments (id, video_id, page_type, entity_slug, "
                    "assigned_by, assignment_reason, is_active, created_at) "
                    "VALUES (?, ?, ?, ?, 'ai', ?, 1, ?) "
                    "ON CONFLICT(video_id, page_type, entity_slug) DO UPDATE SET "
                    "assignment_reason = excluded.assignment_reason, is_active = 1",
                    (uuid4().hex, video_pk, match.page_type, match.entity_slug or "", match.reason, now),
                )
                await db.execute(
                    "UPDATE curated_channel_videos SET ai_relevance_score = ?, ai_analyzed_at = ? "
                    "WHERE id = ?",
                    (match.relevance_score, now, video_pk),
                )
                created += 1
            await db.commit()
        return created

    async def mark_analyzed(self, video_ids: list[str]) -> None:
        """Stamp videos as analysed even when no page matched them."""
        if not video_ids:
            return
        marks = ", ".join("?" for _ in video_ids)
        async with self._connect() as db:
            await db.execute(
                f"UPDATE curated_channel_videos SET ai_analyzed_at = ? "
                f"WHERE video_id IN ({marks}) AND ai_analyzed_at IS NULL",
                (to_iso(utcnow()), *video_ids),
            )
            await db.commit()

    async def list_page_videos(
        self, page_type: str, entity_slug: str | None = None, limit: int = 6
    ) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT v.id, v.video_id, v.title, v.description, v.thumbnail_url, v.playlist_title, "
            "v.published_at, a.is_featured, a.assignment_reason, a.display_order "
            "FROM curated_video_assignments a "
            "JOIN curated_channel_videos v ON v.id = a.video_id "
            "WHERE a.page_type = ? AND a.entity_slug = ? AND a.is_active = 1 "
            "ORDER BY a.is_featured DESC, a.display_order ASC LIMIT ?",
            (page_type, entity_slug or "", limit),
        )

    async def record_sync(
        self, channel_id: str, channel_handle: str, videos_synced: int, playlists_synced: int
    ) -> dict[str, Any]:
        now = to_iso(utcnow())
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO youtube_channel_sync (channel_id, channel_handle, last_sync_at, "
                "videos_synced, playlists_synced, sync_status, created_at) "
                "VALUES (?, ?, ?, ?, ?, 'completed', ?) "
                "ON CONFLICT(channel_id) DO UPDATE SET channel_handle = excluded.channel_handle, "
                "last_sync_at = excluded.last_sync_at, videos_synced = excluded.videos_synced, "
                "playlists_synced = excluded.playlists_synced, sync_status = excluded.sync_status",
                (channel_id, channel_handle, now, videos_synced, playlists_synced, now),
            )
            await db.commit()
        row = await self._fetch_one(
            "SELECT * FROM youtube_channel_sync WHERE channel_id = ?", (channel_id,)
        )
        return row or {}

    async def status(self) -> dict[str, Any]:
        videos = await self._count("SELECT COUNT(*) FROM curated_channel_videos")
        assignments = await self._count("SELECT COUNT(*) FROM curated_video_assignments")
        last_sync = await self._fetch_one(
            "SELECT * FROM youtube_channel_sync ORDER BY last_sync_at DESC LIMIT 1"
        )
        return {"videos": videos, "assignments": assignments, "last_sync": last_sync}
