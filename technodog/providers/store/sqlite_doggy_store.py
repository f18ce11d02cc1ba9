"""SQLite-backed doggy share events, page analytics and client error logs."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from technodog.interfaces.content_store import IDoggyStore
from technodog.providers.store.sqlite_base import SQLiteStore, to_iso, utcnow

_SCHEMA = (
    """\
CREATE TABLE IF NOT EXISTS doggy_share_events (
    id               TEXT PRIMARY KEY,
    doggy_name       TEXT,
    platform         TEXT,
    share_type       TEXT,
    parent_share_id  TEXT,
    chain_depth      INTEGER NOT NULL DEFAULT 0,
    session_id       TEXT,
    created_at       TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS doggy_page_analytics (
    id          TEXT PRIMARY KEY,
    event_type  TEXT NOT NULL,
    doggy_name  TEXT,
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS doggy_error_logs (
    id                TEXT PRIMARY KEY,
    error_type        TEXT NOT NULL,
    error_message     TEXT NOT NULL,
    stack_trace       TEXT,
    page_source       TEXT,
    doggy_name        TEXT,
    action_attempted  TEXT,
    session_id        TEXT,
    user_agent        TEXT,
    created_at        TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_share_events_created ON doggy_share_events(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_page_analytics_created ON doggy_page_analytics(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_error_logs_created ON doggy_error_logs(created_at);",
)

_ERROR_LOG_FIELDS = (
    "error_type",
    "error_message",
    "stack_trace",
    "page_source",
    "doggy_name",
    "action_attempted",
    "session_id",
    "user_agent",
)


class SQLiteDoggyStore(SQLiteStore, IDoggyStore):
    _SCHEMA = _SCHEMA

    def __init__(self, db_path: str | Path) -> None:
        super().__init__(db_path)

    async def list_share_events(self, since: datetime) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT * FROM doggy_share_events WHERE created_at >= ? ORDER BY created_at DESC",
            (to_iso(since),),
        )

    async def list_reshare_chains(self, limit: int = 50) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT * FROM doggy_share_events WHERE parent_share_id IS NOT NULL "
            "ORDER BY chain_depth DESC LIMIT ?",
            (limit,),
        )

    async def list_page_events(self, since: datetime) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT event_type, doggy_name, created_at FROM doggy_page_analytics "
            "WHERE created_at >= ?",
            (to_iso(since),),
        )

    async def list_error_logs(self, since: datetime) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT * FROM doggy_error_logs WHERE created_at >= ? ORDER BY created_at DESC",
            (to_iso(since),),
        )

    async def insert_error_log(self, entry: dict[str, Any]) -> dict[str, Any]:
        row = {"id": uuid4().hex, **{k: entry.get(k) for k in _ERROR_LOG_FIELDS}}
        row["created_at"] = to_iso(utcnow())
        columns = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO doggy_error_logs ({columns}) VALUES ({marks})", tuple(row.values())
            )
            await db.commit()
        return row

    # -- seeding --------------------------------------------------------

    async def add_share_event(
        self,
        doggy_name: str,
        platform: str,
        share_type: str = "share",
        parent_share_id: str | None = None,
        chain_depth: int = 0,
        created_at: datetime | None = None,
    ) -> str:
        event_id = uuid4().hex
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO doggy_share_events (id, doggy_name, platform, share_type, "
                "parent_share_id, chain_depth, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    event_id,
                    doggy_name,
                    platform,
                    share_type,
                    parent_share_id,
                    chain_depth,
                    to_iso(created_at or utcnow()),
                ),
            )
            await db.commit()
        return event_id

    async def add_page_event(
        self, event_type: str, doggy_name: str | None = None, created_at: datetime | None = None
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO doggy_page_analytics (id, event_type, doggy_name, created_at) "
                "VALUES (?, ?, ?, ?)",
                (uuid4().hex, event_type, doggy_name, to_iso(created_at or utcnow())),
            )
            await db.commit()
