"""Shared plumbing for the aiosqlite-backed stores.

Every store owns a handful of tables in one database file.  Subclasses
list their DDL in ``_SCHEMA`` and :meth:`SQLiteStore.initialize` creates it.
Timestamps are stored as ISO-8601 UTC strings with microseconds so that
lexical comparison in SQL matches chronological order.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from technodog.utils.logging import get_logger

_logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")  # noqa: UP017


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def dumps(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str)


def loads(value: str | None, default: Any = None) -> Any:
    if value is None or value == "":
        return default
    return json.loads(value)


class SQLiteStore:
    """Base class: database path, schema creation and connection helper."""

    _SCHEMA: tuple[str, ...] = ()

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(str(self._db_path))

    async def initialize(self) -> None:
        """Create this store's tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for statement in self._SCHEMA:
                await db.execute(statement)
            await db.commit()
        _logger.info("store_initialized", store=type(self).__name__, path=str(self._db_path))

    async def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def _fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def _count(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return int(row[0]) if row and row[0] is not None else 0
