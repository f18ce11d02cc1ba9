"""SQLite-backed playbook sections, templates, policies and principles.

Sections are keyed on ``section_key`` and carry ``version_number``;
:meth:`SQLitePlaybookStore.update_section_content` only applies when the
caller read the current version.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from uuid import uuid4

from technodog.interfaces.content_store import IPlaybookStore
from technodog.providers.store.sqlite_base import SQLiteStore, dumps, loads, to_iso, utcnow
from technodog.utils.errors import ConcurrencyConflictError, RecordNotFoundError
from technodog.utils.logging import get_logger

_logger = get_logger(__name__)

_SCHEMA = (
    """\
CREATE TABLE IF NOT EXISTS playbook_sections (
    section_key               TEXT PRIMARY KEY,
    section_title             TEXT    NOT NULL,
    section_content_markdown  TEXT    NOT NULL DEFAULT '',
    sources_json              TEXT,
    status                    TEXT    NOT NULL DEFAULT 'draft',
    version_number            INTEGER NOT NULL DEFAULT 1,
    last_updated_at           TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS templates_assets (
    id                         TEXT PRIMARY KEY,
    template_name              TEXT NOT NULL,
    template_type              TEXT NOT NULL,
    template_content_markdown  TEXT,
    usage_instructions         TEXT,
    last_verified_at           TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS policies (
    id                       TEXT PRIMARY KEY,
    policy_name              TEXT NOT NULL,
    policy_type              TEXT,
    policy_content_markdown  TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS principles_values (
    id                 TEXT PRIMARY KEY,
    principle_name     TEXT NOT NULL,
    principle_summary  TEXT,
    do_list            TEXT,
    dont_list          TEXT
);
""",
)


def _section(row: dict[str, Any]) -> dict[str, Any]:
    row["sources_json"] = loads(row.get("sources_json"), [])
    return row


class SQLitePlaybookStore(SQLiteStore, IPlaybookStore):
    _SCHEMA = _SCHEMA

    def __init__(self, db_path: str | Path) -> None:
        super().__init__(db_path)

    async def get_section(self, section_key: str) -> dict[str, Any]:
        row = await self._fetch_one(
            "SELECT * FROM playbook_sections WHERE section_key = ?", (section_key,)
        )
        if row is None:
            raise RecordNotFoundError(f"Playbook section not found: {section_key}")
        return _section(row)

    async def list_sections(self, status: str | None = "active", limit: int = 10) -> list[dict[str, Any]]:
        if status:
            rows = await self._fetch_all(
                "SELECT * FROM playbook_sections WHERE status = ? ORDER BY section_key LIMIT ?",
                (status, limit),
            )
        else:
            rows = await self._fetch_all(
                "SELECT * FROM playbook_sections ORDER BY section_key LIMIT ?", (limit,)
            )
        return [_section(r) for r in rows]

    async def upsert_section(
        self,
        section_key: str,
        title: str,
        content: str,
        sources: list[str],
        status: str = "draft",
    ) -> dict[str, Any]:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO playbook_sections (section_key, section_title, "
                "section_content_markdown, sources_json, status, version_number, last_updated_at) "
                "VALUES (?, ?, ?, ?, ?, 1, ?) "
                "ON CONFLICT(section_key) DO UPDATE SET section_title = excluded.section_title, "
                "section_content_markdown = excluded.section_content_markdown, "
                "sources_json = excluded.sources_json, status = excluded.status, "
                "version_number = playbook_sections.version_number + 1, "
                "last_updated_at = excluded.last_updated_at",
                (section_key, title, content, dumps(sources), status, to_iso(utcnow())),
            )
            await db.commit()
        _logger.info("playbook_section_upserted", section_key=section_key, status=status)
        return await self.get_section(section_key)

    async def update_section_content(
        self,
        section_key: str,
        content: str,
        sources: list[str],
        expected_version: int,
    ) -> dict[str, Any]:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE playbook_sections SET section_content_markdown = ?, sources_json = ?, "
                "version_number = version_number + 1, last_updated_at = ? "
                "WHERE section_key = ? AND version_number = ?",
                (content, dumps(sources), to_iso(utcnow()), section_key, expected_version),
            )
            await db.commit()
        if cursor.rowcount == 0:
            current = await self.get_section(section_key)
            raise ConcurrencyConflictError(
                f"Section {section_key} changed (expected version {expected_version}, "
                f"found {current['version_number']})"
            )
        return await self.get_section(section_key)

    async def insert_template(
        self,
        template_type: str,
        name: str,
        content: str,
        instructions: str,
    ) -> dict[str, Any]:
        row = {
            "id": uuid4().hex,
            "template_name": name,
            "template_type": template_type,
            "template_content_markdown": content,
            "usage_instructions": instructions,
            "last_verified_at": to_iso(utcnow()),
        }
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO templates_assets (id, template_name, template_type, "
                "template_content_markdown, usage_instructions, last_verified_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                tuple(row.values()),
            )
            await db.commit()
        return row

    async def list_templates(self, template_type: str | None = None) -> list[dict[str, Any]]:
        if template_type:
            return await self._fetch_all(
                "SELECT * FROM templates_assets WHERE template_type = ? ORDER BY last_verified_at DESC",
                (template_type,),
            )
        return await self._fetch_all("SELECT * FROM templates_assets ORDER BY last_verified_at DESC")

    async def list_policies(self, limit: int = 5) -> list[dict[str, Any]]:
        return await self._fetch_all(
            "SELECT policy_name, policy_type, policy_content_markdown FROM policies LIMIT ?",
            (limit,),
        )

    async def list_principles(self, limit: int = 10) -> list[dict[str, Any]]:
        rows = await self._fetch_all(
            "SELECT principle_name, principle_summary, do_list, dont_list "
            "FROM principles_values LIMIT ?",
            (limit,),
        )
        for row in rows:
            row["do_list"] = loads(row["do_list"], [])
            row["dont_list"] = loads(row["dont_list"], [])
        return rows

    # -- seeding --------------------------------------------------------

    async def add_policy(self, name: str, policy_type: str, content: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO policies (id, policy_name, policy_type, policy_content_markdown) "
                "VALUES (?, ?, ?, ?)",
                (uuid4().hex, name, policy_type, content),
            )
            await db.commit()

    async def add_principle(
        self, name: str, summary: str, do_list: list[str] | None = None, dont_list: list[str] | None = None
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO principles_values (id, principle_name, principle_summary, do_list, dont_list) "
                "VALUES (?, ?, ?, ?, ?)",
                (uuid4().hex, name, summary, dumps(do_list or []), dumps(dont_list or [])),
            )
            await db.commit()
