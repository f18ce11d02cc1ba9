"""SQLite-backed agent run, insight, issue and fix persistence.

Run records carry a ``version`` column and a ``heartbeat_at`` timestamp:

* :meth:`SQLiteAgentStore.complete_run` updates the run and inserts every
  result row (insights, issues, fixes) inside one transaction, so a run is
  never COMPLETED without its results or vice versa.
* A RUNNING row whose last heartbeat (or start) is older than
  ``stale_after_minutes`` is reported as STALE on read.
* Issue mutations are version-checked; a lost race raises
  :class:`~technodog.utils.errors.ConcurrencyConflictError`.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from technodog.interfaces.agent_store import IAgentStore
from technodog.models.agent import AgentRun, AutoFix, Insight, Issue, RunStatus, Severity
from technodog.providers.store.sqlite_base import (
    SQLiteStore,
    dumps,
    from_iso,
    loads,
    to_iso,
    utcnow,
)
from technodog.utils.errors import ConcurrencyConflictError, PersistenceError, RecordNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/technodog.db")

_CREATE_RUNS_SQL = """\
CREATE TABLE IF NOT EXISTS agent_runs (
    id             TEXT PRIMARY KEY,
    agent          TEXT    NOT NULL,
    run_type       TEXT    NOT NULL,
    status         TEXT    NOT NULL,
    started_at     TEXT    NOT NULL,
    heartbeat_at   TEXT,
    finished_at    TEXT,
    stats_json     TEXT,
    error_message  TEXT,
    version        INTEGER NOT NULL DEFAULT 1
);
"""

_CREATE_INSIGHTS_SQL = """\
CREATE TABLE IF NOT EXISTS agent_insights (
    id                 TEXT PRIMARY KEY,
    agent              TEXT NOT NULL,
    insight_type       TEXT NOT NULL,
    run_id             TEXT REFERENCES agent_runs(id),
    model_used         TEXT,
    model_name         TEXT,
    title              TEXT,
    summary            TEXT,
    detailed_analysis  TEXT,
    result_json        TEXT,
    data_snapshot      TEXT,
    confidence_score   REAL,
    consensus_models   TEXT,
    expires_at         TEXT,
    created_at         TEXT NOT NULL
);
"""

_CREATE_ISSUES_SQL = """\
CREATE TABLE IF NOT EXISTS agent_issues (
    id                  TEXT PRIMARY KEY,
    issue_type          TEXT    NOT NULL,
    severity            TEXT    NOT NULL,
    description         TEXT    NOT NULL,
    affected_component  TEXT,
    affected_doggy      TEXT,
    detection_source    TEXT,
    auto_fixable        INTEGER NOT NULL DEFAULT 0,
    fix_applied         INTEGER NOT NULL DEFAULT 0,
    fix_applied_at      TEXT,
    fix_description     TEXT,
    hq_suggestion       TEXT,
    hq_approved         INTEGER NOT NULL DEFAULT 0,
    resolved_at         TEXT,
    run_id              TEXT REFERENCES agent_runs(id),
    version             INTEGER NOT NULL DEFAULT 1,
    created_at          TEXT    NOT NULL
);
"""

_CREATE_FIXES_SQL = """\
CREATE TABLE IF NOT EXISTS agent_auto_fixes (
    id                TEXT PRIMARY KEY,
    fix_type          TEXT    NOT NULL,
    target_component  TEXT    NOT NULL,
    description       TEXT    NOT NULL,
    issue_type        TEXT    NOT NULL,
    issue_id          TEXT,
    success           INTEGER NOT NULL DEFAULT 1,
    applied_at        TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_runs_agent ON agent_runs(agent, started_at);",
    "CREATE INDEX IF NOT EXISTS idx_insights_agent ON agent_insights(agent, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_issues_created ON agent_issues(created_at);",
)

_INSERT_INSIGHT_SQL = """\
INSERT INTO agent_insights (
    id, agent, insight_type, run_id, model_used, model_name, title, summary,
    detailed_analysis, result_json, data_snapshot, confidence_score,
    consensus_models, expires_at, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_ISSUE_SQL = """\
INSERT INTO agent_issues (
    id, issue_type, severity, description, affected_component, affected_doggy,
    detection_source, auto_fixable, fix_applied, fix_applied_at, fix_description,
    hq_suggestion, hq_approved, resolved_at, run_id, version, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_FIX_SQL = """\
INSERT INTO agent_auto_fixes (
    id, fix_type, target_component, description, issue_type, issue_id, success, applied_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_RUN_COLUMNS = (
    "id, agent, run_type, status, started_at, heartbeat_at, finished_at, "
    "stats_json, error_message, version"
)


def _insight_params(insight: Insight, run_id: str | None) -> tuple[Any, ...]:
    return (
        insight.id,
        insight.agent,
        insight.insight_type,
        insight.run_id or run_id,
        insight.model_used,
        insight.model_name,
        insight.title,
        insight.summary,
        insight.detailed_analysis,
        dumps(insight.result_json),
        dumps(insight.data_snapshot),
        insight.confidence_score,
        dumps(insight.consensus_models),
        to_iso(insight.expires_at),
        to_iso(insight.created_at),
    )


def _issue_params(issue: Issue, run_id: str | None) -> tuple[Any, ...]:
    return (
        issue.id,
        issue.issue_type,
        issue.severity.value,
        issue.description,
        issue.affected_component,
        issue.affected_doggy,
        issue.detection_source,
        int(issue.auto_fixable),
        int(issue.fix_applied),
        to_iso(issue.fix_applied_at),
        issue.fix_description,
        issue.hq_suggestion,
        int(issue.hq_approved),
        to_iso(issue.resolved_at),
        issue.run_id or run_id,
        issue.version,
        to_iso(issue.created_at),
    )


def _fix_params(fix: AutoFix) -> tuple[Any, ...]:
    return (
        fix.id,
        fix.fix_type,
        fix.target_component,
        fix.description,
        fix.issue_type,
        fix.issue_id,
        int(fix.success),
        to_iso(fix.applied_at),
    )


def _row_to_insight(row: dict[str, Any]) -> Insight:
    return Insight(
        id=row["id"],
        agent=row["agent"],
        insight_type=row["insight_type"],
        run_id=row["run_id"],
        model_used=row["model_used"] or "",
        model_name=row["model_name"] or "",
        title=row["title"] or "",
        summary=row["summary"] or "",
        detailed_analysis=row["detailed_analysis"] or "",
        result_json=loads(row["result_json"]),
        data_snapshot=loads(row["data_snapshot"], {}),
        confidence_score=row["confidence_score"],
        consensus_models=loads(row["consensus_models"], []),
        expires_at=from_iso(row["expires_at"]),
        created_at=from_iso(row["created_at"]),
    )


def _row_to_issue(row: dict[str, Any]) -> Issue:
    return Issue(
        id=row["id"],
        issue_type=row["issue_type"],
        severity=Severity(row["severity"]),
        description=row["description"],
        affected_component=row["affected_component"],
        affected_doggy=row["affected_doggy"],
        detection_source=row["detection_source"] or "analytics",
        auto_fixable=bool(row["auto_fixable"]),
        fix_applied=bool(row["fix_applied"]),
        fix_applied_at=from_iso(row["fix_applied_at"]),
        fix_description=row["fix_description"],
        hq_suggestion=row["hq_suggestion"],
        hq_approved=bool(row["hq_approved"]),
        resolved_at=from_iso(row["resolved_at"]),
        run_id=row["run_id"],
        version=row["version"],
        created_at=from_iso(row["created_at"]),
    )


def _row_to_fix(row: dict[str, Any]) -> AutoFix:
    return AutoFix(
        id=row["id"],
        fix_type=row["fix_type"],
        target_component=row["target_component"],
        description=row["description"],
        issue_type=row["issue_type"],
        issue_id=row["issue_id"],
        success=bool(row["success"]),
        applied_at=from_iso(row["applied_at"]),
    )


class SQLiteAgentStore(SQLiteStore, IAgentStore):
    """SQLite-backed run and result persistence."""

    _SCHEMA = (
        _CREATE_RUNS_SQL,
        _CREATE_INSIGHTS_SQL,
        _CREATE_ISSUES_SQL,
        _CREATE_FIXES_SQL,
        *_CREATE_INDICES_SQL,
    )

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, stale_after_minutes: int = 30) -> None:
        super().__init__(db_path)
        self._stale_after = timedelta(minutes=stale_after_minutes)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def _row_to_run(self, row: dict[str, Any]) -> AgentRun:
        status = RunStatus(row["status"])
        started_at = from_iso(row["started_at"])
        heartbeat_at = from_iso(row["heartbeat_at"])
        if status is RunStatus.RUNNING:
            last_seen = heartbeat_at or started_at
            if last_seen is not None and utcnow() - last_seen > self._stale_after:
                status = RunStatus.STALE
        return AgentRun(
            id=row["id"],
            agent=row["agent"],
            run_type=row["run_type"],
            status=status,
            started_at=started_at,
            heartbeat_at=heartbeat_at,
            finished_at=from_iso(row["finished_at"]),
            stats=loads(row["stats_json"], {}),
            error_message=row["error_message"],
            version=row["version"],
        )

    async def start_run(self, agent: str, run_type: str) -> AgentRun:
        run = AgentRun(agent=agent, run_type=run_type)
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO agent_runs ({_RUN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    run.id,
                    run.agent,
                    run.run_type,
                    run.status.value,
                    to_iso(run.started_at),
                    to_iso(run.started_at),
                    None,
                    dumps(run.stats),
                    None,
                    run.version,
                ),
            )
            await db.commit()
        logger.info("run_started", run_id=run.id, agent=agent, run_type=run_type)
        return run

    async def heartbeat(self, run_id: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE agent_runs SET heartbeat_at = ? WHERE id = ? AND status = ?",
                (to_iso(utcnow()), run_id, RunStatus.RUNNING.value),
            )
            await db.commit()
        if cursor.rowcount == 0:
            await self._raise_run_conflict(run_id)

    async def _raise_run_conflict(self, run_id: str) -> None:
        run = await self.get_run(run_id)
        raise ConcurrencyConflictError(f"Run {run_id} is already {run.status.value}")

    async def complete_run(
        self,
        run_id: str,
        stats: dict[str, Any] | None = None,
        insights: list[Insight] | None = None,
        issues: list[Issue] | None = None,
        fixes: list[AutoFix] | None = None,
    ) -> AgentRun:
        insights = insights or []
        issues = issues or []
        fixes = fixes or []
        now = to_iso(utcnow())

        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE agent_runs SET status = ?, finished_at = ?, heartbeat_at = ?, "
                "stats_json = ?, version = version + 1 WHERE id = ? AND status = ?",
                (
                    RunStatus.COMPLETED.value,
                    now,
                    now,
                    dumps(stats or {}),
                    run_id,
                    RunStatus.RUNNING.value,
                ),
            )
            updated = cursor.rowcount
            if updated:
                if insights:
                    await db.executemany(_INSERT_INSIGHT_SQL, [_insight_params(i, run_id) for i in insights])
                if issues:
                    await db.executemany(_INSERT_ISSUE_SQL, [_issue_params(i, run_id) for i in issues])
                if fixes:
                    await db.executemany(_INSERT_FIX_SQL, [_fix_params(f) for f in fixes])
                await db.commit()

        if not updated:
            await self._raise_run_conflict(run_id)

        logger.info(
            "run_completed",
            run_id=run_id,
            insights=len(insights),
            issues=len(issues),
            fixes=len(fixes),
        )
        return await self.get_run(run_id)

    async def fail_run(self, run_id: str, error_message: str) -> AgentRun:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE agent_runs SET status = ?, finished_at = ?, error_message = ?, "
                "version = version + 1 WHERE id = ? AND status = ?",
                (
                    RunStatus.FAILED.value,
                    to_iso(utcnow()),
                    error_message,
                    run_id,
                    RunStatus.RUNNING.value,
                ),
            )
            await db.commit()
        if cursor.rowcount == 0:
            await self._raise_run_conflict(run_id)
        logger.warning("run_failed", run_id=run_id, error=error_message)
        return await self.get_run(run_id)

    async def get_run(self, run_id: str) -> AgentRun:
        row = await self._fetch_one(f"SELECT {_RUN_COLUMNS} FROM agent_runs WHERE id = ?", (run_id,))
        if row is None:
            raise RecordNotFoundError(f"Run not found: {run_id}")
        return self._row_to_run(row)

    async def list_runs(self, agent: str | None = None, limit: int = 20) -> list[AgentRun]:
        if agent:
            rows = await self._fetch_all(
                f"SELECT {_RUN_COLUMNS} FROM agent_runs WHERE agent = ? "
                "ORDER BY started_at DESC LIMIT ?",
                (agent, limit),
            )
        else:
            rows = await self._fetch_all(
                f"SELECT {_RUN_COLUMNS} FROM agent_runs ORDER BY started_at DESC LIMIT ?",
                (limit,),
            )
        return [self._row_to_run(r) for r in rows]

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    async def list_insights(
        self,
        agent: str | None = None,
        insight_type: str | None = None,
        include_expired: bool = True,
        limit: int = 20,
    ) -> list[Insight]:
        clauses: list[str] = []
        params: list[Any] = []
        if agent:
            clauses.append("agent = ?")
            params.append(agent)
        if insight_type:
            clauses.append("insight_type = ?")
            params.append(insight_type)
        if not include_expired:
            clauses.append("(expires_at IS NULL OR expires_at > ?)")
            params.append(to_iso(utcnow()))
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        params.append(limit)
        rows = await self._fetch_all(
            f"SELECT * FROM agent_insights {where}ORDER BY created_at DESC LIMIT ?",
            tuple(params),
        )
        return [_row_to_insight(r) for r in rows]

    # ------------------------------------------------------------------
    # Issues / fixes
    # ------------------------------------------------------------------

    async def get_issue(self, issue_id: str) -> Issue:
        row = await self._fetch_one("SELECT * FROM agent_issues WHERE id = ?", (issue_id,))
        if row is None:
            raise RecordNotFoundError(f"Issue not found: {issue_id}")
        return _row_to_issue(row)

    async def list_issues(self, unresolved_only: bool = False, limit: int = 100) -> list[Issue]:
        where = "WHERE resolved_at IS NULL " if unresolved_only else ""
        rows = await self._fetch_all(
            f"SELECT * FROM agent_issues {where}ORDER BY created_at DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_issue(r) for r in rows]

    async def _versioned_issue_update(
        self,
        issue_id: str,
        expected_version: int | None,
        assignments: str,
        params: tuple[Any, ...],
        extra_where: str = "",
    ) -> Issue:
        sql = f"UPDATE agent_issues SET {assignments}, version = version + 1 WHERE id = ?"
        where_params: tuple[Any, ...] = (issue_id,)
        if expected_version is not None:
            sql += " AND version = ?"
            where_params += (expected_version,)
        sql += extra_where
        async with self._connect() as db:
            cursor = await db.execute(sql, params + where_params)
            await db.commit()
        if cursor.rowcount == 0:
            current = await self.get_issue(issue_id)
            raise ConcurrencyConflictError(
                f"Issue {issue_id} changed (expected version {expected_version}, "
                f"found {current.version})"
            )
        return await self.get_issue(issue_id)

    async def mark_fix_applied(self, issue_id: str, expected_version: int, description: str) -> Issue:
        issue = await self._versioned_issue_update(
            issue_id,
            expected_version,
            "fix_applied = 1, fix_applied_at = ?, fix_description = ?",
            (to_iso(utcnow()), description),
            extra_where=" AND fix_applied = 0",
        )
        logger.info("issue_fix_applied", issue_id=issue_id, version=issue.version)
        return issue

    async def apply_fix(self, issue_id: str, expected_version: int, fix: AutoFix) -> Issue:
        """Mark the issue fixed and insert ``fix`` in one transaction.

        Raises ``ConcurrencyConflictError`` if the issue moved past
        ``expected_version`` (or is already fixed), and ``PersistenceError``
        if the fix row cannot be written; neither leaves the flag set.
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE agent_issues SET fix_applied = 1, fix_applied_at = ?, fix_description = ?, "
                "version = version + 1 WHERE id = ? AND version = ? AND fix_applied = 0",
                (to_iso(fix.applied_at), fix.description, issue_id, expected_version),
            )
            updated = cursor.rowcount
            if updated:
                try:
                    await db.execute(_INSERT_FIX_SQL, _fix_params(fix))
                except aiosqlite.Error as exc:
                    await db.rollback()
                    logger.error("issue_fix_rolled_back", issue_id=issue_id, error=str(exc))
                    raise PersistenceError(f"Could not record fix for issue {issue_id}: {exc}") from exc
                await db.commit()

        if not updated:
            current = await self.get_issue(issue_id)
            raise ConcurrencyConflictError(
                f"Issue {issue_id} changed (expected version {expected_version}, "
                f"found {current.version})"
            )
        logger.info("issue_fix_applied", issue_id=issue_id, fix_type=fix.fix_type)
        return await self.get_issue(issue_id)

    async def set_suggestion(self, issue_id: str, suggestion: str) -> Issue:
        return await self._versioned_issue_update(
            issue_id, None, "hq_suggestion = ?, hq_approved = 0", (suggestion,)
        )

    async def record_fix(self, fix: AutoFix) -> AutoFix:
        async with self._connect() as db:
            await db.execute(_INSERT_FIX_SQL, _fix_params(fix))
            await db.commit()
        return fix

    async def list_fixes(self, limit: int = 5) -> list[AutoFix]:
        rows = await self._fetch_all(
            "SELECT * FROM agent_auto_fixes ORDER BY applied_at DESC LIMIT ?", (limit,)
        )
        return [_row_to_fix(r) for r in rows]
