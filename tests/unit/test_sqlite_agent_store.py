"""Unit tests for SQLiteAgentStore.

Covers the run lifecycle (start, heartbeat, complete, fail), the derived
STALE status, atomic result persistence and version-checked issue updates
against a temporary database file.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from technodog.models.agent import AutoFix, Insight, Issue, RunStatus, Severity
from technodog.providers.store.sqlite_agent_store import SQLiteAgentStore
from technodog.providers.store.sqlite_base import to_iso
from technodog.utils.errors import ConcurrencyConflictError, PersistenceError, RecordNotFoundError


def _issue(**kwargs) -> Issue:
    defaults = {
        "issue_type": "low_share_rate",
        "severity": Severity.MEDIUM,
        "description": "Share rate is 2.0% (below 5% threshold)",
        "affected_component": "TechnoDoggies.tsx",
        "auto_fixable": True,
    }
    defaults.update(kwargs)
    return Issue(**defaults)


async def _age_heartbeat(store: SQLiteAgentStore, run_id: str, minutes: int) -> None:
    old = to_iso(datetime.now(tz=timezone.utc) - timedelta(minutes=minutes))
    async with aiosqlite.connect(str(store.db_path)) as db:
        await db.execute(
            "UPDATE agent_runs SET started_at = ?, heartbeat_at = ? WHERE id = ?", (old, old, run_id)
        )
        await db.commit()


# ─── Runs ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_double_initialize_is_idempotent(agent_store):
    await agent_store.initialize()


@pytest.mark.asyncio
async def test_start_run_is_running(agent_store):
    run = await agent_store.start_run("doggy-self-heal", "analyze")
    fetched = await agent_store.get_run(run.id)
    assert fetched.status is RunStatus.RUNNING
    assert fetched.agent == "doggy-self-heal"
    assert fetched.version == 1


@pytest.mark.asyncio
async def test_complete_run_persists_results_atomically(agent_store):
    run = await agent_store.start_run("doggy-analytics-insights", "analyze")
    insight = Insight(agent="doggy-analytics-insights", insight_type="full_analysis", summary="ok")
    issue = _issue()
    fix = AutoFix(fix_type="config_update", target_component="x", description="d", issue_type="low_share_rate")

    done = await agent_store.complete_run(
        run.id, stats={"shares": 3}, insights=[insight], issues=[issue], fixes=[fix]
    )

    assert done.status is RunStatus.COMPLETED
    assert done.stats == {"shares": 3}
    assert done.finished_at is not None
    assert done.version == 2
    insights = await agent_store.list_insights(agent="doggy-analytics-insights")
    assert [i.run_id for i in insights] == [run.id]
    stored_issue = await agent_store.get_issue(issue.id)
    assert stored_issue.run_id == run.id
    assert [f.id for f in await agent_store.list_fixes()] == [fix.id]


@pytest.mark.asyncio
async def test_complete_twice_conflicts(agent_store):
    run = await agent_store.start_run("a", "analyze")
    await agent_store.complete_run(run.id)
    with pytest.raises(ConcurrencyConflictError):
        await agent_store.complete_run(run.id, insights=[Insight(agent="a", insight_type="x")])
    assert await agent_store.list_insights(agent="a") == []


@pytest.mark.asyncio
async def test_fail_run_records_message(agent_store):
    run = await agent_store.start_run("a", "analyze")
    failed = await agent_store.fail_run(run.id, "All models failed")
    assert failed.status is RunStatus.FAILED
    assert failed.error_message == "All models failed"


@pytest.mark.asyncio
async def test_unknown_run_raises(agent_store):
    with pytest.raises(RecordNotFoundError):
        await agent_store.get_run("missing")


@pytest.mark.asyncio
async def test_abandoned_run_reads_as_stale(agent_store):
    run = await agent_store.start_run("a", "sync")
    await _age_heartbeat(agent_store, run.id, minutes=45)
    assert (await agent_store.get_run(run.id)).status is RunStatus.STALE


@pytest.mark.asyncio
async def test_heartbeat_keeps_run_alive(agent_store):
    run = await agent_store.start_run("a", "sync")
    await _age_heartbeat(agent_store, run.id, minutes=45)
    await agent_store.heartbeat(run.id)
    assert (await agent_store.get_run(run.id)).status is RunStatus.RUNNING


@pytest.mark.asyncio
async def test_completed_run_never_stale(agent_store):
    run = await agent_store.start_run("a", "sync")
    await agent_store.complete_run(run.id)
    await _age_heartbeat(agent_store, run.id, minutes=120)
    assert (await agent_store.get_run(run.id)).status is RunStatus.COMPLETED


@pytest.mark.asyncio
async def test_heartbeat_on_finished_run_conflicts(agent_store):
    run = await agent_store.start_run("a", "sync")
    await agent_store.fail_run(run.id, "boom")
    with pytest.raises(ConcurrencyConflictError):
        await agent_store.heartbeat(run.id)


@pytest.mark.asyncio
async def test_list_runs_filters_by_agent(agent_store):
    await agent_store.start_run("a", "x")
    await agent_store.start_run("b", "y")
    runs = await agent_store.list_runs(agent="b")
    assert [r.agent for r in runs] == ["b"]
    assert len(await agent_store.list_runs()) == 2


# ─── Insights ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_expired_insights_filtered_on_request(agent_store):
    run = await agent_store.start_run("a", "analyze")
    past = datetime.now(tz=timezone.utc) - timedelta(hours=1)
    future = datetime.now(tz=timezone.utc) + timedelta(hours=1)
    await agent_store.complete_run(
        run.id,
        insights=[
            Insight(agent="a", insight_type="old", expires_at=past),
            Insight(agent="a", insight_type="fresh", expires_at=future),
        ],
    )
    fresh = await agent_store.list_insights(agent="a", include_expired=False)
    assert [i.insight_type for i in fresh] == ["fresh"]
    assert len(await agent_store.list_insights(agent="a")) == 2


# ─── Issues / fixes ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_fix_applied_is_version_checked(agent_store):
    run = await agent_store.start_run("doggy-self-heal", "analyze")
    issue = _issue()
    await agent_store.complete_run(run.id, issues=[issue])

    fixed = await agent_store.mark_fix_applied(issue.id, 1, "Share button visibility increased")
    assert fixed.fix_applied is True
    assert fixed.version == 2
    assert fixed.fix_description == "Share button visibility increased"

    with pytest.raises(ConcurrencyConflictError):
        await agent_store.mark_fix_applied(issue.id, 1, "second fixer")


def _fix(issue: Issue, **kwargs) -> AutoFix:
    defaults = {
        "fix_type": "config_update",
        "target_component": "TechnoDoggies.tsx",
        "description": "Share button visibility increased",
        "issue_type": issue.issue_type,
        "issue_id": issue.id,
    }
    defaults.update(kwargs)
    return AutoFix(**defaults)


@pytest.mark.asyncio
async def test_apply_fix_sets_flag_and_records_fix(agent_store):
    run = await agent_store.start_run("doggy-self-heal", "analyze")
    issue = _issue()
    await agent_store.complete_run(run.id, issues=[issue])

    fixed = await agent_store.apply_fix(issue.id, 1, _fix(issue))

    assert fixed.fix_applied is True
    assert fixed.version == 2
    assert fixed.fix_description == "Share button visibility increased"
    assert [f.issue_id for f in await agent_store.list_fixes()] == [issue.id]

    with pytest.raises(ConcurrencyConflictError):
        await agent_store.apply_fix(issue.id, 2, _fix(issue))
    assert len(await agent_store.list_fixes()) == 1


@pytest.mark.asyncio
async def test_apply_fix_rolls_back_flag_when_insert_fails(agent_store):
    run = await agent_store.start_run("doggy-self-heal", "analyze")
    issue = _issue()
    await agent_store.complete_run(run.id, issues=[issue])
    fix = _fix(issue)
    # Same primary key as the fix about to be applied.
    await agent_store.record_fix(fix)

    with pytest.raises(PersistenceError):
        await agent_store.apply_fix(issue.id, 1, fix)

    unchanged = await agent_store.get_issue(issue.id)
    assert unchanged.fix_applied is False
    assert unchanged.version == 1
    assert unchanged.fix_description is None
    assert len(await agent_store.list_fixes()) == 1


@pytest.mark.asyncio
async def test_set_suggestion(agent_store):
    run = await agent_store.start_run("doggy-self-heal", "analyze")
    issue = _issue()
    await agent_store.complete_run(run.id, issues=[issue])

    updated = await agent_store.set_suggestion(issue.id, "Add a share nudge")
    assert updated.hq_suggestion == "Add a share nudge"
    assert updated.hq_approved is False


@pytest.mark.asyncio
async def test_unresolved_issue_listing(agent_store):
    run = await agent_store.start_run("doggy-self-heal", "analyze")
    await agent_store.complete_run(run.id, issues=[_issue(), _issue(issue_type="doggy_imbalance")])
    assert len(await agent_store.list_issues(unresolved_only=True)) == 2


@pytest.mark.asyncio
async def test_get_unknown_issue(agent_store):
    with pytest.raises(RecordNotFoundError):
        await agent_store.get_issue("nope")
