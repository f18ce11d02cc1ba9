"""Run, insight and issue records written by the agents.

Defines Pydantic v2 models for the rows the agents persist.  All models use
frozen config; state changes go through the store, which returns fresh
instances.

Lifecycle of an :class:`AgentRun`:

    start_run  -> RUNNING (version 1)
    heartbeat  -> RUNNING (heartbeat_at bumped)
    complete   -> COMPLETED   (same transaction as the run's insights)
    fail       -> FAILED

``STALE`` is never written.  It is derived on read for RUNNING rows whose
last heartbeat is older than the configured staleness window, so a process
that died mid-run does not leave a row that claims to be running forever.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def _new_id() -> str:
    return uuid4().hex


class RunStatus(str, Enum):  # noqa: UP042
    """Status of one agent invocation."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STALE = "stale"  # derived on read, never stored


class AgentRun(BaseModel):
    """One invocation of an agent action."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    agent: str
    run_type: str
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=_utcnow)
    heartbeat_at: datetime | None = None
    finished_at: datetime | None = None
    stats: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)


class Insight(BaseModel):
    """A single provider's (or a consensus's) analysis output.

    Insights are write-once; ``expires_at`` is honoured on read.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    agent: str
    insight_type: str
    run_id: str | None = None
    model_used: str = ""
    model_name: str = ""
    title: str = ""
    summary: str = ""
    detailed_analysis: str = ""
    # The parsed structured result, stored as JSON.
    result_json: Any = None
    # Snapshot of the input data the prompt was built from.
    data_snapshot: dict[str, Any] = Field(default_factory=dict)
    confidence_score: float | None = None
    consensus_models: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class Severity(str, Enum):  # noqa: UP042
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Issue(BaseModel):
    """A detected anomaly, optionally auto-fixable.

    ``fix_applied`` is the one mutable flag; updates to it are checked
    against ``version`` so two concurrent fixers cannot both apply.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    issue_type: str
    severity: Severity
    description: str
    affected_component: str | None = None
    affected_doggy: str | None = None
    detection_source: str = "analytics"
    auto_fixable: bool = False
    fix_applied: bool = False
    fix_applied_at: datetime | None = None
    fix_description: str | None = None
    hq_suggestion: str | None = None
    hq_approved: bool = False
    resolved_at: datetime | None = None
    run_id: str | None = None
    version: int = 1
    created_at: datetime = Field(default_factory=_utcnow)


class AutoFix(BaseModel):
    """Record of a fix the self-heal agent applied."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    fix_type: str
    target_component: str
    description: str
    issue_type: str
    issue_id: str | None = None
    success: bool = True
    applied_at: datetime = Field(default_factory=_utcnow)
