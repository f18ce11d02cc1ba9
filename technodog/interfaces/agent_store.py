"""Abstract base class for agent run/result persistence.

Covers the rows every agent writes: run records, insights, detected issues
and applied fixes.  The SQLite implementation lives in
``technodog/providers/store/sqlite_agent_store.py``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from technodog.models.agent import AgentRun, AutoFix, Insight, Issue


class IAgentStore(ABC):
    """Contract for run-record and result persistence.

    A run's terminal status and the result rows it produced are written in
    one transaction by :meth:`complete_run`.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they don't exist."""

    # -- runs -----------------------------------------------------------

    @abstractmethod
    async def start_run(self, agent: str, run_type: str) -> AgentRun:
        """Insert a RUNNING run record and return it."""

    @abstractmethod
    async def heartbeat(self, run_id: str) -> None:
        """Mark a running run as still alive."""

    @abstractmethod
    async def complete_run(
        self,
        run_id: str,
        stats: dict[str, Any] | None = None,
        insights: list[Insight] | None = None,
        issues: list[Issue] | None = None,
        fixes: list[AutoFix] | None = None,
    ) -> AgentRun:
        """Mark the run COMPLETED and insert its result rows atomically.

        Raises
        ------
        technodog.utils.errors.RecordNotFoundError
            No such run.
        technodog.utils.errors.ConcurrencyConflictError
            The run already reached a terminal status.
        """

    @abstractmethod
    async def fail_run(self, run_id: str, error_message: str) -> AgentRun:
        """Mark the run FAILED with ``error_message``."""

    @abstractmethod
    async def get_run(self, run_id: str) -> AgentRun:
        """Return a run with its derived status (STALE when abandoned)."""

    @abstractmethod
    async def list_runs(self, agent: str | None = None, limit: int = 20) -> list[AgentRun]:
        """Return recent runs, newest first."""

    # -- insights -------------------------------------------------------

    @abstractmethod
    async def list_insights(
        self,
        agent: str | None = None,
        insight_type: str | None = None,
        include_expired: bool = True,
        limit: int = 20,
    ) -> list[Insight]:
        """Return insights, newest first."""

    # -- issues / fixes -------------------------------------------------

    @abstractmethod
    async def get_issue(self, issue_id: str) -> Issue:
        """Return one issue or raise ``RecordNotFoundError``."""

    @abstractmethod
    async def list_issues(self, unresolved_only: bool = False, limit: int = 100) -> list[Issue]:
        """Return issues, newest first."""

    @abstractmethod
    async def mark_fix_applied(self, issue_id: str, expected_version: int, description: str) -> Issue:
        """Set ``fix_applied`` if the row is still at ``expected_version``."""

    @abstractmethod
    async def apply_fix(self, issue_id: str, expected_version: int, fix: AutoFix) -> Issue:
        """Set ``fix_applied`` and insert ``fix`` atomically, version-checked."""

    @abstractmethod
    async def set_suggestion(self, issue_id: str, suggestion: str) -> Issue:
        """Attach a pending HQ suggestion to an issue."""

    @abstractmethod
    async def record_fix(self, fix: AutoFix) -> AutoFix:
        """Insert a fix record outside of a run."""

    @abstractmethod
    async def list_fixes(self, limit: int = 5) -> list[AutoFix]:
        """Return the most recent fixes."""
