"""Agent base class and action dispatch.

Every agent mirrors one edge function: it receives a ``{"action": ..., ...}``
payload, dispatches to the handler registered for that action and returns a
plain dict that the API layer wraps in the response envelope.

Handlers are declared with the :func:`action` decorator::

    class MyAgent(BaseAgent):
        name = "my-agent"
        default_action = "analyze"

        @action("analyze")
        async def _analyze(self, payload, ctx):
            ...
            return ActionResult({"answer": 42}, insights=[...])

Tracked actions (the default) get a run record: ``start_run`` before the
handler, then ``complete_run`` (with the handler's insights, issues and
fixes, in one transaction) or ``fail_run`` when it raises.  The exception
is re-raised after the run is marked failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar

import structlog

from technodog.interfaces.agent_store import IAgentStore
from technodog.models.agent import AgentRun, AutoFix, Insight, Issue
from technodog.services.orchestrator import ModelOrchestrator
from technodog.utils.errors import InvalidRequestError, UnknownActionError
from technodog.utils.logging import get_logger


@dataclass
class ActionResult:
    """What a handler hands back to the dispatcher."""

    payload: dict[str, Any]
    stats: dict[str, Any] = field(default_factory=dict)
    insights: list[Insight] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    fixes: list[AutoFix] = field(default_factory=list)


@dataclass
class RunContext:
    """Per-invocation context passed to handlers."""

    agent: str
    action: str
    run: AgentRun | None = None
    store: IAgentStore | None = None

    @property
    def run_id(self) -> str | None:
        return self.run.id if self.run else None

    async def heartbeat(self) -> None:
        """Mark a long-running tracked action as still alive."""
        if self.run is not None and self.store is not None:
            await self.store.heartbeat(self.run.id)


Handler = Callable[[Any, dict[str, Any], RunContext], Awaitable["ActionResult | dict[str, Any]"]]


@dataclass(frozen=True)
class _ActionSpec:
    name: str
    tracked: bool
    aliases: tuple[str, ...]


def action(name: str, *, tracked: bool = True, aliases: tuple[str, ...] = ()) -> Callable[[Handler], Handler]:
    """Register the decorated coroutine as the handler for ``name``."""

    def _decorate(fn: Handler) -> Handler:
        fn._action_spec = _ActionSpec(name=name, tracked=tracked, aliases=aliases)  # type: ignore[attr-defined]
        return fn

    return _decorate


def param(payload: dict[str, Any], *names: str, default: Any = None) -> Any:
    """First present, non-empty value among ``names`` (snake or camel case)."""
    for name in names:
        value = payload.get(name)
        if value is not None and value != "":
            return value
    return default


def require(payload: dict[str, Any], *names: str) -> Any:
    """Like :func:`param`, raising ``InvalidRequestError`` when absent."""
    value = param(payload, *names)
    if value is None:
        raise InvalidRequestError(f"{names[0]} required")
    return value


class BaseAgent:
    """Common dispatch, run tracking and logging for every agent."""

    name: ClassVar[str] = ""
    default_action: ClassVar[str | None] = None
    description: ClassVar[str] = ""

    def __init__(
        self,
        store: IAgentStore,
        orchestrator: ModelOrchestrator | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._config = dict(config or {})
        self._logger: structlog.BoundLogger = get_logger(f"technodog.agents.{self.name}")
        self._handlers: dict[str, tuple[Handler, _ActionSpec]] = {}
        for attr in dir(type(self)):
            fn = getattr(type(self), attr)
            spec = getattr(fn, "_action_spec", None)
            if spec is None:
                continue
            for key in (spec.name, *spec.aliases):
                self._handlers[key] = (fn, spec)

    @property
    def orchestrator(self) -> ModelOrchestrator:
        if self._orchestrator is None:
            raise InvalidRequestError(f"{self.name} has no model orchestrator configured")
        return self._orchestrator

    def actions(self) -> list[str]:
        """Registered action names (aliases included), sorted."""
        return sorted(self._handlers)

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "default_action": self.default_action,
            "actions": self.actions(),
        }

    async def handle(self, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Dispatch ``payload["action"]`` (or the default action).

        Raises:
            UnknownActionError: The action is not registered.
        """
        payload = payload or {}
        action_name = payload.get("action") or self.default_action
        if not action_name or action_name not in self._handlers:
            raise UnknownActionError(str(action_name or ""), self.actions())

        handler, spec = self._handlers[action_name]
        log = self._logger.bind(agent=self.name, action=action_name)
        log.info("action_started")

        if not spec.tracked:
            result = await handler(self, payload, RunContext(self.name, action_name))
            log.info("action_finished")
            return _as_payload(result)

        run = await self._store.start_run(self.name, action_name)
        ctx = RunContext(self.name, action_name, run=run, store=self._store)
        try:
            result = await handler(self, payload, ctx)
        except Exception as exc:
            log.error("action_failed", run_id=run.id, error=str(exc), error_type=type(exc).__name__)
            await self._store.fail_run(run.id, str(exc))
            raise

        if isinstance(result, ActionResult):
            await self._store.complete_run(
                run.id,
                stats=result.stats,
                insights=result.insights,
                issues=result.issues,
                fixes=result.fixes,
            )
        else:
            await self._store.complete_run(run.id)

        log.info(
            "action_finished",
            run_id=run.id,
            insights=len(result.insights) if isinstance(result, ActionResult) else 0,
        )
        return {**_as_payload(result), "run_id": run.id}


def _as_payload(result: ActionResult | dict[str, Any]) -> dict[str, Any]:
    if isinstance(result, ActionResult):
        return dict(result.payload)
    return dict(result)
