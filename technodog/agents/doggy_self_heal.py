"""Self-healing monitor for the doggy landing page.

Scope is limited to the doggy pages (``/doggies`` and the embeddable
widget) and the ``doggy_*`` tables.  An ``analyze`` run:

1. scans the last hour of page analytics for low share/download rates and
   an unbalanced doggy line-up;
2. groups the last hour of client error logs and flags recurring types;
3. scores virality (last 24 hours) and overall performance;
4. drafts suggestions for Doggies HQ (never applied automatically);
5. applies the landing-page fixes that are safe to automate.

Issues, fixes and the run's scores are written together when the run
completes.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

from technodog.agents.base import ActionResult, BaseAgent, RunContext, action, param
from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import IDoggyStore
from technodog.models.agent import AutoFix, Issue, Severity
from technodog.utils.errors import InvalidRequestError

SEVERITY_PENALTY = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}

# issue_type -> (fix_type, description)
FIX_PLAYBOOK: dict[str, tuple[str, str]] = {
    "low_share_rate": ("config_update", "Enabled prominent share CTA mode"),
    "recurring_share_error": ("fallback_enable", "Enabled clipboard fallback for sharing"),
    "recurring_download_error": ("fallback_enable", "Enabled simplified PNG download fallback"),
}

_MAIN_COMPONENT = "TechnoDoggies.tsx"
_WIDGET_COMPONENT = "DoggyWidget.tsx"


def _rates(events: list[dict[str, Any]]) -> tuple[int, int, int]:
    views = sum(1 for e in events if e.get("event_type") == "page_view")
    shares = sum(1 for e in events if e.get("event_type") == "share")
    downloads = sum(1 for e in events if "download" in (e.get("event_type") or ""))
    return views, shares, downloads


def detect_analytics_issues(
    events: list[dict[str, Any]],
    min_views: int = 10,
    share_threshold: float = 0.05,
    download_threshold: float = 0.10,
    imbalance_ratio: float = 5.0,
) -> list[Issue]:
    issues: list[Issue] = []
    if not events:
        return issues

    views, shares, downloads = _rates(events)
    if views > min_views and shares / views < share_threshold:
        issues.append(
            Issue(
                issue_type="low_share_rate",
                severity=Severity.MEDIUM,
                description=(
                    f"Share rate is {shares / views * 100:.1f}% "
                    f"(below {share_threshold * 100:.0f}% threshold)"
                ),
                auto_fixable=True,
                affected_component=_MAIN_COMPONENT,
            )
        )
    if views > min_views and downloads / views < download_threshold:
        issues.append(
            Issue(
                issue_type="low_download_rate",
                severity=Severity.LOW,
                description=(
                    f"Download rate is {downloads / views * 100:.1f}% "
                    f"(below {download_threshold * 100:.0f}% threshold)"
                ),
                auto_fixable=False,
                affected_component=_MAIN_COMPONENT,
            )
        )

    per_doggy = Counter(e["doggy_name"] for e in events if e.get("doggy_name"))
    if len(per_doggy) > 3:
        highest = max(per_doggy.values())
        lowest = min(per_doggy.values())
        if highest > lowest * imbalance_ratio:
            underperformer = next(name for name, count in per_doggy.items() if count == lowest)
            issues.append(
                Issue(
                    issue_type="doggy_imbalance",
                    severity=Severity.LOW,
                    description=f"{underperformer} Dog has very low engagement compared to others",
                    auto_fixable=False,
                    affected_doggy=underperformer,
                )
            )
    return issues


def detect_error_issues(logs: list[dict[str, Any]], recurring_at: int = 3, high_at: int = 10) -> list[Issue]:
    groups: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for log in logs:
        groups[log.get("error_type") or "unknown"].append(log)

    issues: list[Issue] = []
    for error_type, entries in groups.items():
        if len(entries) < recurring_at:
            continue
        issues.append(
            Issue(
                issue_type=f"recurring_{error_type}_error",
                severity=Severity.HIGH if len(entries) >= high_at else Severity.MEDIUM,
                description=f"{len(entries)} {error_type} errors in the last hour",
                auto_fixable=error_type in ("share", "download"),
                affected_component=(
                    _WIDGET_COMPONENT if entries[0].get("page_source") == "widget" else _MAIN_COMPONENT
                ),
                detection_source="error_logs",
            )
        )
    return issues


def virality_score(events: list[dict[str, Any]]) -> int:
    """50 base, up to +25 for share rate and +25 for download rate."""
    if not events:
        return 50
    views, shares, downloads = _rates(events)
    share_rate = shares / views * 100 if views else 0.0
    download_rate = downloads / views * 100 if views else 0.0
    score = 50 + min(25.0, share_rate * 2.5) + min(25.0, download_rate * 1.25)
    return round(min(100.0, score))


def performance_score(issues: list[Issue]) -> int:
    score = 100 - sum(SEVERITY_PENALTY[i.severity] for i in issues)
    return max(0, score)


def hq_suggestions(virality: int, issues: list[Issue]) -> list[dict[str, str]]:
    suggestions: list[dict[str, str]] = []
    if virality < 60:
        suggestions.append(
            {
                "title": "Boost Share Button Visibility",
                "description": (
                    "Consider making the WhatsApp share button more prominent on mobile. "
                    "Current virality score is below target."
                ),
                "priority": "high",
                "category": "virality",
            }
        )
    if any(i.issue_type == "low_share_rate" for i in issues):
        suggestions.append(
            {
                "title": "Add Share Incentive",
                "description": (
                    'Consider adding a "Share to unlock special doggy" feature to encourage social sharing.'
                ),
                "priority": "medium",
                "category": "low_share_rate",
            }
        )
    imbalance = next((i for i in issues if i.issue_type == "doggy_imbalance"), None)
    if imbalance is not None:
        suggestions.append(
            {
                "title": "Feature Underperforming Doggy",
                "description": (
                    f"Consider featuring {imbalance.affected_doggy} Dog more prominently "
                    "or updating its personality."
                ),
                "priority": "low",
                "category": "doggy_imbalance",
            }
        )
    return suggestions


def plan_fix(issue: Issue) -> AutoFix | None:
    """The landing-page fix for ``issue``, or ``None`` when none is automated."""
    entry = FIX_PLAYBOOK.get(issue.issue_type)
    if entry is None:
        return None
    fix_type, description = entry
    return AutoFix(
        fix_type=fix_type,
        target_component=issue.affected_component or "landing_page",
        description=description,
        issue_type=issue.issue_type,
        issue_id=issue.id,
    )


def _fix_payload(fix: AutoFix) -> dict[str, Any]:
    return {
        "type": fix.fix_type,
        "component": fix.target_component,
        "description": fix.description,
        "success": fix.success,
    }


def _data(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


class DoggySelfHealAgent(BaseAgent):
    name = "doggy-self-heal"
    default_action = "analyze"
    description = "Health checks and safe auto-fixes for the doggy landing page"

    def __init__(
        self,
        store: IAgentStore,
        doggies: IDoggyStore,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(store, None, config)
        self._doggies = doggies
        self._healthy_at = int(self._config.get("healthy_score", 70))
        self._thresholds = {
            "min_views": int(self._config.get("min_views", 10)),
            "share_threshold": float(self._config.get("share_rate_threshold", 0.05)),
            "download_threshold": float(self._config.get("download_rate_threshold", 0.10)),
            "imbalance_ratio": float(self._config.get("imbalance_ratio", 5.0)),
        }

    @action("analyze")
    async def _analyze(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        now = datetime.now(tz=timezone.utc)  # noqa: UP017
        hour_ago = now - timedelta(hours=1)

        recent = await self._doggies.list_page_events(hour_ago)
        issues = detect_analytics_issues(recent, **self._thresholds)
        issues += detect_error_issues(await self._doggies.list_error_logs(hour_ago))
        await ctx.heartbeat()

        virality = virality_score(await self._doggies.list_page_events(now - timedelta(hours=24)))
        performance = performance_score(issues)
        suggestions = hq_suggestions(virality, issues)
        by_category = {s["category"]: s["description"] for s in suggestions}

        fixes: list[AutoFix] = []
        stored: list[Issue] = []
        for issue in issues:
            update: dict[str, Any] = {"hq_suggestion": by_category.get(issue.issue_type)}
            fix = plan_fix(issue) if issue.auto_fixable else None
            if fix is not None:
                fixes.append(fix)
                update.update(fix_applied=True, fix_applied_at=fix.applied_at, fix_description=fix.description)
            stored.append(issue.model_copy(update=update))

        result = {
            "performanceScore": performance,
            "viralityScore": virality,
            "issuesFound": [
                {
                    "id": i.id,
                    "type": i.issue_type,
                    "severity": i.severity.value,
                    "description": i.description,
                    "autoFixable": i.auto_fixable,
                    "component": i.affected_component,
                    "doggy": i.affected_doggy,
                }
                for i in stored
            ],
            "hqSuggestions": suggestions,
            "autoFixesApplied": [_fix_payload(f) for f in fixes],
        }
        self._logger.info(
            "health_check",
            performance=performance,
            virality=virality,
            issues=len(stored),
            fixes=len(fixes),
        )
        return ActionResult(
            {"runId": ctx.run_id, "result": result},
            stats={
                "issues_detected": len(stored),
                "issues_auto_fixed": len(fixes),
                "hq_suggestions_created": len(suggestions),
                "performance_score": performance,
                "virality_score": virality,
            },
            issues=stored,
            fixes=fixes,
        )

    @action("auto-fix", tracked=False)
    async def _auto_fix(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        issue_id = param(_data(payload), "issue_id", "issueId")
        if not issue_id:
            return {"fixed": False, "message": "No fixable issue found"}

        issue = await self._store.get_issue(issue_id)
        fix = plan_fix(issue) if issue.auto_fixable and not issue.fix_applied else None
        if fix is None:
            return {"fixed": False, "message": "No fixable issue found"}

        updated = await self._store.apply_fix(issue.id, issue.version, fix)
        return {"fixed": True, "fix": _fix_payload(fix), "issueVersion": updated.version}

    @action("report-error", tracked=False)
    async def _report_error(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        data = _data(payload)
        entry = {
            "error_type": data.get("error_type") or "unknown",
            "error_message": data.get("error_message") or "No message provided",
            "stack_trace": data.get("stack_trace"),
            "page_source": data.get("page_source"),
            "doggy_name": data.get("doggy_name"),
            "action_attempted": data.get("action_attempted"),
            "session_id": data.get("session_id"),
            "user_agent": data.get("user_agent"),
        }
        row = await self._doggies.insert_error_log(entry)
        return {"message": "Error logged", "id": row["id"]}

    @action("suggest-hq", tracked=False)
    async def _suggest_hq(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        data = _data(payload)
        suggestion = data.get("suggestion")
        if not suggestion:
            raise InvalidRequestError("suggestion required")
        issue_id = param(data, "issue_id", "issueId")
        if issue_id:
            await self._store.set_suggestion(issue_id, suggestion)
        return {"message": "HQ suggestion created (pending approval)"}

    @action("get-status", tracked=False)
    async def _get_status(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        runs = await self._store.list_runs(agent=self.name, limit=20)
        last_run = next((r for r in runs if r.run_type == "analyze"), None)
        unresolved = await self._store.list_issues(unresolved_only=True, limit=1000)
        pending = [
            {"id": i.id, "issue_type": i.issue_type, "hq_suggestion": i.hq_suggestion}
            for i in unresolved
            if i.hq_suggestion and not i.hq_approved
        ]
        fixes = await self._store.list_fixes(limit=5)
        score = (last_run.stats.get("performance_score") or 0) if last_run else 0
        return {
            "status": {
                "lastRun": last_run.model_dump(mode="json") if last_run else None,
                "unresolvedIssues": len(unresolved),
                "pendingHQSuggestions": pending,
                "recentFixes": [f.model_dump(mode="json") for f in fixes],
                "isHealthy": score >= self._healthy_at,
            }
        }
