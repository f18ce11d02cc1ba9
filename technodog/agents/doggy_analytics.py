"""Doggy share analytics with multi-model insights.

Share events for the Techno Doggies avatars are aggregated over a time
window and handed to the LLM providers:

* ``analyze`` -- one full analysis, providers tried in fallback order.
* ``daily-summary`` -- a short, 2-3 sentence recap of the last 24 hours.
* ``consensus`` -- every provider at once; each returns recommendations
  plus an overall sentiment, merged with the consensus policy.
* ``viral-detection`` / ``platform-performance`` -- pure aggregation.
* ``get-insights`` -- the latest stored insights.
"""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from technodog.agents.base import ActionResult, BaseAgent, RunContext, action, param
from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import IDoggyStore
from technodog.models.agent import Insight
from technodog.models.consensus import Completion, ProviderOpinion
from technodog.models.content import ShareStats
from technodog.providers.llm.registry import DEFAULT_ORDER
from technodog.services.orchestrator import ModelOrchestrator
from technodog.services.prompt_builder import PromptTemplate
from technodog.utils.confidence import clamp_confidence

TIME_RANGES: dict[str, int] = {"1h": 1, "24h": 24, "7d": 168, "30d": 720}
DEFAULT_TIME_RANGE = "24h"
SENTIMENTS = ("positive", "neutral", "negative")

ANALYSIS_SYSTEM_PROMPT = """You are an analytics expert specializing in viral content and social sharing dynamics for a techno music community website. Analyze share data and provide actionable insights. Focus on:
- Platform performance
- Viral potential
- User engagement patterns
- Growth opportunities

Be concise and data-driven."""

ANALYSIS_PROMPT = PromptTemplate(
    """Analyze these sharing statistics for Techno Doggies (shareable dog avatars):

Total Shares: {total}
Reshares: {reshares}
Viral Chains: {viral_chains}
Avg Chain Depth: {avg_chain_depth}

By Platform:
{by_platform}

Top Performing Doggies:
{top_performers}

Provide:
1. Key insights (3-5 points)
2. Platform recommendations
3. Growth opportunities
4. Potential issues to address"""
)

SUMMARY_SYSTEM_PROMPT = (
    "Generate a brief, engaging daily summary for a techno dog avatar sharing platform. "
    "Be fun but data-driven. Use underground techno culture references."
)

SUMMARY_PROMPT = PromptTemplate(
    """Daily stats:
- {total} shares today
- Top platform: {top_platform}
- Most shared doggy: {top_doggy}
- Reshare rate: {reshare_rate}%

Write a 2-3 sentence summary."""
)

CONSENSUS_SYSTEM_PROMPT = "Analyze social sharing data. Provide exactly 3 key recommendations as a JSON array."

CONSENSUS_PROMPT = PromptTemplate(
    'Stats: {stats}. Return JSON: { "recommendations": ["rec1", "rec2", "rec3"], '
    '"sentiment": "positive|neutral|negative", "confidence": 0.0-1.0 }'
)


def resolve_time_range(value: str | None) -> tuple[str, int]:
    """Map a time-range label to hours; unknown labels fall back to 24h."""
    if value in TIME_RANGES:
        return value, TIME_RANGES[value]
    return DEFAULT_TIME_RANGE, TIME_RANGES[DEFAULT_TIME_RANGE]


def aggregate_shares(events: list[dict[str, Any]]) -> ShareStats:
    """Fold raw share events into :class:`ShareStats`."""
    by_platform: Counter[str] = Counter()
    by_doggy: Counter[str] = Counter()
    reshares = 0
    chains = 0
    depth_total = 0

    for event in events:
        by_platform[event.get("platform") or "unknown"] += 1
        by_doggy[event.get("doggy_name") or "unknown"] += 1
        if event.get("share_type") == "reshare" or event.get("parent_share_id"):
            reshares += 1
        depth = event.get("chain_depth") or 0
        if depth > 0:
            chains += 1
            depth_total += depth

    return ShareStats(
        total=len(events),
        by_platform=dict(by_platform),
        by_doggy=dict(by_doggy),
        reshares=reshares,
        viral_chains=chains,
        avg_chain_depth=depth_total / chains if chains else 0.0,
        top_performers=[name for name, _ in by_doggy.most_common(5)],
    )


def stats_payload(stats: ShareStats) -> dict[str, Any]:
    return {
        "total": stats.total,
        "byPlatform": stats.by_platform,
        "byDoggy": stats.by_doggy,
        "reshares": stats.reshares,
        "viralChains": stats.viral_chains,
        "avgChainDepth": stats.avg_chain_depth,
        "topPerformers": stats.top_performers,
    }


def platform_breakdown(stats: ShareStats) -> list[dict[str, Any]]:
    ranked = sorted(stats.by_platform.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {
            "platform": platform,
            "shares": count,
            "percentage": f"{count / stats.total * 100:.1f}" if stats.total else "0",
            "rank": rank,
        }
        for rank, (platform, count) in enumerate(ranked, start=1)
    ]


def to_opinion(completion: Completion, parsed: Any) -> ProviderOpinion:
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    sentiment = str(parsed.get("sentiment") or "").lower()
    if sentiment not in SENTIMENTS:
        raise ValueError(f"unknown sentiment: {sentiment!r}")
    return ProviderOpinion(
        provider=completion.provider,
        model=completion.model,
        recommendation=sentiment,
        confidence=clamp_confidence(parsed.get("confidence"), default=0.5),
        lists={"recommendations": [str(r) for r in parsed.get("recommendations") or []]},
    )


class DoggyAnalyticsAgent(BaseAgent):
    name = "doggy-analytics-insights"
    default_action = None
    description = "Share-dynamics analysis for the doggy avatars"

    def __init__(
        self,
        store: IAgentStore,
        orchestrator: ModelOrchestrator,
        doggies: IDoggyStore,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(store, orchestrator, config)
        self._doggies = doggies
        self._providers: list[str] = list(self._config.get("providers") or DEFAULT_ORDER)
        self._provider_confidence: dict[str, float] = dict(self._config.get("provider_confidence") or {})
        self._analysis_ttl = timedelta(hours=float(self._config.get("analysis_ttl_hours", 24)))
        self._consensus_ttl = timedelta(hours=float(self._config.get("consensus_ttl_hours", 6)))

    async def share_stats(self, hours: int) -> ShareStats:
        since = datetime.now(tz=timezone.utc) - timedelta(hours=hours)  # noqa: UP017
        return aggregate_shares(await self._doggies.list_share_events(since))

    def _expiry(self, ttl: timedelta) -> datetime:
        return datetime.now(tz=timezone.utc) + ttl  # noqa: UP017

    @action("analyze")
    async def _analyze(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        label, hours = resolve_time_range(param(payload, "time_range", "timeRange"))
        stats = await self.share_stats(hours)

        prompt = ANALYSIS_PROMPT.render(
            total=stats.total,
            reshares=stats.reshares,
            viral_chains=stats.viral_chains,
            avg_chain_depth=f"{stats.avg_chain_depth:.2f}",
            by_platform="\n".join(f"- {p}: {c}" for p, c in stats.by_platform.items()),
            top_performers="\n".join(
                f"{i}. {d}: {stats.by_doggy[d]} shares" for i, d in enumerate(stats.top_performers, start=1)
            ),
        )
        completion = await self.orchestrator.first_success(
            self._providers, ANALYSIS_SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=1000
        )
        confidence = self._provider_confidence.get(completion.provider)

        insight = Insight(
            agent=self.name,
            insight_type="full_analysis",
            model_used=completion.provider,
            model_name=completion.model,
            title=f"Share Analysis ({label})",
            summary=completion.text[:500],
            detailed_analysis=completion.text,
            data_snapshot=stats_payload(stats),
            confidence_score=confidence,
            expires_at=self._expiry(self._analysis_ttl),
        )
        return ActionResult(
            {
                "stats": stats_payload(stats),
                "analysis": {
                    "provider": completion.provider,
                    "model": completion.model,
                    "analysis": completion.text,
                    "confidence": confidence,
                },
            },
            stats={"time_range": label, "shares": stats.total},
            insights=[insight],
        )

    @action("daily-summary")
    async def _daily_summary(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        stats = await self.share_stats(24)
        prompt = SUMMARY_PROMPT.render(
            total=stats.total,
            top_platform=stats.top_platform or "None",
            top_doggy=stats.top_performers[0] if stats.top_performers else "None",
            reshare_rate=f"{stats.reshare_rate:.1f}" if stats.total else 0,
        )
        completion = await self.orchestrator.first_success(
            self._providers, SUMMARY_SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=1000
        )
        today = datetime.now(tz=timezone.utc).date().isoformat()  # noqa: UP017
        insight = Insight(
            agent=self.name,
            insight_type="daily_summary",
            model_used=completion.provider,
            model_name=completion.model,
            title=f"Daily Summary - {today}",
            summary=completion.text,
            data_snapshot=stats_payload(stats),
            confidence_score=0.9,
            expires_at=self._expiry(self._analysis_ttl),
        )
        return ActionResult(
            {"summary": completion.text, "stats": stats_payload(stats)},
            stats={"shares": stats.total},
            insights=[insight],
        )

    @action("viral-detection", tracked=False)
    async def _viral_detection(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        chains = await self._doggies.list_reshare_chains(limit=50)
        viral = [c for c in chains if (c.get("chain_depth") or 0) >= 2]
        return {
            "viralChains": len(viral),
            "topChains": viral[:10],
            "avgDepth": sum(c["chain_depth"] for c in viral) / len(viral) if viral else 0,
        }

    @action("platform-performance", tracked=False)
    async def _platform_performance(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        label, hours = resolve_time_range(param(payload, "time_range", "timeRange"))
        stats = await self.share_stats(hours)
        return {
            "timeRange": label,
            "totalShares": stats.total,
            "platforms": platform_breakdown(stats),
        }

    @action("consensus")
    async def _consensus(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        label, hours = resolve_time_range(param(payload, "time_range", "timeRange"))
        stats = await self.share_stats(hours)
        snapshot = stats_payload(stats)

        result, fan = await self.orchestrator.consensus(
            self._providers,
            CONSENSUS_SYSTEM_PROMPT,
            CONSENSUS_PROMPT.render(stats=json.dumps(snapshot)),
            to_opinion,
            list_fields=("recommendations",),
            temperature=0.5,
            max_tokens=1000,
        )
        analyses = [
            {"provider": c.provider, "model": c.model, "analysis": c.text} for c in fan.completions
        ]

        insight = Insight(
            agent=self.name,
            insight_type="consensus_analysis",
            model_used="multi-model",
            model_name=", ".join(result.providers),
            title=f"Consensus Analysis ({label})",
            summary=f"{len(result.opinions)}/{len(self._providers)} models analyzed successfully",
            detailed_analysis=json.dumps(analyses),
            result_json={
                "sentiment": result.recommendation,
                "recommendations": result.merged_lists.get("recommendations", []),
                "votes": result.votes,
            },
            data_snapshot=snapshot,
            confidence_score=result.confidence,
            consensus_models=result.providers,
            expires_at=self._expiry(self._consensus_ttl),
        )
        return ActionResult(
            {
                "modelsResponded": len(result.opinions),
                "consensusModels": result.providers,
                "sentiment": result.recommendation,
                "modelsAgree": result.models_agree,
                "confidence": result.confidence,
                "avgConfidence": result.mean_confidence,
                "recommendations": result.merged_lists.get("recommendations", []),
                "analyses": analyses,
                "failures": [f.model_dump() for f in result.failures],
            },
            stats={"time_range": label, "responded": len(result.opinions)},
            insights=[insight],
        )

    @action("get-insights", tracked=False)
    async def _get_insights(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        insights = await self._store.list_insights(agent=self.name, limit=20)
        return {"insights": [i.model_dump(mode="json") for i in insights]}
