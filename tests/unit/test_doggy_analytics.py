"""Unit tests for the doggy share analytics agent."""

from __future__ import annotations

import pytest

from technodog.agents.doggy_analytics import (
    DoggyAnalyticsAgent,
    aggregate_shares,
    platform_breakdown,
    resolve_time_range,
)
from technodog.utils.errors import AllProvidersFailedError, UnknownActionError


@pytest.fixture
async def seeded_doggies(doggy_store):
    root = await doggy_store.add_share_event("Happy Doggy", "whatsapp")
    await doggy_store.add_share_event("Happy Doggy", "whatsapp", "reshare", root, 2)
    await doggy_store.add_share_event("Happy Doggy", "twitter", "reshare", root, 3)
    await doggy_store.add_share_event("Sad Doggy", "whatsapp")
    return doggy_store


def _agent(agent_store, doggies, orchestrator, **config) -> DoggyAnalyticsAgent:
    return DoggyAnalyticsAgent(
        agent_store,
        orchestrator,
        doggies,
        config={"providers": ["openai", "anthropic"], "provider_confidence": {"openai": 0.85}, **config},
    )


# ─── Aggregation ───────────────────────────────────────────────────

def test_resolve_time_range_falls_back():
    assert resolve_time_range("7d") == ("7d", 168)
    assert resolve_time_range("forever") == ("24h", 24)
    assert resolve_time_range(None) == ("24h", 24)


def test_aggregate_shares():
    stats = aggregate_shares(
        [
            {"platform": "whatsapp", "doggy_name": "A", "chain_depth": 0},
            {"platform": "whatsapp", "doggy_name": "A", "share_type": "reshare", "chain_depth": 2},
            {"platform": None, "doggy_name": "B", "parent_share_id": "x", "chain_depth": 4},
        ]
    )
    assert stats.total == 3
    assert stats.by_platform == {"whatsapp": 2, "unknown": 1}
    assert stats.reshares == 2
    assert stats.viral_chains == 2
    assert stats.avg_chain_depth == 3.0
    assert stats.top_performers == ["A", "B"]
    assert stats.top_platform == "whatsapp"


def test_platform_breakdown_ranked():
    stats = aggregate_shares(
        [{"platform": "x"}, {"platform": "whatsapp"}, {"platform": "whatsapp"}, {"platform": "x"},
         {"platform": "whatsapp"}]
    )
    rows = platform_breakdown(stats)
    assert rows[0] == {"platform": "whatsapp", "shares": 3, "percentage": "60.0", "rank": 1}
    assert rows[1]["rank"] == 2


# ─── Actions ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_no_default_action(agent_store, doggy_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, doggy_store, orchestrator_factory(llm_factory("openai")))
    with pytest.raises(UnknownActionError) as excinfo:
        await agent.handle({})
    assert "analyze" in excinfo.value.valid_actions


@pytest.mark.asyncio
async def test_analyze_falls_back_and_stores_insight(
    seeded_doggies, agent_store, orchestrator_factory, llm_factory
):
    orchestrator = orchestrator_factory(
        llm_factory("openai", error=RuntimeError("rate limited")),
        llm_factory("anthropic", "WhatsApp dominates."),
    )
    agent = _agent(agent_store, seeded_doggies, orchestrator)

    result = await agent.handle({"action": "analyze", "timeRange": "7d"})

    assert result["stats"]["total"] == 4
    assert result["analysis"]["provider"] == "anthropic"
    assert result["analysis"]["confidence"] is None
    [insight] = await agent_store.list_insights(agent="doggy-analytics-insights")
    assert insight.title == "Share Analysis (7d)"
    assert insight.expires_at is not None


@pytest.mark.asyncio
async def test_analyze_uses_provider_confidence(
    seeded_doggies, agent_store, orchestrator_factory, llm_factory
):
    orchestrator = orchestrator_factory(llm_factory("openai", "ok"), llm_factory("anthropic"))
    agent = _agent(agent_store, seeded_doggies, orchestrator)

    result = await agent.handle({"action": "analyze"})

    assert result["analysis"]["confidence"] == 0.85


@pytest.mark.asyncio
async def test_daily_summary_prompt(seeded_doggies, agent_store, orchestrator_factory, llm_factory):
    openai = llm_factory("openai", "Big night for Happy Doggy.")
    agent = _agent(agent_store, seeded_doggies, orchestrator_factory(openai, llm_factory("anthropic")))

    result = await agent.handle({"action": "daily-summary"})

    assert result["summary"] == "Big night for Happy Doggy."
    prompt = openai.complete.call_args.args[1]
    assert "- 4 shares today" in prompt
    assert "Top platform: whatsapp" in prompt
    assert "Most shared doggy: Happy Doggy" in prompt
    assert "Reshare rate: 50.0%" in prompt


@pytest.mark.asyncio
async def test_all_providers_down(seeded_doggies, agent_store, orchestrator_factory, llm_factory):
    orchestrator = orchestrator_factory(
        llm_factory("openai", error=RuntimeError("a")),
        llm_factory("anthropic", error=RuntimeError("b")),
    )
    agent = _agent(agent_store, seeded_doggies, orchestrator)

    with pytest.raises(AllProvidersFailedError) as excinfo:
        await agent.handle({"action": "daily-summary"})
    assert [d["provider"] for d in excinfo.value.details()] == ["openai", "anthropic"]


@pytest.mark.asyncio
async def test_viral_detection(seeded_doggies, agent_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, seeded_doggies, orchestrator_factory(llm_factory("openai")))

    result = await agent.handle({"action": "viral-detection"})

    assert result["viralChains"] == 2
    assert result["avgDepth"] == 2.5
    assert "run_id" not in result


@pytest.mark.asyncio
async def test_platform_performance(seeded_doggies, agent_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, seeded_doggies, orchestrator_factory(llm_factory("openai")))

    result = await agent.handle({"action": "platform-performance", "time_range": "bogus"})

    assert result["timeRange"] == "24h"
    assert result["totalShares"] == 4
    assert result["platforms"][0]["platform"] == "whatsapp"


@pytest.mark.asyncio
async def test_consensus_merges_recommendations(
    seeded_doggies, agent_store, orchestrator_factory, llm_factory
):
    orchestrator = orchestrator_factory(
        llm_factory("openai", '{"recommendations": ["Push WhatsApp"], "sentiment": "positive", "confidence": 0.8}'),
        llm_factory("anthropic", 'Sure: {"recommendations": ["Add Telegram"], "sentiment": "Positive"}'),
    )
    agent = _agent(agent_store, seeded_doggies, orchestrator)

    result = await agent.handle({"action": "consensus"})

    assert result["modelsResponded"] == 2
    assert result["sentiment"] == "positive"
    assert result["modelsAgree"] is True
    assert result["recommendations"] == ["Push WhatsApp", "Add Telegram"]
    assert result["confidence"] == pytest.approx(0.65)
    [insight] = await agent_store.list_insights(agent="doggy-analytics-insights")
    assert insight.consensus_models == ["openai", "anthropic"]


@pytest.mark.asyncio
async def test_get_insights_lists_stored(seeded_doggies, agent_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, seeded_doggies, orchestrator_factory(llm_factory("openai"), llm_factory("anthropic")))
    await agent.handle({"action": "daily-summary"})

    result = await agent.handle({"action": "get-insights"})

    assert [i["insight_type"] for i in result["insights"]] == ["daily_summary"]
