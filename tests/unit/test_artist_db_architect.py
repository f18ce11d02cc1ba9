"""Unit tests for the artist database architecture agent."""

from __future__ import annotations

import json

import pytest

from technodog.agents.artist_db_architect import (
    ArtistDbArchitectAgent,
    build_stats,
    generate_action_items,
    identify_issues,
)
from technodog.models.content import CandidateStatus, MergeCandidate
from technodog.utils.errors import AllProvidersFailedError, InvalidRequestError


def _reply(recommendation: str, confidence: float, **extra) -> str:
    body = {
        "recommendation": recommendation,
        "confidence": confidence,
        "reasoning": f"{recommendation} is best",
        "pros": ["fast"],
        "cons": ["risky"],
        "migration_effort": "medium",
        "data_integrity_risk": "low",
    }
    body.update(extra)
    return "Here you go:\n" + json.dumps(body)


@pytest.fixture
async def seeded_artists(artist_store):
    for i in range(3):
        await artist_store.add_dj_artist(f"dj-{i}", f"Artist {i}", embedding=[0.1])
    await artist_store.add_canonical_artist("c-1", "Artist 0")
    return artist_store


# ─── Pure helpers ──────────────────────────────────────────────────

def test_build_stats_link_percentage():
    stats = build_stats({"dj_artists": 200, "rag_linked_to_canonical": 50})
    assert stats["rag_link_percentage"] == "25.0%"
    assert build_stats({})["rag_link_percentage"] == "0%"


def test_identify_issues_flags_unlinked_and_embeddings():
    stats = build_stats(
        {
            "dj_artists": 100,
            "dj_artists_with_embeddings": 10,
            "canonical_artists": 10,
            "canonical_with_photos": 10,
            "artist_profiles": 10,
            "source_mappings": 100,
        }
    )
    issues = identify_issues(stats, pending_candidates=2)
    assert "100 dj_artists records not linked to canonical_artists" in issues
    assert "2 potential duplicate artist pairs pending review" in issues
    assert any("missing embeddings" in i for i in issues)


def test_action_items_follow_recommendation_and_issues():
    items = generate_action_items("hybrid", ["5 canonical_artists missing photos"])
    assert items[0].startswith("Keep both tables")
    assert items[-1] == "Run photo pipeline for artists without photos"


# ─── Actions ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_compare_dbs_is_untracked(seeded_artists, agent_store, orchestrator_factory, llm_factory):
    agent = ArtistDbArchitectAgent(agent_store, orchestrator_factory(llm_factory("openai")), seeded_artists)

    result = await agent.handle({"action": "compare_dbs"})

    assert result["tables"]["dj_artists"]["record_count"] == 3
    assert "run_id" not in result
    assert await agent_store.list_runs() == []


@pytest.mark.asyncio
async def test_analyze_agreement(seeded_artists, agent_store, orchestrator_factory, llm_factory):
    orchestrator = orchestrator_factory(
        llm_factory("openai", _reply("keep_separate", 0.7)),
        llm_factory("anthropic", _reply("keep_separate", 0.9, pros=["clean"])),
    )
    agent = ArtistDbArchitectAgent(agent_store, orchestrator, seeded_artists)

    result = await agent.handle({})

    consensus = result["consensus"]
    assert consensus["models_agree"] is True
    assert consensus["recommendation"] == "keep_separate"
    assert consensus["confidence"] == pytest.approx(0.8)
    assert consensus["combined_pros"] == ["fast", "clean"]
    assert consensus["migration_effort"] == "medium"
    assert "openai_analysis" in result and "anthropic_analysis" in result
    assert result["action_items"][0].startswith("Improve artist_source_map")

    [insight] = await agent_store.list_insights(agent="artist-db-architect")
    assert insight.run_id == result["run_id"]
    assert insight.result_json["consensus"]["recommendation"] == "keep_separate"


@pytest.mark.asyncio
async def test_analyze_disagreement_picks_confident_model(
    seeded_artists, agent_store, orchestrator_factory, llm_factory
):
    orchestrator = orchestrator_factory(
        llm_factory("openai", _reply("consolidate", 0.6)),
        llm_factory("anthropic", _reply("hybrid", 0.9)),
    )
    agent = ArtistDbArchitectAgent(agent_store, orchestrator, seeded_artists)

    result = await agent.handle({"action": "recommend"})

    consensus = result["consensus"]
    assert consensus["models_agree"] is False
    assert consensus["recommendation"] == "hybrid"
    assert consensus["migration_effort"] == "needs_review"
    assert consensus["reasoning"].startswith("Models disagree.")


@pytest.mark.asyncio
async def test_analyze_survives_one_provider_failure(
    seeded_artists, agent_store, orchestrator_factory, llm_factory
):
    orchestrator = orchestrator_factory(
        llm_factory("openai", error=RuntimeError("down")),
        llm_factory("anthropic", _reply("consolidate", 0.75)),
    )
    agent = ArtistDbArchitectAgent(agent_store, orchestrator, seeded_artists)

    result = await agent.handle({"action": "analyze"})

    assert result["consensus"]["recommendation"] == "consolidate"
    assert [f["provider"] for f in result["failures"]] == ["openai"]


@pytest.mark.asyncio
async def test_analyze_all_failed_marks_run_failed(
    seeded_artists, agent_store, orchestrator_factory, llm_factory
):
    orchestrator = orchestrator_factory(
        llm_factory("openai", "no json here"),
        llm_factory("anthropic", error=RuntimeError("down")),
    )
    agent = ArtistDbArchitectAgent(agent_store, orchestrator, seeded_artists)

    with pytest.raises(AllProvidersFailedError):
        await agent.handle({"action": "analyze"})

    [run] = await agent_store.list_runs()
    assert run.status.value == "failed"


@pytest.mark.asyncio
async def test_review_candidates_auto_approves_confident(
    artist_store, agent_store, orchestrator_factory, llm_factory
):
    strong = await artist_store.add_merge_candidate(
        MergeCandidate(rag_artist_id="dj-1", canonical_artist_id="c-1", confidence=0.95)
    )
    await artist_store.add_merge_candidate(
        MergeCandidate(rag_artist_id="dj-2", canonical_artist_id="c-2", confidence=0.5)
    )
    agent = ArtistDbArchitectAgent(
        agent_store, orchestrator_factory(llm_factory("openai")), artist_store,
        config={"auto_approve_confidence": 0.9},
    )

    result = await agent.handle({"action": "review_candidates"})

    assert result["approved"] == [strong.id]
    assert result["pending_review"] == 1
    assert (await artist_store.get_merge_candidate(strong.id)).status is CandidateStatus.APPROVED
    assert (await artist_store.catalog_counts())["rag_linked_to_canonical"] == 1


@pytest.mark.asyncio
async def test_review_candidates_explicit_zero_threshold(
    artist_store, agent_store, orchestrator_factory, llm_factory
):
    await artist_store.add_merge_candidate(
        MergeCandidate(rag_artist_id="dj-1", canonical_artist_id="c-1", confidence=0.1)
    )
    agent = ArtistDbArchitectAgent(
        agent_store, orchestrator_factory(llm_factory("openai")), artist_store,
        config={"auto_approve_confidence": 0.9},
    )

    result = await agent.handle({"action": "review_candidates", "threshold": 0})

    assert result["threshold"] == 0.0
    assert len(result["approved"]) == 1
    assert result["pending_review"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("threshold", ["high", [0.5], 1.5, True])
async def test_review_candidates_rejects_bad_threshold(
    artist_store, agent_store, orchestrator_factory, llm_factory, threshold
):
    agent = ArtistDbArchitectAgent(
        agent_store, orchestrator_factory(llm_factory("openai")), artist_store
    )

    with pytest.raises(InvalidRequestError, match="threshold"):
        await agent.handle({"action": "review_candidates", "threshold": threshold})
