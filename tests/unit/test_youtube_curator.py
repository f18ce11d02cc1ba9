"""Unit tests for the YouTube channel curator agent."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from technodog.agents.youtube_curator import (
    YouTubeCuratorAgent,
    dedupe_videos,
    parse_matches,
    video_summary,
)
from technodog.interfaces.web_provider import IVideoProvider
from technodog.models.content import ChannelVideo
from technodog.utils.errors import CredentialMissingError, InvalidRequestError, RecordNotFoundError

VIDEOS = [
    ChannelVideo(video_id="v1", title="Spiral Tribe 1992", description="Free party footage",
                 playlist_id="PL1", playlist_title="Free Parties"),
    ChannelVideo(video_id="v2", title="Galgo rescue", description="Dogs", playlist_id="PL2",
                 playlist_title="Galgos"),
    ChannelVideo(video_id="v3", title="Cooking show", description="Paella", playlist_id="PL2",
                 playlist_title="Galgos"),
]


def _youtube(channel_id="UCpipa", available=True) -> MagicMock:
    youtube = MagicMock(spec=IVideoProvider)
    youtube.is_available.return_value = available
    youtube.resolve_channel_id = AsyncMock(return_value=channel_id)
    youtube.list_playlists = AsyncMock(
        return_value=[{"id": "PL1", "title": "Free Parties"}, {"id": "PL2", "title": "Galgos"}]
    )
    youtube.list_playlist_videos = AsyncMock(
        side_effect=lambda playlist_id, title: [v for v in VIDEOS if v.playlist_id == playlist_id]
        + ([VIDEOS[0]] if playlist_id == "PL2" else [])
    )
    return youtube


def _agent(agent_store, video_store, orchestrator, youtube=None, **config) -> YouTubeCuratorAgent:
    return YouTubeCuratorAgent(
        agent_store,
        orchestrator,
        video_store,
        youtube or _youtube(),
        config={"providers": ["gemini", "openai"], "channel_handle": "@lapipaislapipa", **config},
    )


# ─── Pure helpers ──────────────────────────────────────────────────

def test_video_summary_numbers_from_one():
    lines = video_summary(VIDEOS[:2]).splitlines()
    assert lines[0] == '1. [Free Parties] "Spiral Tribe 1992" - Free party footage...'
    assert lines[1].startswith("2. [Galgos]")


def test_parse_matches_drops_bad_entries():
    items = [
        {"videoIndex": 1, "pageType": "Crew", "entitySlug": "spiral-tribe", "reason": "rave", "relevanceScore": 0.9},
        {"videoIndex": 2, "pageType": "doggies", "entitySlug": "null", "relevanceScore": 0.8},
        {"videoIndex": 9, "pageType": "crew"},
        {"videoIndex": 1, "pageType": "nightclub"},
        {"videoIndex": "x", "pageType": "crew"},
        "garbage",
    ]
    matches = parse_matches(items, VIDEOS)
    assert [(m.video_id, m.page_type, m.entity_slug) for m in matches] == [
        ("v1", "crew", "spiral-tribe"),
        ("v2", "doggies", None),
    ]
    assert parse_matches({"not": "a list"}, VIDEOS) == []


def test_dedupe_videos():
    assert [v.video_id for v in dedupe_videos(VIDEOS + [VIDEOS[0]])] == ["v1", "v2", "v3"]


# ─── Actions ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sync_mirrors_playlists(agent_store, video_store, orchestrator_factory, llm_factory):
    youtube = _youtube()
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini")), youtube)

    result = await agent.handle({})

    assert result["channelId"] == "UCpipa"
    assert result["playlistsFound"] == 2
    assert result["videosStored"] == 3
    youtube.resolve_channel_id.assert_awaited_once_with("@lapipaislapipa")
    status = await video_store.status()
    assert status["videos"] == 3
    assert status["last_sync"]["playlists_synced"] == 2


@pytest.mark.asyncio
async def test_sync_unknown_channel(agent_store, video_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini")), _youtube(channel_id=None))
    with pytest.raises(RecordNotFoundError):
        await agent.handle({"action": "sync"})


@pytest.mark.asyncio
async def test_missing_api_key(agent_store, video_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini")), _youtube(available=False))
    with pytest.raises(CredentialMissingError):
        await agent.handle({"action": "status"})


@pytest.mark.asyncio
async def test_analyze_assigns_confident_matches(agent_store, video_store, orchestrator_factory, llm_factory):
    await video_store.upsert_videos(VIDEOS)
    reply = "Matches:\n" + json.dumps(
        [
            {"videoIndex": 1, "pageType": "crew", "entitySlug": "spiral-tribe", "reason": "Free party",
             "relevanceScore": 0.92},
            {"videoIndex": 3, "pageType": "homepage", "entitySlug": None, "relevanceScore": 0.3},
        ]
    )
    gemini = llm_factory("gemini", reply)
    agent = _agent(agent_store, video_store, orchestrator_factory(gemini, llm_factory("openai")))

    result = await agent.handle({"action": "analyze"})

    assert result["videosAnalyzed"] == 3
    assert result["matchesFound"] == 1
    assert result["assignmentsCreated"] == 1
    assert result["parseStatus"] == "ok"
    assert await video_store.list_unanalyzed_videos() == []
    system_prompt, prompt = gemini.complete.call_args.args
    assert "berghain" in system_prompt
    assert "Only return high-confidence matches (score > 0.6)" in prompt


@pytest.mark.asyncio
async def test_analyze_unparseable_reply_still_marks_videos(
    agent_store, video_store, orchestrator_factory, llm_factory
):
    await video_store.upsert_videos(VIDEOS[:1])
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini", "No strong matches.")))

    result = await agent.handle({"action": "analyze"})

    assert result["parseStatus"] == "not_found"
    assert result["assignmentsCreated"] == 0
    assert await video_store.list_unanalyzed_videos() == []


@pytest.mark.asyncio
async def test_analyze_nothing_pending(agent_store, video_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini")))
    result = await agent.handle({"action": "analyze"})
    assert result["videosAnalyzed"] == 0


@pytest.mark.asyncio
async def test_get_page_videos(agent_store, video_store, orchestrator_factory, llm_factory):
    await video_store.upsert_videos(VIDEOS)
    reply = json.dumps([{"videoIndex": 2, "pageType": "doggies", "reason": "Galgos", "relevanceScore": 0.8}])
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini", reply)))
    await agent.handle({"action": "analyze"})

    result = await agent.handle({"action": "get-page-videos", "pageType": "doggies"})

    assert [v["id"] for v in result["videos"]] == ["v2"]
    assert result["videos"][0]["reason"] == "Galgos"
    assert result["videos"][0]["isFeatured"] is False
    with pytest.raises(InvalidRequestError):
        await agent.handle({"action": "get-page-videos"})


@pytest.mark.asyncio
async def test_status(agent_store, video_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, video_store, orchestrator_factory(llm_factory("gemini")))
    result = await agent.handle({"action": "status"})
    assert result["stats"] == {"videosStored": 0, "assignmentsCreated": 0, "lastSync": None}
