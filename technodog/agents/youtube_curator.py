"""Curates videos from one YouTube channel onto techno.dog pages.

``sync`` mirrors every playlist of the configured channel into
``curated_channel_videos``.  ``analyze`` asks a model to place new videos
on crew, venue, festival, artist and editorial pages; only matches above
the relevance threshold become assignments.  ``get-page-videos`` serves the
assignments for one page.
"""

from __future__ import annotations

from typing import Any

from technodog.agents.base import ActionResult, BaseAgent, RunContext, action, param, require
from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import IVideoStore
from technodog.interfaces.web_provider import IVideoProvider
from technodog.models.content import ChannelVideo, VideoMatch
from technodog.services.orchestrator import ModelOrchestrator
from technodog.services.prompt_builder import PromptTemplate
from technodog.utils.confidence import clamp_confidence
from technodog.utils.errors import CredentialMissingError, RecordNotFoundError
from technodog.utils.json_extract import extract_array

PAGE_TYPES = ("crew", "venue", "festival", "artist", "doggies", "homepage", "technopedia", "gear")

DEFAULT_SITE_CONTENT: dict[str, list[str]] = {
    "crews": ["spiral-tribe", "teknival", "underground-resistance-crew", "mord-crew", "bassiani-crew", "sandwell-district"],
    "venues": ["berghain", "tresor", "about-blank", "bassiani", "concrete", "de-school"],
    "festivals": ["awakenings", "dekmantel", "time-warp", "atonal", "sonar", "lev", "aquasella", "unsound"],
    "artists": ["jeff-mills", "robert-hood", "ben-klock", "helena-hauff"],
}

CURATOR_SYSTEM_PROMPT = PromptTemplate(
    """You are a techno music curator for techno.dog, analyzing YouTube videos to match them to relevant pages on the site.

Site sections:
- Crews: Sound systems, collectives, party crews ({crews}...)
- Venues: Clubs, warehouses ({venues}...)
- Festivals: Music festivals ({festivals}...)
- Artists: DJs, producers
- Doggies: Dog-themed content, especially galgo/greyhound rescue
- Homepage: Featured cultural content about techno
- Technopedia: Educational techno content

Analyze each video and return matches in JSON format."""
)

CURATOR_PROMPT = PromptTemplate(
    """Analyze these videos from the {channel} channel and match them to relevant techno.dog pages:

{videos}

Return JSON array of matches:
[{"videoIndex": 1, "pageType": "crew|venue|festival|artist|doggies|homepage|technopedia", "entitySlug": "spiral-tribe or null for general pages", "reason": "brief reason", "relevanceScore": 0.0-1.0}]

Focus on:
- Free party/rave footage → crews like spiral-tribe, teknival
- Club footage → venues like tresor, berghain
- Festival footage → festivals
- Galgo/dog content → doggies page
- Cultural/educational → homepage or technopedia
- Live coding/music production → gear or technopedia

Only return high-confidence matches (score > {threshold}). Return empty array if no strong matches."""
)


def video_summary(videos: list[ChannelVideo]) -> str:
    return "\n".join(
        f'{i}. [{v.playlist_title}] "{v.title}" - {v.description[:100]}...'
        for i, v in enumerate(videos, start=1)
    )


def parse_matches(items: Any, videos: list[ChannelVideo]) -> list[VideoMatch]:
    """Map ``videoIndex`` (1-based) answers back onto ``videos``.

    Entries with an out-of-range index or an unknown page type are dropped.
    """
    if not isinstance(items, list):
        return []
    matches: list[VideoMatch] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            index = int(item.get("videoIndex"))
        except (TypeError, ValueError):
            continue
        if not 1 <= index <= len(videos):
            continue
        page_type = str(item.get("pageType") or "").lower()
        if page_type not in PAGE_TYPES:
            continue
        video = videos[index - 1]
        slug = item.get("entitySlug")
        matches.append(
            VideoMatch(
                video_id=video.video_id,
                title=video.title,
                page_type=page_type,
                entity_slug=slug if slug and slug != "null" else None,
                reason=str(item.get("reason") or ""),
                relevance_score=clamp_confidence(item.get("relevanceScore")),
            )
        )
    return matches


def dedupe_videos(videos: list[ChannelVideo]) -> list[ChannelVideo]:
    """Keep the last copy of each video id, in first-seen order."""
    unique: dict[str, ChannelVideo] = {}
    for video in videos:
        unique[video.video_id] = video
    return list(unique.values())


class YouTubeCuratorAgent(BaseAgent):
    name = "youtube-channel-curator"
    default_action = "sync"
    description = "Mirrors a YouTube channel and assigns its videos to site pages"

    def __init__(
        self,
        store: IAgentStore,
        orchestrator: ModelOrchestrator,
        videos: IVideoStore,
        youtube: IVideoProvider,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(store, orchestrator, config)
        self._videos = videos
        self._youtube = youtube
        self._handle: str = self._config.get("channel_handle", "@lapipaislapipa")
        self._channel_name: str = self._config.get("channel_name", "LA PIPA is LA PIPA")
        self._threshold = float(self._config.get("relevance_threshold", 0.6))
        self._batch = int(self._config.get("analyze_batch", 50))
        self._prompt_videos = int(self._config.get("prompt_videos", 30))
        self._providers: list[str] = list(self._config.get("providers") or ["gemini", "openai"])
        self._site_content = {**DEFAULT_SITE_CONTENT, **(self._config.get("site_content") or {})}

    def _require_api(self) -> None:
        if not self._youtube.is_available():
            raise CredentialMissingError("youtube", "youtube_api_key")

    @action("status", tracked=False)
    async def _status(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        self._require_api()
        status = await self._videos.status()
        return {
            "stats": {
                "videosStored": status["videos"],
                "assignmentsCreated": status["assignments"],
                "lastSync": status["last_sync"],
            }
        }

    @action("sync")
    async def _sync(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        self._require_api()
        self._logger.info("channel_sync_started", handle=self._handle)
        channel_id = await self._youtube.resolve_channel_id(self._handle)
        if not channel_id:
            raise RecordNotFoundError(f"Could not resolve channel ID for {self._handle}")

        playlists = await self._youtube.list_playlists(channel_id)
        collected: list[ChannelVideo] = []
        for playlist in playlists:
            collected.extend(await self._youtube.list_playlist_videos(playlist["id"], playlist["title"]))
            await ctx.heartbeat()

        unique = dedupe_videos(collected)
        stored = await self._videos.upsert_videos(unique)
        await self._videos.record_sync(channel_id, self._handle, stored, len(playlists))
        self._logger.info(
            "channel_sync_complete", channel_id=channel_id, playlists=len(playlists), videos=stored
        )
        return ActionResult(
            {"channelId": channel_id, "playlistsFound": len(playlists), "videosStored": stored},
            stats={"playlists": len(playlists), "videos_stored": stored},
        )

    @action("analyze")
    async def _analyze(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        self._require_api()
        pending = await self._videos.list_unanalyzed_videos(limit=self._batch)
        if not pending:
            return ActionResult(
                {"message": "No unanalyzed videos found", "videosAnalyzed": 0},
                stats={"videos_analyzed": 0},
            )

        shown = pending[: self._prompt_videos]
        system_prompt = CURATOR_SYSTEM_PROMPT.render(
            **{key: ", ".join(values[:10]) for key, values in self._site_content.items()}
        )
        prompt = CURATOR_PROMPT.render(
            channel=self._channel_name, videos=video_summary(shown), threshold=self._threshold
        )
        completion = await self.orchestrator.first_success(
            self._providers, system_prompt, prompt, temperature=0.3, max_tokens=4000
        )
        parsed = extract_array(completion.text)
        if not parsed.ok:
            self._logger.warning("curator_reply_unparsed", status=parsed.status.value)

        matches = [m for m in parse_matches(parsed.value, shown) if m.relevance_score >= self._threshold]
        created = await self._videos.apply_matches(matches)
        await self._videos.mark_analyzed([v.video_id for v in shown])
        return ActionResult(
            {
                "videosAnalyzed": len(shown),
                "matchesFound": len(matches),
                "assignmentsCreated": created,
                "parseStatus": parsed.status.value,
            },
            stats={"videos_analyzed": len(shown), "matches": len(matches), "assignments": created},
        )

    @action("get-page-videos", tracked=False)
    async def _get_page_videos(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        page_type = require(payload, "page_type", "pageType")
        entity_slug = param(payload, "entity_slug", "entitySlug")
        rows = await self._videos.list_page_videos(page_type, entity_slug, limit=6)
        return {
            "videos": [
                {
                    "id": row["video_id"],
                    "title": row["title"],
                    "description": row["description"],
                    "thumbnail": row["thumbnail_url"],
                    "playlist": row["playlist_title"],
                    "publishedAt": row["published_at"],
                    "isFeatured": bool(row["is_featured"]),
                    "reason": row["assignment_reason"],
                }
                for row in rows
            ]
        }
