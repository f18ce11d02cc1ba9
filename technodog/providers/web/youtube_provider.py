"""YouTube Data API v3 provider implementing IVideoProvider.

Resolves a channel handle, lists its playlists and pages through every
playlist's items.  The API key travels as the ``key`` query parameter.
"""

from __future__ import annotations

from typing import Any

import httpx

from technodog.config.settings import Settings
from technodog.interfaces.web_provider import IVideoProvider
from technodog.models.content import ChannelVideo
from technodog.providers.web.http import request_json
from technodog.utils.errors import CredentialMissingError
from technodog.utils.logging import get_logger

_PAGE_SIZE = 50


def _thumbnail(snippet: dict[str, Any]) -> str:
    thumbs = snippet.get("thumbnails") or {}
    for size in ("high", "medium", "default"):
        url = (thumbs.get(size) or {}).get("url")
        if url:
            return url
    return ""


class YouTubeProvider(IVideoProvider):
    """Channel and playlist listing over the YouTube Data API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._api_key = settings.youtube_api_key
        self._base_url = settings.youtube_base_url.rstrip("/")
        self._timeout = settings.provider_timeout_seconds
        self._http = http_client
        self._logger = get_logger(__name__)

    async def _get(self, resource: str, **params: Any) -> dict[str, Any]:
        if not self._api_key:
            raise CredentialMissingError("youtube", "youtube_api_key")
        params["key"] = self._api_key
        return await request_json(
            self._http,
            "GET",
            f"{self._base_url}/{resource}",
            provider_name="youtube",
            timeout=self._timeout,
            params=params,
        )

    async def resolve_channel_id(self, handle: str) -> str | None:
        """Handle lookup first, then a channel search as fallback."""
        data = await self._get("channels", part="id", forHandle=handle.lstrip("@"))
        items = data.get("items") or []
        if items:
            return items[0].get("id")

        data = await self._get("search", part="snippet", type="channel", q=handle)
        items = data.get("items") or []
        if items:
            first = items[0]
            return (first.get("id") or {}).get("channelId") or (first.get("snippet") or {}).get("channelId")
        return None

    async def list_playlists(self, channel_id: str) -> list[dict[str, Any]]:
        data = await self._get(
            "playlists", part="snippet,contentDetails", channelId=channel_id, maxResults=_PAGE_SIZE
        )
        return [
            {"id": item["id"], "title": (item.get("snippet") or {}).get("title") or "Unknown"}
            for item in data.get("items") or []
            if item.get("id")
        ]

    async def list_playlist_videos(self, playlist_id: str, playlist_title: str) -> list[ChannelVideo]:
        videos: list[ChannelVideo] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {
                "part": "snippet,contentDetails",
                "playlistId": playlist_id,
                "maxResults": _PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token
            data = await self._get("playlistItems", **params)

            for item in data.get("items") or []:
                video_id = (item.get("contentDetails") or {}).get("videoId")
                if not video_id:
                    continue
                snippet = item.get("snippet") or {}
                videos.append(
                    ChannelVideo(
                        video_id=video_id,
                        title=snippet.get("title") or "",
                        description=snippet.get("description") or "",
                        thumbnail_url=_thumbnail(snippet),
                        playlist_id=playlist_id,
                        playlist_title=playlist_title,
                        published_at=snippet.get("publishedAt") or None,
                    )
                )

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        self._logger.info("youtube_playlist_fetched", playlist=playlist_title, videos=len(videos))
        return videos

    def is_available(self) -> bool:
        return bool(self._api_key)
