"""Abstract base classes for the non-LLM web services the agents call.

- :class:`IScrapeProvider` -- web search and page scraping (Firecrawl).
- :class:`IVideoProvider` -- channel, playlist and video listing (YouTube).
- :class:`IBookCatalogProvider` -- bibliographic lookups (Open Library).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from technodog.models.content import ChannelVideo


class IScrapeProvider(ABC):
    @abstractmethod
    async def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """Search the web; each result has at least ``url``."""

    @abstractmethod
    async def scrape(self, url: str) -> str | None:
        """Return the page's main content as markdown, or ``None`` if empty."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the credential is configured."""


class IVideoProvider(ABC):
    @abstractmethod
    async def resolve_channel_id(self, handle: str) -> str | None:
        """Resolve an ``@handle`` to a channel id, or ``None`` if unknown."""

    @abstractmethod
    async def list_playlists(self, channel_id: str) -> list[dict[str, Any]]:
        """Return the channel's playlists as ``{id, title}`` dicts."""

    @abstractmethod
    async def list_playlist_videos(self, playlist_id: str, playlist_title: str) -> list[ChannelVideo]:
        """Return every video in a playlist, following pagination."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the API key is configured."""


class IBookCatalogProvider(ABC):
    @abstractmethod
    async def lookup(self, isbn: str | None, title: str, author: str) -> dict[str, Any] | None:
        """Return the catalog record for a book, or ``None`` if not found."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the source label recorded in research results."""
