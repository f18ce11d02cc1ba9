"""Web service adapters: Firecrawl, YouTube Data API and Open Library."""

from technodog.providers.web.firecrawl_provider import FirecrawlProvider
from technodog.providers.web.openlibrary_provider import OpenLibraryProvider
from technodog.providers.web.youtube_provider import YouTubeProvider

__all__ = ["FirecrawlProvider", "OpenLibraryProvider", "YouTubeProvider"]
