"""Firecrawl search and scrape provider implementing IScrapeProvider.

Uses the v1 REST API with bearer authentication.  The
``httpx.AsyncClient`` is injected for testability.
"""

from __future__ import annotations

from typing import Any

import httpx

from technodog.config.settings import Settings
from technodog.interfaces.web_provider import IScrapeProvider
from technodog.providers.web.http import request_json
from technodog.utils.errors import CredentialMissingError
from technodog.utils.logging import get_logger

_SCRAPE_WAIT_MS = 3000


class FirecrawlProvider(IScrapeProvider):
    """Web search and main-content scraping via Firecrawl."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._api_key = settings.firecrawl_api_key
        self._base_url = settings.firecrawl_base_url.rstrip("/")
        self._timeout = settings.provider_timeout_seconds
        self._http = http_client
        self._logger = get_logger(__name__)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise CredentialMissingError("firecrawl", "firecrawl_api_key")
        return {"Authorization": f"Bearer {self._api_key}"}

    async def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        payload = await request_json(
            self._http,
            "POST",
            f"{self._base_url}/search",
            provider_name="firecrawl",
            timeout=self._timeout,
            headers=self._headers(),
            json={"query": query, "limit": limit},
        )
        results = [r for r in (payload.get("data") or []) if isinstance(r, dict) and r.get("url")]
        self._logger.info("firecrawl_search_complete", query=query, results=len(results))
        return results

    async def scrape(self, url: str) -> str | None:
        payload = await request_json(
            self._http,
            "POST",
            f"{self._base_url}/scrape",
            provider_name="firecrawl",
            timeout=self._timeout,
            headers=self._headers(),
            json={
                "url": url,
                "formats": ["markdown"],
                "onlyMainContent": True,
                "waitFor": _SCRAPE_WAIT_MS,
            },
        )
        markdown = (payload.get("data") or {}).get("markdown") or payload.get("markdown")
        self._logger.info("firecrawl_scrape_complete", url=url, chars=len(markdown or ""))
        return markdown or None

    def is_available(self) -> bool:
        return bool(self._api_key)
