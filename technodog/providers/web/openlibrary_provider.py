"""Open Library provider implementing IBookCatalogProvider.

No API key required.  ISBN lookups go through ``/api/books`` with
``jscmd=data``; without an ISBN the first ``/search.json`` hit for
``"<title> <author>"`` is used.
"""

from __future__ import annotations

from typing import Any

import httpx

from technodog.config.settings import Settings
from technodog.interfaces.web_provider import IBookCatalogProvider
from technodog.providers.web.http import request_json
from technodog.utils.logging import get_logger


class OpenLibraryProvider(IBookCatalogProvider):
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._base_url = settings.openlibrary_base_url.rstrip("/")
        self._timeout = settings.provider_timeout_seconds
        self._http = http_client
        self._logger = get_logger(__name__)

    async def lookup(self, isbn: str | None, title: str, author: str) -> dict[str, Any] | None:
        if isbn:
            bibkey = f"ISBN:{isbn}"
            data = await request_json(
                self._http,
                "GET",
                f"{self._base_url}/api/books",
                provider_name="openlibrary",
                timeout=self._timeout,
                params={"bibkeys": bibkey, "format": "json", "jscmd": "data"},
            )
            record = data.get(bibkey) if isinstance(data, dict) else None
        else:
            data = await request_json(
                self._http,
                "GET",
                f"{self._base_url}/search.json",
                provider_name="openlibrary",
                timeout=self._timeout,
                params={"q": f"{title} {author}".strip(), "limit": 1},
            )
            docs = data.get("docs") if isinstance(data, dict) else None
            record = docs[0] if docs else None

        self._logger.info("openlibrary_lookup", title=title, isbn=isbn, found=record is not None)
        return record

    def get_provider_name(self) -> str:
        return "openlibrary.org"
