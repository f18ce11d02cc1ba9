"""Shared JSON-over-httpx call with error classification.

Every web adapter funnels through :func:`request_json` so that timeouts,
connection failures and non-2xx answers surface as the same
``ProviderError`` subclasses the LLM adapters raise.
"""

from __future__ import annotations

from typing import Any

import httpx

from technodog.utils.errors import (
    ProviderHTTPError,
    ProviderNetworkError,
    ProviderTimeoutError,
)
from technodog.utils.logging import get_logger

_logger = get_logger(__name__)


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider_name: str,
    timeout: float | None = None,
    **kwargs: Any,
) -> Any:
    """Send one request and return the decoded JSON body.

    Raises
    ------
    ProviderTimeoutError
        The request did not complete within ``timeout``.
    ProviderNetworkError
        The connection failed, or the body is not JSON.
    ProviderHTTPError
        The service answered with a status of 400 or above.
    """
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise ProviderTimeoutError(timeout=timeout, provider_name=provider_name) from exc
    except httpx.TransportError as exc:
        raise ProviderNetworkError(
            message=f"connection failed: {exc}", provider_name=provider_name
        ) from exc

    if response.status_code >= 400:
        _logger.warning(
            "provider_http_error",
            provider=provider_name,
            status=response.status_code,
            url=str(response.request.url.copy_remove_param("key")),
        )
        raise ProviderHTTPError(
            status=response.status_code, body=response.text, provider_name=provider_name
        )

    try:
        return response.json()
    except ValueError as exc:
        raise ProviderNetworkError(
            message="response body is not JSON", provider_name=provider_name
        ) from exc
