"""Concurrency helpers for provider fan-out.

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release so bursts stay under provider rate limits.
2. **with_timeout** -- bound a single awaitable by a caller-supplied
   timeout, converting the elapsed deadline into
   :class:`~technodog.utils.errors.ProviderTimeoutError`.  The awaited task
   is cancelled on timeout, which closes the in-flight HTTP request.
3. **split_settled** -- separate ``gather(return_exceptions=True)`` output
   into successes and ``(label, exception)`` failures.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog

from technodog.utils.errors import ProviderTimeoutError
from technodog.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  ``None`` runs every
        awaitable at once.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        return await asyncio.gather(*coros, return_exceptions=return_exceptions)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return await asyncio.gather(
        *[_wrapped(c) for c in coros], return_exceptions=return_exceptions
    )


async def with_timeout(
    awaitable: Awaitable[_T],
    timeout: float | None,
    provider_name: str | None = None,
) -> _T:
    """Await ``awaitable`` for at most ``timeout`` seconds (``None`` = no limit)."""
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProviderTimeoutError(timeout=timeout, provider_name=provider_name) from exc


def split_settled(
    labels: list[str],
    results: list[_T | BaseException],
) -> tuple[list[tuple[str, _T]], list[tuple[str, BaseException]]]:
    """Partition settled results into ``(label, value)`` and ``(label, error)``."""
    successes: list[tuple[str, _T]] = []
    failures: list[tuple[str, BaseException]] = []
    for label, result in zip(labels, results, strict=True):
        if isinstance(result, BaseException):
            _logger.warning("settled_failure", label=label, error=str(result))
            failures.append((label, result))
        else:
            successes.append((label, result))
    return successes, failures
