"""Unit tests for the fan-out concurrency helpers."""

from __future__ import annotations

import asyncio

import pytest

from technodog.utils.concurrency import split_settled, throttled_gather, with_timeout
from technodog.utils.errors import ProviderTimeoutError


async def _value(v: int, delay: float = 0.0) -> int:
    await asyncio.sleep(delay)
    return v


async def _boom() -> int:
    raise RuntimeError("boom")


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_preserves_order(self) -> None:
        results = await throttled_gather([_value(1, 0.02), _value(2), _value(3, 0.01)])
        assert results == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_exceptions_returned(self) -> None:
        results = await throttled_gather([_value(1), _boom()])
        assert results[0] == 1
        assert isinstance(results[1], RuntimeError)

    @pytest.mark.asyncio
    async def test_semaphore_caps_concurrency(self) -> None:
        active = 0
        peak = 0

        async def _tracked() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await throttled_gather([_tracked() for _ in range(5)], semaphore=asyncio.Semaphore(2))
        assert peak == 2


class TestWithTimeout:
    @pytest.mark.asyncio
    async def test_no_limit(self) -> None:
        assert await with_timeout(_value(7), None) == 7

    @pytest.mark.asyncio
    async def test_elapsed_deadline_raises(self) -> None:
        with pytest.raises(ProviderTimeoutError) as exc_info:
            await with_timeout(_value(1, delay=1.0), 0.01, provider_name="groq")
        assert exc_info.value.provider_name == "groq"
        assert exc_info.value.timeout == 0.01


class TestSplitSettled:
    def test_partitions_by_label(self) -> None:
        err = ValueError("bad")
        ok, failed = split_settled(["openai", "gemini", "groq"], [1, err, 3])
        assert ok == [("openai", 1), ("groq", 3)]
        assert failed == [("gemini", err)]

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError):
            split_settled(["openai"], [1, 2])
