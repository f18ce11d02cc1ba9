"""Unit tests for ModelOrchestrator fan-out, fallback and consensus."""

from __future__ import annotations

import asyncio

import pytest

from technodog.models.consensus import Completion, ProviderOpinion
from technodog.providers.llm.registry import ProviderRegistry
from technodog.services.orchestrator import ModelOrchestrator
from technodog.utils.errors import (
    AllProvidersFailedError,
    CredentialMissingError,
    ExtractionError,
    ProviderHTTPError,
    ConfigurationError,
    ProviderTimeoutError,
)


def _to_opinion(completion: Completion, parsed) -> ProviderOpinion:
    return ProviderOpinion(
        provider=completion.provider,
        recommendation=parsed["recommendation"],
        confidence=parsed["confidence"],
    )


class TestFanOut:
    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self, llm_factory, orchestrator_factory) -> None:
        ok = llm_factory("openai", text="fine")
        bad = llm_factory("gemini", error=ProviderHTTPError(500, "boom", "gemini"))
        orchestrator = orchestrator_factory(ok, bad)

        result = await orchestrator.fan_out(["openai", "gemini"], "sys", "user")

        assert result.succeeded == ["openai"]
        assert result.failed == ["gemini"]
        assert result.by_provider()["openai"].text == "fine"

    @pytest.mark.asyncio
    async def test_passes_timeout_to_provider(self, llm_factory, orchestrator_factory) -> None:
        provider = llm_factory("openai")
        orchestrator = orchestrator_factory(provider)

        await orchestrator.fan_out(["openai"], "sys", "user", temperature=0.5, max_tokens=10)

        provider.complete.assert_awaited_once_with("sys", "user", temperature=0.5, max_tokens=10, timeout=5.0)

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, llm_factory) -> None:
        slow = llm_factory("anthropic")

        async def _hang(*args, **kwargs):
            await asyncio.sleep(10)

        slow.complete.side_effect = _hang
        fast = llm_factory("openai", text="quick")
        orchestrator = ModelOrchestrator(
            ProviderRegistry({"anthropic": slow, "openai": fast}), timeout=0.05
        )

        result = await orchestrator.fan_out(["anthropic", "openai"], "sys", "user")

        assert result.succeeded == ["openai"]
        assert isinstance(result.failures[0][1], ProviderTimeoutError)

    @pytest.mark.asyncio
    async def test_raise_if_empty(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(
            llm_factory("openai", error=CredentialMissingError("openai", "openai_api_key"))
        )
        result = await orchestrator.fan_out(["openai"], "sys", "user")
        with pytest.raises(AllProvidersFailedError):
            result.raise_if_empty()

    @pytest.mark.asyncio
    async def test_unregistered_provider_is_a_failure(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(llm_factory("openai", text="fine"))

        result = await orchestrator.fan_out(["openai", "groq"], "sys", "user")

        assert result.succeeded == ["openai"]
        assert result.failed == ["groq"]
        assert isinstance(result.failures[0][1], ConfigurationError)


class TestFirstSuccess:
    @pytest.mark.asyncio
    async def test_falls_back_in_order(self, llm_factory, orchestrator_factory) -> None:
        first = llm_factory("groq", error=ProviderHTTPError(503, "", "groq"))
        second = llm_factory("gemini", text="from gemini")
        third = llm_factory("openai", text="from openai")
        orchestrator = orchestrator_factory(first, second, third)

        completion = await orchestrator.first_success(["groq", "gemini", "openai"], "sys", "user")

        assert completion.provider == "gemini"
        third.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_failed_lists_every_error(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(
            llm_factory("openai", error=ProviderHTTPError(401, "bad key", "openai")),
            llm_factory("anthropic", error=CredentialMissingError("anthropic")),
        )
        with pytest.raises(AllProvidersFailedError) as excinfo:
            await orchestrator.first_success(["openai", "anthropic"], "sys", "user")
        assert [name for name, _ in excinfo.value.failures] == ["openai", "anthropic"]

    @pytest.mark.asyncio
    async def test_role_resolution(self, llm_factory, orchestrator_factory) -> None:
        writer = llm_factory("anthropic", text="draft")
        orchestrator = orchestrator_factory(
            writer, llm_factory("openai"), roles={"writer": ["anthropic", "openai"]}
        )
        completion = await orchestrator.first_success(orchestrator.role("writer"), "sys", "user")
        assert completion.text == "draft"

    @pytest.mark.asyncio
    async def test_unregistered_provider_does_not_block_chain(self, llm_factory, orchestrator_factory) -> None:
        gemini = llm_factory("gemini", text="from gemini")
        orchestrator = orchestrator_factory(gemini)

        completion = await orchestrator.first_success(["gemini", "openai"], "sys", "user")
        assert completion.provider == "gemini"

        fallback = await orchestrator.first_success(["openai", "gemini"], "sys", "user")
        assert fallback.provider == "gemini"

    @pytest.mark.asyncio
    async def test_unregistered_role_entry_is_skipped(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(
            llm_factory("openai", text="from openai"), roles={"writer": ["mistral", "openai"]}
        )

        assert orchestrator.role("writer")[0] == "mistral"
        completion = await orchestrator.first_success(orchestrator.role("writer"), "sys", "user")
        assert completion.provider == "openai"

    @pytest.mark.asyncio
    async def test_only_unregistered_providers_fail_together(self, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory()
        with pytest.raises(AllProvidersFailedError) as excinfo:
            await orchestrator.first_success(["openai", "anthropic"], "sys", "user")
        assert all(isinstance(exc, ConfigurationError) for _, exc in excinfo.value.failures)


class TestConsensus:
    @pytest.mark.asyncio
    async def test_merges_parsed_replies(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(
            llm_factory("openai", text='Sure: {"recommendation": "hybrid", "confidence": 0.7}'),
            llm_factory("anthropic", text='{"recommendation": "hybrid", "confidence": 0.9}'),
        )
        result, fan = await orchestrator.consensus(["openai", "anthropic"], "sys", "user", _to_opinion)

        assert result.recommendation == "hybrid"
        assert result.confidence == pytest.approx(0.8)
        assert fan.succeeded == ["openai", "anthropic"]

    @pytest.mark.asyncio
    async def test_unparseable_reply_becomes_failure(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(
            llm_factory("openai", text='{"recommendation": "hybrid", "confidence": 0.7}'),
            llm_factory("gemini", text="I cannot answer that"),
            llm_factory("groq", text='{"confidence": 0.4}'),
        )
        result, _ = await orchestrator.consensus(["openai", "gemini", "groq"], "sys", "user", _to_opinion)

        assert result.providers == ["openai"]
        failed = {f.provider: f.error_type for f in result.failures}
        assert failed == {"gemini": ExtractionError.__name__, "groq": ExtractionError.__name__}

    @pytest.mark.asyncio
    async def test_total_failure_raises(self, llm_factory, orchestrator_factory) -> None:
        orchestrator = orchestrator_factory(
            llm_factory("openai", error=ProviderHTTPError(500, "", "openai")),
            llm_factory("anthropic", text="no json"),
        )
        with pytest.raises(AllProvidersFailedError) as excinfo:
            await orchestrator.consensus(["openai", "anthropic"], "sys", "user", _to_opinion)
        assert len(excinfo.value.details()) == 2
