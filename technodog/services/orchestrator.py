"""Multi-model call orchestration.

Three ways to ask the configured LLM providers a question:

* :meth:`ModelOrchestrator.fan_out` -- every provider concurrently; each
  call is bounded by the orchestrator's timeout and a failing provider only
  removes its own answer.
* :meth:`ModelOrchestrator.first_success` -- providers one after another
  until one answers (the fallback chain used for single-voice actions).
* :meth:`ModelOrchestrator.consensus` -- fan out, extract a JSON object
  from each reply, convert it to a
  :class:`~technodog.models.consensus.ProviderOpinion` and merge the
  opinions with :func:`~technodog.services.consensus.merge_opinions`.

Timeouts are enforced twice: the adapter passes the value to its SDK or
HTTP client, and :func:`~technodog.utils.concurrency.with_timeout` cancels
the awaiting task if the client does not give up on its own.  Cancelling
the task closes the underlying HTTP request.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

import structlog

from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.consensus import Completion, ConsensusResult, ProviderOpinion
from technodog.providers.llm.registry import ProviderRegistry
from technodog.services.consensus import merge_opinions
from technodog.utils.concurrency import split_settled, throttled_gather, with_timeout
from technodog.utils.errors import AllProvidersFailedError, ExtractionError
from technodog.utils.json_extract import JsonKind, extract_json
from technodog.utils.logging import get_logger

ProviderRef = str | ILLMProvider
OpinionFactory = Callable[[Completion, Any], ProviderOpinion]


@dataclass
class FanOutResult:
    """Settled outcome of a concurrent fan-out."""

    completions: list[Completion] = field(default_factory=list)
    failures: list[tuple[str, BaseException]] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [c.provider for c in self.completions]

    @property
    def failed(self) -> list[str]:
        return [name for name, _ in self.failures]

    def by_provider(self) -> dict[str, Completion]:
        return {c.provider: c for c in self.completions}

    def raise_if_empty(self) -> None:
        if not self.completions:
            raise AllProvidersFailedError(self.failures)


class ModelOrchestrator:
    """Runs prompts against one or many providers from a registry.

    Args:
        registry: Provider lookup used to resolve names and roles.
        timeout: Per-call limit in seconds; ``None`` disables the
            orchestrator-level bound.
        max_concurrency: Optional cap on simultaneous calls in a fan-out.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        timeout: float | None = 25.0,
        max_concurrency: int | None = None,
    ) -> None:
        self._registry = registry
        self._timeout = timeout
        self._max_concurrency = max_concurrency
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def role(self, role: str) -> list[ProviderRef]:
        """Ordered providers configured for ``role``.

        Names with no registered adapter are kept as plain strings; calling
        them records a ConfigurationError for that provider only.
        """
        registered = set(self._registry.names())
        return [
            self._registry.get(name) if name in registered else name
            for name in self._registry.role_names(role)
        ]

    @staticmethod
    def _name(provider: ProviderRef) -> str:
        return provider if isinstance(provider, str) else provider.get_provider_name()

    async def _call(
        self,
        provider: ProviderRef,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        if isinstance(provider, str):
            provider = self._registry.get(provider)
        name = provider.get_provider_name()
        return await with_timeout(
            provider.complete(
                system_prompt,
                user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self._timeout,
            ),
            self._timeout,
            provider_name=name,
        )

    async def fan_out(
        self,
        providers: Sequence[ProviderRef],
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> FanOutResult:
        """Send the same prompt to every provider concurrently.

        Never raises for provider failures; inspect ``failures`` (or call
        :meth:`FanOutResult.raise_if_empty`).
        """
        names = [self._name(p) for p in providers]
        semaphore = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None

        results = await throttled_gather(
            [self._call(p, system_prompt, user_prompt, temperature, max_tokens) for p in providers],
            semaphore=semaphore,
        )
        successes, failures = split_settled(names, results)
        outcome = FanOutResult(completions=[c for _, c in successes], failures=failures)
        self._logger.info(
            "fan_out_complete",
            providers=names,
            succeeded=outcome.succeeded,
            failed=outcome.failed,
        )
        return outcome

    async def first_success(
        self,
        providers: Sequence[ProviderRef],
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> Completion:
        """Try providers in order and return the first completion.

        Raises:
            AllProvidersFailedError: Every provider failed; each error is
                listed in ``failures``.
        """
        failures: list[tuple[str, BaseException]] = []
        for provider in providers:
            name = self._name(provider)
            try:
                completion = await self._call(
                    provider, system_prompt, user_prompt, temperature, max_tokens
                )
            except Exception as exc:  # noqa: BLE001
                self._logger.warning("provider_fallback", provider=name, error=str(exc))
                failures.append((name, exc))
                continue
            if failures:
                self._logger.info(
                    "provider_fallback_succeeded",
                    provider=name,
                    skipped=[n for n, _ in failures],
                )
            return completion
        raise AllProvidersFailedError(failures)

    async def consensus(
        self,
        providers: Sequence[ProviderRef],
        system_prompt: str,
        user_prompt: str,
        to_opinion: OpinionFactory,
        list_fields: Iterable[str] | None = None,
        kind: JsonKind = JsonKind.OBJECT,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> tuple[ConsensusResult, FanOutResult]:
        """Fan out, parse each reply and merge the resulting opinions.

        ``to_opinion(completion, parsed_json)`` converts one parsed reply.
        Replies with no parseable JSON, or that ``to_opinion`` rejects,
        are recorded as :class:`~technodog.utils.errors.ExtractionError`
        failures rather than votes.

        Returns:
            The merged decision and the raw fan-out (for persisting each
            provider's own reply).

        Raises:
            AllProvidersFailedError: No provider produced a usable opinion.
        """
        fan = await self.fan_out(
            providers, system_prompt, user_prompt, temperature=temperature, max_tokens=max_tokens
        )
        opinions: list[ProviderOpinion] = []
        failures = list(fan.failures)

        for completion in fan.completions:
            parsed = extract_json(completion.text, kind)
            if not parsed.ok:
                failures.append(
                    (
                        completion.provider,
                        ExtractionError(parsed.status.value, parsed.raw, completion.provider),
                    )
                )
                continue
            try:
                opinions.append(to_opinion(completion, parsed.value))
            except (KeyError, TypeError, ValueError) as exc:
                self._logger.warning(
                    "opinion_rejected", provider=completion.provider, error=str(exc)
                )
                failures.append(
                    (completion.provider, ExtractionError("invalid", parsed.raw, completion.provider))
                )

        return merge_opinions(opinions, failures, list_fields), fan
