"""OpenAI-compatible LLM provider adapters.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Many vendors expose OpenAI-compatible REST APIs; pointing the client at a
different ``base_url`` lets :class:`OpenAICompatibleProvider` talk to any of
them.  :class:`OpenAILLMProvider` is the stock OpenAI configuration and
:class:`~technodog.providers.llm.groq_provider.GroqLLMProvider` reuses the
same adapter against Groq's endpoint.

SDK exceptions are mapped onto the project's error taxonomy:

    APITimeoutError    -> ProviderTimeoutError
    APIConnectionError -> ProviderNetworkError
    APIStatusError     -> ProviderHTTPError(status, body)
    other APIError     -> LLMError
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from technodog.config.settings import Settings
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.consensus import Completion
from technodog.utils.errors import (
    CredentialMissingError,
    LLMError,
    ProviderHTTPError,
    ProviderNetworkError,
    ProviderTimeoutError,
)

logger = structlog.get_logger(logger_name=__name__)


class OpenAICompatibleProvider(ILLMProvider):
    """LLM provider backed by any OpenAI-compatible chat-completions API.

    The client is only constructed when an API key is configured, so an
    unconfigured provider never opens a connection pool.
    """

    def __init__(
        self,
        *,
        provider_name: str,
        api_key: str,
        model: str,
        setting_name: str,
        base_url: str = "",
        default_timeout: float = 25.0,
    ) -> None:
        self._provider_name = provider_name
        self._api_key = api_key
        self._model = model
        self._setting_name = setting_name
        self._client: openai.AsyncOpenAI | None = None
        if api_key:
            client_kwargs: dict[str, Any] = {
                "api_key": api_key,
                "timeout": openai.Timeout(default_timeout, connect=5.0),
                # Retries are the orchestrator's decision, not the SDK's.
                "max_retries": 0,
            }
            if base_url:
                client_kwargs["base_url"] = base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        """Generate a text completion via the chat-completions API."""
        if self._client is None:
            raise CredentialMissingError(self._provider_name, self._setting_name)

        request: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if timeout is not None:
            request["timeout"] = timeout

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(timeout=timeout, provider_name=self._provider_name) from exc
        except openai.APIConnectionError as exc:
            raise ProviderNetworkError(
                message=f"connection failed: {exc}", provider_name=self._provider_name
            ) from exc
        except openai.APIStatusError as exc:
            raise ProviderHTTPError(
                status=exc.status_code, body=exc.response.text, provider_name=self._provider_name
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"API error: {exc}", provider_name=self._provider_name
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(message="empty response", provider_name=self._provider_name)

        tokens = response.usage.total_tokens if response.usage else None
        logger.info(
            "llm_completion",
            provider=self._provider_name,
            model=self._model,
            tokens=tokens,
        )
        return Completion(provider=self._provider_name, model=self._model, text=content, tokens=tokens)

    def get_provider_name(self) -> str:
        return self._provider_name

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)


class OpenAILLMProvider(OpenAICompatibleProvider):
    """The stock OpenAI endpoint (``gpt-4o`` by default)."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(
            provider_name="openai",
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            setting_name="openai_api_key",
            base_url=settings.openai_base_url,
            default_timeout=settings.provider_timeout_seconds,
        )
