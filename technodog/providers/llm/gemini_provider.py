"""Google Gemini LLM provider adapter.

Talks to the ``generateContent`` REST endpoint directly with an injected
``httpx.AsyncClient``; no Google SDK is required.  The system and user
prompts are sent as one text part, and the reply text is read from
``candidates[0].content.parts[*].text``.
"""

from __future__ import annotations

from typing import Any

import httpx
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


def _reply_text(payload: dict[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiLLMProvider(ILLMProvider):
    """LLM provider backed by Gemini (``gemini-1.5-flash`` by default).

    The ``httpx.AsyncClient`` is injected for testability and connection
    pooling.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._api_key = settings.gemini_api_key
        self._model = settings.gemini_model
        self._base_url = settings.gemini_base_url.rstrip("/")
        self._default_timeout = settings.provider_timeout_seconds
        self._http = http_client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        """Generate a text completion via ``models/{model}:generateContent``."""
        if not self._api_key:
            raise CredentialMissingError("gemini", "gemini_api_key")

        url = f"{self._base_url}/models/{self._model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
            },
        }
        try:
            response = await self._http.post(
                url,
                params={"key": self._api_key},
                json=body,
                timeout=timeout if timeout is not None else self._default_timeout,
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(timeout=timeout, provider_name="gemini") from exc
        except httpx.TransportError as exc:
            raise ProviderNetworkError(
                message=f"connection failed: {exc}", provider_name="gemini"
            ) from exc

        if response.status_code >= 400:
            raise ProviderHTTPError(
                status=response.status_code, body=response.text, provider_name="gemini"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise LLMError(message="non-JSON response body", provider_name="gemini") from exc

        text = _reply_text(payload)
        if not text:
            raise LLMError(message="empty response", provider_name="gemini")

        tokens = (payload.get("usageMetadata") or {}).get("totalTokenCount")
        logger.info("llm_completion", provider="gemini", model=self._model, tokens=tokens)
        return Completion(provider="gemini", model=self._model, text=text, tokens=tokens)

    def get_provider_name(self) -> str:
        return "gemini"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return bool(self._api_key)
