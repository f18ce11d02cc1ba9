"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Key differences from the OpenAI adapter:
    - Uses Anthropic's Messages API (not chat.completions)
    - System prompt is a separate parameter, not a message in the list
    - Response content is a list of blocks, so text blocks are joined
"""

from __future__ import annotations

from typing import Any

import anthropic
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


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._model = settings.anthropic_model
        self._client: anthropic.AsyncAnthropic | None = None
        if self._api_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key,
                timeout=settings.provider_timeout_seconds,
                max_retries=0,
            )

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
        """Generate a text completion via the Anthropic Messages API."""
        if self._client is None:
            raise CredentialMissingError("anthropic", "anthropic_api_key")

        request: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": temperature,
        }
        if timeout is not None:
            request["timeout"] = timeout

        try:
            response = await self._client.messages.create(**request)
        except anthropic.APITimeoutError as exc:
            raise ProviderTimeoutError(timeout=timeout, provider_name="anthropic") from exc
        except anthropic.APIConnectionError as exc:
            raise ProviderNetworkError(
                message=f"connection failed: {exc}", provider_name="anthropic"
            ) from exc
        except anthropic.APIStatusError as exc:
            raise ProviderHTTPError(
                status=exc.status_code, body=exc.response.text, provider_name="anthropic"
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(message=f"API error: {exc}", provider_name="anthropic") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise LLMError(message="empty response", provider_name="anthropic")

        tokens = None
        if response.usage:
            tokens = response.usage.input_tokens + response.usage.output_tokens
        logger.info("llm_completion", provider="anthropic", model=self._model, tokens=tokens)
        return Completion(provider="anthropic", model=self._model, text=text, tokens=tokens)

    def get_provider_name(self) -> str:
        return "anthropic"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return bool(self._api_key)
