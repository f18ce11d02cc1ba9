"""Groq LLM provider adapter.

Groq serves open-weight models (Llama) behind an OpenAI-compatible REST
API, so this adapter is the OpenAI adapter pointed at ``groq_base_url``.
"""

from __future__ import annotations

from technodog.config.settings import Settings
from technodog.providers.llm.openai_provider import OpenAICompatibleProvider


class GroqLLMProvider(OpenAICompatibleProvider):
    """LLM provider backed by Groq (``llama-3.1-70b-versatile`` by default)."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(
            provider_name="groq",
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            setting_name="groq_api_key",
            base_url=settings.groq_base_url,
            default_timeout=settings.provider_timeout_seconds,
        )
