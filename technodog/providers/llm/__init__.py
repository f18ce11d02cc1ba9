"""LLM provider adapters: OpenAI, Anthropic, Gemini and Groq."""

from technodog.providers.llm.anthropic_provider import AnthropicLLMProvider
from technodog.providers.llm.gemini_provider import GeminiLLMProvider
from technodog.providers.llm.groq_provider import GroqLLMProvider
from technodog.providers.llm.openai_provider import OpenAICompatibleProvider, OpenAILLMProvider
from technodog.providers.llm.registry import ProviderRegistry, build_provider_registry

__all__ = [
    "AnthropicLLMProvider",
    "GeminiLLMProvider",
    "GroqLLMProvider",
    "OpenAICompatibleProvider",
    "OpenAILLMProvider",
    "ProviderRegistry",
    "build_provider_registry",
]
