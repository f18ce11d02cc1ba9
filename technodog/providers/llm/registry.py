"""Name -> LLM provider lookup, plus role resolution.

Agents never name concrete adapter classes.  They ask the registry for a
provider by name, or for the ordered provider list configured for a role
(``writer``, ``reviewer``, ``scanner``...) under ``llm.roles`` in
``config/config.yaml``.
"""

from __future__ import annotations

import httpx

from technodog.config.settings import Settings
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.providers.llm.anthropic_provider import AnthropicLLMProvider
from technodog.providers.llm.gemini_provider import GeminiLLMProvider
from technodog.providers.llm.groq_provider import GroqLLMProvider
from technodog.providers.llm.openai_provider import OpenAILLMProvider
from technodog.utils.errors import ConfigurationError

# Default preference order for sequential fallback.
DEFAULT_ORDER = ("openai", "anthropic", "gemini", "groq")


class ProviderRegistry:
    """Holds every LLM adapter, keyed by provider name."""

    def __init__(
        self,
        providers: dict[str, ILLMProvider],
        roles: dict[str, list[str]] | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._roles = {k: list(v) for k, v in (roles or {}).items()}

    def get(self, name: str) -> ILLMProvider:
        try:
            return self._providers[name]
        except KeyError as exc:
            raise ConfigurationError(f"Unknown LLM provider: {name}") from exc

    def resolve(self, names: list[str] | tuple[str, ...]) -> list[ILLMProvider]:
        """Return adapters for ``names`` in the given order."""
        return [self.get(n) for n in names]

    def role_names(self, role: str, default: list[str] | tuple[str, ...] = DEFAULT_ORDER) -> list[str]:
        """Return the ordered provider names configured for ``role``."""
        return list(self._roles.get(role) or default)

    def for_role(self, role: str, default: list[str] | tuple[str, ...] = DEFAULT_ORDER) -> list[ILLMProvider]:
        """Return the ordered adapters configured for ``role``."""
        return self.resolve(self.role_names(role, default))

    def names(self) -> list[str]:
        return list(self._providers)

    def available(self) -> list[str]:
        """Names of providers whose credential is configured."""
        return [name for name, p in self._providers.items() if p.is_available()]


def build_provider_registry(
    settings: Settings,
    http_client: httpx.AsyncClient,
    roles: dict[str, list[str]] | None = None,
) -> ProviderRegistry:
    """Construct every adapter from ``settings``.

    Unconfigured adapters are still registered; they raise
    ``CredentialMissingError`` on first use so fan-outs report them as
    individual failures.
    """
    providers: dict[str, ILLMProvider] = {
        "openai": OpenAILLMProvider(settings),
        "anthropic": AnthropicLLMProvider(settings),
        "gemini": GeminiLLMProvider(settings, http_client),
        "groq": GroqLLMProvider(settings),
    }
    return ProviderRegistry(providers, roles=roles)
