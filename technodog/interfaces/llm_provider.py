"""Abstract base class for LLM service providers.

Defines the contract for any chat-completion backend the agents call.
Implementations wrap OpenAI, Anthropic, Gemini or Groq; the adapter
pattern keeps every agent provider-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from technodog.models.consensus import Completion


# Concrete implementations live in technodog/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used by the agents.

    A call is a single fallible operation: no retries, no backoff.  Every
    failure is raised as a :class:`~technodog.utils.errors.TechnoDogError`
    subclass so the orchestrator can classify it.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.
        timeout:
            Seconds before the call is abandoned; ``None`` uses the client
            default.

        Returns
        -------
        Completion
            ``provider``, ``model`` and the first completion's ``text``.

        Raises
        ------
        technodog.utils.errors.CredentialMissingError
            The API key is not configured.  Raised before any network I/O.
        technodog.utils.errors.ProviderHTTPError
            Non-2xx answer; carries ``status`` and ``body``.
        technodog.utils.errors.ProviderNetworkError
            The connection failed.
        technodog.utils.errors.ProviderTimeoutError
            ``timeout`` elapsed.
        technodog.utils.errors.LLMError
            The reply held no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the short provider identifier (e.g. ``"openai"``)."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model the provider is configured to call."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the credential is configured (no network check)."""
