"""Custom exception hierarchy for the techno.dog agents.

All application exceptions inherit from :class:`TechnoDogError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "gemini", "firecrawl") caused the failure,
and a class-level ``status_code`` that the API layer uses for the response.

The hierarchy is organized by where the failure happens:

    TechnoDogError  (base -- catch-all, 500)
    +-- ConfigurationError        (startup / missing config, 503)
    |   +-- CredentialMissingError  (provider key absent, raised before I/O)
    +-- ProviderError             (any upstream failure, 502)
    |   +-- ProviderHTTPError       (non-2xx answer, keeps status + body)
    |   +-- ProviderNetworkError    (connection could not be made)
    |   +-- ProviderTimeoutError    (caller-supplied timeout elapsed, 504)
    |   +-- LLMError                (answered but no usable text)
    |   +-- ExtractionError         (no JSON / malformed JSON in a reply)
    +-- AllProvidersFailedError   (every provider in a fan-out failed, 502)
    +-- InvalidRequestError       (bad request body, 400)
    |   +-- UnknownActionError      (action not registered on an agent)
    +-- RecordNotFoundError       (referenced row absent, 404)
    +-- ConcurrencyConflictError  (optimistic version check failed, 409)
    +-- PersistenceError          (database write failed, 500)
    +-- PromptRenderError         (strict render left placeholders, 500)
"""

from __future__ import annotations

from typing import Any


class TechnoDogError(Exception):
    """Base exception for all techno.dog errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] HTTP 429``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def details(self) -> list[Any] | None:
        """Extra diagnostic entries for the error envelope, if any."""
        return None

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(TechnoDogError):
    """Raised when required configuration is missing or invalid."""

    status_code = 503

    def __init__(
        self,
        message: str = "Configuration error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CredentialMissingError(ConfigurationError):
    """Raised when a provider is called without its API key configured."""

    def __init__(self, provider_name: str, setting_name: str | None = None) -> None:
        hint = f" (set {setting_name.upper()})" if setting_name else ""
        super().__init__(
            message=f"{provider_name} credential not configured{hint}",
            provider_name=provider_name,
        )


# ---------------------------------------------------------------------------
# Upstream provider failures
# ---------------------------------------------------------------------------

class ProviderError(TechnoDogError):
    """Base class for failures talking to an external AI or scraping service."""

    status_code = 502

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-2xx status.

    The upstream ``status`` and response ``body`` are kept for diagnostics.
    """

    def __init__(self, status: int, body: str = "", provider_name: str | None = None) -> None:
        self._status = status
        self._body = body
        message = f"HTTP {status}: {body[:200]}" if body else f"HTTP {status}"
        super().__init__(message=message, provider_name=provider_name)

    @property
    def status(self) -> int:
        return self._status

    @property
    def body(self) -> str:
        return self._body


class ProviderNetworkError(ProviderError):
    """The connection to the provider could not be established or was dropped."""

    def __init__(
        self,
        message: str = "Network error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(ProviderError):
    """The call did not finish within the caller-supplied timeout."""

    status_code = 504

    def __init__(self, timeout: float | None = None, provider_name: str | None = None) -> None:
        self._timeout = timeout
        message = f"timed out after {timeout:g}s" if timeout is not None else "timed out"
        super().__init__(message=message, provider_name=provider_name)

    @property
    def timeout(self) -> float | None:
        return self._timeout


class LLMError(ProviderError):
    """The model answered but produced no usable text."""

    def __init__(
        self,
        message: str = "LLM call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(ProviderError):
    """A model reply held no JSON, or only malformed JSON."""

    def __init__(
        self,
        status: str,
        raw: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._status = status
        self._raw = raw
        super().__init__(
            message=f"JSON extraction failed: {status}",
            provider_name=provider_name,
        )

    @property
    def status(self) -> str:
        return self._status

    @property
    def raw(self) -> str | None:
        return self._raw


class AllProvidersFailedError(TechnoDogError):
    """Every provider asked for an answer failed.

    ``failures`` holds ``(provider_name, exception)`` pairs in call order so
    the envelope can enumerate each error.
    """

    status_code = 502

    def __init__(self, failures: list[tuple[str, BaseException]], message: str = "All models failed") -> None:
        self._failures = list(failures)
        super().__init__(message=message)

    @property
    def failures(self) -> list[tuple[str, BaseException]]:
        return list(self._failures)

    def details(self) -> list[Any] | None:
        return [
            {"provider": name, "error_type": type(exc).__name__, "error": str(exc)}
            for name, exc in self._failures
        ]


# ---------------------------------------------------------------------------
# Request / persistence errors
# ---------------------------------------------------------------------------

class InvalidRequestError(TechnoDogError):
    """The request body is malformed or lacks a required field."""

    status_code = 400

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(message=message)


class UnknownActionError(InvalidRequestError):
    """The requested action is not registered on the agent."""

    def __init__(self, action: str, valid_actions: list[str]) -> None:
        self._action = action
        self._valid_actions = list(valid_actions)
        super().__init__(message=f"Unknown action: {action}")

    @property
    def action(self) -> str:
        return self._action

    @property
    def valid_actions(self) -> list[str]:
        return list(self._valid_actions)


class RecordNotFoundError(TechnoDogError):
    """A referenced database row (run, issue, book...) does not exist."""

    status_code = 404

    def __init__(self, message: str = "Record not found") -> None:
        super().__init__(message=message)


class ConcurrencyConflictError(TechnoDogError):
    """A version-checked update found the row changed underneath it."""

    status_code = 409

    def __init__(self, message: str = "Record was modified concurrently") -> None:
        super().__init__(message=message)


class PersistenceError(TechnoDogError):
    """A database write failed."""

    def __init__(self, message: str = "Persistence failed") -> None:
        super().__init__(message=message)


class PromptRenderError(TechnoDogError):
    """A strict prompt render left placeholders unreplaced."""

    def __init__(self, missing: list[str]) -> None:
        self._missing = list(missing)
        super().__init__(message=f"Unreplaced placeholders: {', '.join(missing)}")

    @property
    def missing(self) -> list[str]:
        return list(self._missing)
