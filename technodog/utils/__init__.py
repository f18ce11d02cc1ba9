"""Utility modules for the techno.dog agents.

- **confidence** -- weighted scoring math and level mapping.
- **errors** -- exception hierarchy rooted at TechnoDogError, each class
  carrying the HTTP status the API layer answers with.
- **concurrency** -- throttled gather, per-call timeouts, settled splits.
- **json_extract** -- tolerant JSON location inside model replies.
- **logging** -- structlog setup with console/JSON dual rendering.
"""

from technodog.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    clamp_confidence,
    confidence_to_level,
)
from technodog.utils.errors import (
    AllProvidersFailedError,
    ConcurrencyConflictError,
    ConfigurationError,
    CredentialMissingError,
    ExtractionError,
    InvalidRequestError,
    LLMError,
    PersistenceError,
    PromptRenderError,
    ProviderError,
    ProviderHTTPError,
    ProviderNetworkError,
    ProviderTimeoutError,
    RecordNotFoundError,
    TechnoDogError,
    UnknownActionError,
)
from technodog.utils.json_extract import (
    JsonKind,
    ParseResult,
    ParseStatus,
    extract_array,
    extract_json,
    extract_object,
)
from technodog.utils.logging import configure_logging, get_logger

__all__ = [
    "AllProvidersFailedError",
    "ConcurrencyConflictError",
    "ConfidenceLevel",
    "ConfigurationError",
    "CredentialMissingError",
    "ExtractionError",
    "InvalidRequestError",
    "JsonKind",
    "LLMError",
    "ParseResult",
    "ParseStatus",
    "PersistenceError",
    "PromptRenderError",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderNetworkError",
    "ProviderTimeoutError",
    "RecordNotFoundError",
    "TechnoDogError",
    "UnknownActionError",
    "calculate_confidence",
    "clamp_confidence",
    "confidence_to_level",
    "configure_logging",
    "extract_array",
    "extract_json",
    "extract_object",
    "get_logger",
]
