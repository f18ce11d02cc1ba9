"""techno.dog API layer: routes, envelope schemas and middleware."""

from technodog.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from technodog.api.routes import router
from technodog.api.schemas import (
    AgentsResponse,
    ErrorResponse,
    HealthResponse,
    RunResponse,
    error_envelope,
    success_envelope,
)

__all__ = [
    "AgentsResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "RequestLoggingMiddleware",
    "RunResponse",
    "configure_cors",
    "error_envelope",
    "router",
    "success_envelope",
]
