"""Response envelope and system-endpoint schemas.

Every agent response shares one envelope:

* success: ``{"success": true, ...payload}``
* failure: ``{"success": false, "error": str, "error_type": str,
  "details"?: [...], "valid_actions"?: [...]}``

The payload keys of a successful call are agent-specific, so the success
envelope is built as a plain dict by :func:`success_envelope`; the error
side and the system endpoints have fixed shapes and are Pydantic models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from technodog.utils.errors import TechnoDogError, UnknownActionError


class ErrorResponse(BaseModel):
    """Standard error response body."""

    success: bool = False
    error: str
    error_type: str
    details: list[Any] | None = None
    valid_actions: list[str] | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, bool]
    database_path: str


class AgentInfo(BaseModel):
    name: str
    description: str = ""
    default_action: str | None = None
    actions: list[str] = Field(default_factory=list)


class AgentsResponse(BaseModel):
    """Registered agents and their actions."""

    agents: list[AgentInfo]


class RunResponse(BaseModel):
    """One run record with its derived status."""

    success: bool = True
    run: dict[str, Any]


def success_envelope(payload: dict[str, Any]) -> dict[str, Any]:
    """Wrap a handler payload; the envelope owns the ``success`` key."""
    return {"success": True, **{k: v for k, v in payload.items() if k != "success"}}


def error_envelope(exc: BaseException) -> ErrorResponse:
    """Build the failure envelope for ``exc``.

    Application errors keep their message; anything else is reported by
    class name only so internals stay in the server log.
    """
    if isinstance(exc, TechnoDogError):
        return ErrorResponse(
            error=str(exc),
            error_type=type(exc).__name__,
            details=exc.details(),
            valid_actions=exc.valid_actions if isinstance(exc, UnknownActionError) else None,
        )
    return ErrorResponse(error="Internal server error", error_type=type(exc).__name__)
