"""API middleware: CORS, request logging and error handling.

Starlette middleware is a stack (last added, first executed).  In
``main.py``::

    app.add_middleware(ErrorHandlingMiddleware)   # innermost
    app.add_middleware(RequestLoggingMiddleware)
    configure_cors(app)                           # outermost

Request flow: Client -> CORS -> RequestLogging -> ErrorHandling -> route.
Error envelopes therefore still carry CORS headers, and the request log
sees the final status code.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from technodog.api.schemas import error_envelope
from technodog.utils.errors import TechnoDogError
from technodog.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add permissive CORS handling; preflight ``OPTIONS`` is answered here.

    Credentials stay disabled so the wildcard origin is sent literally.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn exceptions escaping a route into the JSON error envelope.

    ``TechnoDogError`` subclasses map to their ``status_code``; anything
    else is a 500 whose body names only the exception class.  Tracebacks
    stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except TechnoDogError as exc:
            log = _logger.warning if exc.status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            status_code = exc.status_code
            body = error_envelope(exc)
        except Exception as exc:  # noqa: BLE001
            _logger.exception("unhandled_error", error_type=type(exc).__name__, path=str(request.url.path))
            status_code = 500
            body = error_envelope(exc)

        return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))
