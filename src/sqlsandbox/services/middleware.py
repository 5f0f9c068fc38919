"""
HTTP middleware: CORS, per-client rate limiting, request logging.

Middleware ordering (outermost first):
1. CORS -- handles OPTIONS preflight before anything else
2. Request logging -- binds request_id, logs method/path/status/duration
3. Rate limiting -- applied per route by the slowapi decorator
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from sqlsandbox.core.config import SandboxConfig
from sqlsandbox.core.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


def client_key_func(trust_forwarded_for: bool) -> Callable[[Request], str]:
    """Build the function identifying a caller for rate limiting."""

    def _get_client_ip(request: Request) -> str:
        if trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return get_remote_address(request)

    return _get_client_ip


def create_limiter(config: SandboxConfig) -> Limiter:
    """
    Create the rate limiter for one application instance.

    The limiter owns the per-client counters; nothing else shares them.
    """
    return Limiter(
        key_func=client_key_func(config.security.trust_forwarded_for),
        enabled=config.security.rate_limit_enabled,
    )


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        {"error": "Rate limit exceeded. Please slow down your requests."},
        status_code=429,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request once it has been handled."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_context(request_id=request_id)
        start = time.perf_counter()

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                client=request.client.host if request.client else None,
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


def install_middleware(app: FastAPI, config: SandboxConfig, limiter: Limiter) -> None:
    """
    Install middleware and the rate-limit handler on the app.

    Middleware is added in reverse order (last added = outermost = runs first).
    """
    app.add_middleware(RequestLoggingMiddleware)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
