"""
HTTP middleware: security headers and structured access logging.
"""

import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from credstore.core.config import get_settings
from credstore.core.logging import get_logger
from credstore.core.rate_limit import get_client_ip

logger = get_logger("credstore.access")

DOCS_PATHS = ("/api-docs",)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"

        settings = get_settings()
        if settings.csp_enabled:
            # Swagger UI loads JS/CSS from cdn.jsdelivr.net
            if request.url.path in DOCS_PATHS:
                csp_directives = [
                    "default-src 'self'",
                    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
                    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
                    "img-src 'self' data: https://fastapi.tiangolo.com",
                    "frame-ancestors 'none'",
                ]
            else:
                csp_directives = [
                    "default-src 'self'",
                    "script-src 'self'",
                    "img-src 'self' data:",
                    "connect-src 'self'",
                    "frame-ancestors 'none'",
                ]
            response.headers["Content-Security-Policy"] = "; ".join(csp_directives)

        if settings.environment in ("production", "staging"):
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emit one ``http_request`` event per request.

    Binds ``request_id`` (taken from ``X-Request-ID`` or generated) into the
    structlog context so every log line of the request carries it, and echoes
    it back on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "http_request_failed",
                method=request.method,
                path=request.url.path,
                client_ip=get_client_ip(request),
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            client_ip=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        response.headers["X-Request-ID"] = request_id
        return response
