"""
Unit tests for security headers and request logging middleware.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from credstore.core.config import get_settings
from credstore.core.middleware import SecurityHeadersMiddleware


def _dispatch_parts(path: str = "/issue") -> tuple[MagicMock, MagicMock]:
    request = MagicMock()
    request.url.path = path
    response = MagicMock()
    response.headers = {}
    return request, response


@pytest.mark.asyncio
async def test_baseline_security_headers_present() -> None:
    middleware = SecurityHeadersMiddleware(app=MagicMock())
    request, response = _dispatch_parts()

    async def call_next(_request):  # type: ignore[no-untyped-def]
        return response

    result = await middleware.dispatch(request, call_next)
    assert result.headers["X-Content-Type-Options"] == "nosniff"
    assert result.headers["X-Frame-Options"] == "DENY"
    assert result.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


@pytest.mark.asyncio
async def test_csp_is_off_by_default() -> None:
    """Local frontends on other origins must be able to call the API."""
    middleware = SecurityHeadersMiddleware(app=MagicMock())
    request, response = _dispatch_parts()

    async def call_next(_request):  # type: ignore[no-untyped-def]
        return response

    result = await middleware.dispatch(request, call_next)
    assert "Content-Security-Policy" not in result.headers
    assert "Strict-Transport-Security" not in result.headers


@pytest.mark.asyncio
async def test_csp_when_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CSP_ENABLED", "true")
    get_settings.cache_clear()
    middleware = SecurityHeadersMiddleware(app=MagicMock())
    request, response = _dispatch_parts()

    async def call_next(_request):  # type: ignore[no-untyped-def]
        return response

    result = await middleware.dispatch(request, call_next)
    csp = result.headers["Content-Security-Policy"]
    assert "default-src 'self'" in csp
    assert "script-src 'self'" in csp
    assert "frame-ancestors 'none'" in csp


@pytest.mark.asyncio
async def test_docs_page_csp_allows_swagger_cdn(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CSP_ENABLED", "true")
    get_settings.cache_clear()
    middleware = SecurityHeadersMiddleware(app=MagicMock())
    request, response = _dispatch_parts("/api-docs")

    async def call_next(_request):  # type: ignore[no-untyped-def]
        return response

    result = await middleware.dispatch(request, call_next)
    assert "https://cdn.jsdelivr.net" in result.headers["Content-Security-Policy"]


@pytest.mark.asyncio
async def test_hsts_outside_development(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("CORS_ORIGINS", '["https://credentials.example.org"]')
    monkeypatch.setenv("WORKER_ID", "worker-prod")
    get_settings.cache_clear()
    middleware = SecurityHeadersMiddleware(app=MagicMock())
    request, response = _dispatch_parts()

    async def call_next(_request):  # type: ignore[no-untyped-def]
        return response

    result = await middleware.dispatch(request, call_next)
    assert result.headers["Strict-Transport-Security"].startswith("max-age=")


# --------------------------------------------------------------------------
# Request logging
# --------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_request_id_is_echoed(issuance_client: AsyncClient) -> None:
    response = await issuance_client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_request_id_is_generated(issuance_client: AsyncClient) -> None:
    first = await issuance_client.get("/health")
    second = await issuance_client.get("/health")

    assert first.headers["X-Request-ID"]
    assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_cors_allows_local_frontend(issuance_client: AsyncClient) -> None:
    response = await issuance_client.options(
        "/issue",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
