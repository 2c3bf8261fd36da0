"""
FastAPI application entry point.
Builds the issuance or verification service: middleware, routers and lifespan.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from credstore.core.config import ServiceRole, get_settings, resolve_worker_id
from credstore.core.logging import configure_logging, get_logger
from credstore.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from credstore.core.rate_limit import RateLimitMiddleware, close_redis, get_redis
from credstore.db.session import Storage, WorkerId
from credstore.db.storage import CredentialStorage, StorageError
from credstore.modules.diagnostics.router import echo_router
from credstore.modules.diagnostics.router import router as diagnostics_router
from credstore.modules.issuance.router import router as issuance_router
from credstore.modules.verification.router import router as verification_router

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)

SERVICE_TITLES = {
    ServiceRole.ISSUANCE: "Issuance Service",
    ServiceRole.VERIFICATION: "Verification Service",
}

# Path each role rate-limits
CORE_PATHS = {
    ServiceRole.ISSUANCE: "/issue",
    ServiceRole.VERIFICATION: "/verify",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the credential store before the first request is accepted and
    closes it on shutdown. A store that cannot be opened aborts startup.
    """
    settings = get_settings()
    logger.info(
        "starting_service",
        role=app.state.role.value,
        worker=app.state.worker_id,
        environment=settings.environment,
        version=settings.version,
    )

    async with CredentialStorage.from_settings(settings) as storage:
        app.state.storage = storage
        try:
            yield
        finally:
            app.state.storage = None
            await close_redis()

    logger.info("service_shutdown_complete", role=app.state.role.value)


def create_application(role: ServiceRole | None = None) -> FastAPI:
    """
    Application factory function.

    ``role`` defaults to the ``SERVICE_ROLE`` setting. Each application gets
    its own worker identity and, once started, its own storage handle.
    """
    settings = get_settings()
    role = role or settings.service_role
    title = SERVICE_TITLES[role]

    app = FastAPI(
        title=f"{settings.project_name} - {title}",
        version=settings.version,
        openapi_url="/openapi.json",
        docs_url=None,  # Custom docs endpoint below
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.role = role
    app.state.worker_id = resolve_worker_id(settings, role)
    app.state.storage = None

    # FastAPI's built-in Swagger page initializes before the swagger-ui v5
    # bundle is ready; defer to window.onload.
    @app.get("/api-docs", include_in_schema=False)
    async def custom_swagger_ui() -> HTMLResponse:
        return HTMLResponse(f"""<!DOCTYPE html>
<html>
<head>
<link type="text/css" rel="stylesheet"
      href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui.css">
<title>{title} - Swagger UI</title>
</head>
<body>
<div id="swagger-ui"></div>
<script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
<script>
window.onload = function() {{
    SwaggerUIBundle({{
        url: "/openapi.json",
        dom_id: "#swagger-ui",
        layout: "BaseLayout",
        deepLinking: true,
        presets: [
            SwaggerUIBundle.presets.apis,
            SwaggerUIBundle.SwaggerUIStandalonePreset
        ]
    }});
}};
</script>
</body>
</html>""")

    @app.exception_handler(RequestValidationError)
    async def invalid_request_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            error_count=len(exc.errors()),
        )
        return JSONResponse(status_code=400, content={"detail": "Invalid credential format"})

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining"],
    )

    # Rate limiting (skipped in development)
    app.add_middleware(RateLimitMiddleware, paths=(CORE_PATHS[role],))

    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Outermost, so access lines include rate-limited and failed requests
    app.add_middleware(RequestLoggingMiddleware)

    # ==========================================================================
    # Router Registration
    # ==========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check(storage: Storage, worker_id: WorkerId) -> dict[str, object]:
        checks: dict[str, str] = {}

        try:
            await storage.ping()
            checks["db"] = "ok"
        except StorageError:
            checks["db"] = "unavailable"

        # Redis only matters where rate limiting is active
        if settings.environment != "development":
            try:
                r = await get_redis()
                if r is not None:
                    await r.ping()  # type: ignore[misc,unused-ignore]
                    checks["redis"] = "ok"
                else:
                    checks["redis"] = "unavailable"
            except Exception:
                checks["redis"] = "unavailable"

        overall = "healthy" if all(v == "ok" for v in checks.values()) else "degraded"
        return {
            "status": overall,
            "worker": worker_id,
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        }

    if role is ServiceRole.ISSUANCE:
        app.include_router(issuance_router, tags=["Issuance"])
    else:
        app.include_router(verification_router, tags=["Verification"])

    if settings.debug_endpoints_enabled:
        app.include_router(diagnostics_router, prefix="/debug", tags=["Debug"])
        if role is ServiceRole.VERIFICATION:
            app.include_router(echo_router, prefix="/debug", tags=["Debug"])

    # Prometheus metrics endpoint
    from prometheus_fastapi_instrumentator import Instrumentator

    instrumentator = Instrumentator().instrument(app)

    if settings.environment == "development" and not settings.metrics_auth_token:
        instrumentator.expose(app, endpoint="/metrics", include_in_schema=False)
    else:
        import hmac as _hmac

        from fastapi import Header, Response

        @app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint(
            authorization: str | None = Header(default=None),
        ) -> Response:
            if not settings.metrics_auth_token:
                return Response(status_code=404)

            if not authorization or not authorization.startswith("Bearer "):
                return Response(status_code=401)

            provided = authorization.removeprefix("Bearer ")
            if not _hmac.compare_digest(provided, settings.metrics_auth_token):
                return Response(status_code=401)

            from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

            return Response(
                content=generate_latest(),
                media_type=CONTENT_TYPE_LATEST,
            )

    return app


def create_issuance_app() -> FastAPI:
    """ASGI factory for the issuance service (``uvicorn --factory``)."""
    return create_application(ServiceRole.ISSUANCE)


def create_verification_app() -> FastAPI:
    """ASGI factory for the verification service (``uvicorn --factory``)."""
    return create_application(ServiceRole.VERIFICATION)
