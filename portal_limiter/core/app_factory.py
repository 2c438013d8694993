"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
builds the rate limiters once per process, injecting them and the settings
through ``app.state`` so tests can hand in limiters backed by an in-memory
store. The limiters are closed when the application shuts down.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from portal_limiter.adapters.rate_limit.factory import RateLimiters, create_rate_limiters
from portal_limiter.api.routes import admin_router, api_router, health_router, portal_router
from portal_limiter.core.config import Settings, settings
from portal_limiter.core.exception_handlers import setup_exception_handlers
from portal_limiter.core.logging import configure_logging
from portal_limiter.core.middleware import request_id_middleware
from portal_limiter.core.openapi import apply_openapi_customizations


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the window store connections on shutdown."""
    yield
    await app.state.rate_limiters.aclose()


def create_app(
    *,
    app_settings: Settings | None = None,
    rate_limiters: RateLimiters | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        rate_limiters: Pre-built limiters; when omitted they are created from
            settings (Upstash store if configured, fail-open otherwise).

    Returns:
        Configured FastAPI app.
    """
    cfg = app_settings or settings

    # Logging first so the limiter construction warnings are formatted
    configure_logging(cfg.log)

    app = FastAPI(
        title="Portal Rate Limiter",
        description=(
            "Sliding-window request admission for the customer portal and the "
            "general API. Rejected requests get 429 with Retry-After; every "
            "rate-limited response carries X-RateLimit-* headers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.rate_limiters = rate_limiters or create_rate_limiters(cfg)

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(portal_router, prefix="/v1")
    app.include_router(api_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
