from __future__ import annotations

from fastapi import APIRouter, Request

from portal_limiter.core.rate_limit import get_rate_limiters
from portal_limiter.schemas.rate_limit import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Always reports "ok": a missing rate limit store degrades the limiters to
    fail-open but never makes the service unhealthy. ``rate_limit_store``
    tells operators which mode the process is running in.
    """

    configured = get_rate_limiters(request).store_available
    return HealthResponse(rate_limit_store="configured" if configured else "unconfigured")
