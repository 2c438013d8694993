from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from portal_limiter.adapters.rate_limit.base import RateLimitDecision
from portal_limiter.core.config import Settings, get_app_settings
from portal_limiter.core.rate_limit import (
    enforce_portal_rate_limit,
    get_rate_limiters,
    resolve_portal_identifier,
)
from portal_limiter.schemas.rate_limit import PortalSessionResponse, RateLimitStatus

router = APIRouter(tags=["Portal"])


@router.get("/portal/session", response_model=PortalSessionResponse)
async def portal_session(
    customer_id: Annotated[str, Depends(resolve_portal_identifier)],
    decision: Annotated[RateLimitDecision | None, Depends(enforce_portal_rate_limit)],
) -> PortalSessionResponse:
    """Return the authenticated portal customer.

    Consumes one unit of the customer's portal quota. Responses carry the
    X-RateLimit-* headers; exhausted quotas get 429 with Retry-After.
    """

    return PortalSessionResponse(
        customer_id=customer_id,
        rate_limit=RateLimitStatus.from_decision(decision) if decision else None,
    )


@router.get("/portal/rate-limit", response_model=RateLimitStatus | None)
async def portal_rate_limit_status(
    request: Request,
    customer_id: Annotated[str, Depends(resolve_portal_identifier)],
    cfg: Annotated[Settings, Depends(get_app_settings)],
) -> RateLimitStatus | None:
    """Report the customer's remaining portal budget without consuming it.

    Returns null when rate limiting is disabled.
    """

    if not cfg.app.rate_limit_enabled:
        return None
    decision = await get_rate_limiters(request).portal.check(customer_id)
    return RateLimitStatus.from_decision(decision)
