"""Administrative endpoints for support and debugging.

Lets an operator inspect one identifier's window or force-clear it, for either
limiter scope. Guarded by the admin API key.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from portal_limiter.core.auth import verify_admin_key
from portal_limiter.core.rate_limit import get_rate_limiters
from portal_limiter.schemas.rate_limit import AdminRateLimitResponse, RateLimitStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"], dependencies=[Depends(verify_admin_key)])


@router.get(
    "/admin/rate-limits/{scope}/{identifier}",
    response_model=AdminRateLimitResponse,
)
async def inspect_rate_limit(scope: str, identifier: str, request: Request) -> AdminRateLimitResponse:
    """Show an identifier's current window without consuming quota."""

    limiter = get_rate_limiters(request).get(scope)
    decision = await limiter.check(identifier)
    return AdminRateLimitResponse(
        scope=scope,
        identifier=identifier,
        store_available=limiter.store_available,
        window_seconds=limiter.config.window_seconds,
        rate_limit=RateLimitStatus.from_decision(decision),
    )


@router.post(
    "/admin/rate-limits/{scope}/{identifier}/reset",
    response_model=AdminRateLimitResponse,
)
async def reset_rate_limit(scope: str, identifier: str, request: Request) -> AdminRateLimitResponse:
    """Clear an identifier's window so its next request sees the full quota.

    Best effort: with no shared store configured this is a logged no-op and
    ``store_available`` is false in the response.
    """

    limiter = get_rate_limiters(request).get(scope)
    await limiter.reset(identifier)
    logger.info(
        "admin.rate_limit_reset",
        extra={"scope": scope, "identifier": identifier, "store_available": limiter.store_available},
    )
    return AdminRateLimitResponse(
        scope=scope,
        identifier=identifier,
        store_available=limiter.store_available,
        window_seconds=limiter.config.window_seconds,
    )
