from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from portal_limiter.adapters.rate_limit.base import RateLimitDecision
from portal_limiter.core.rate_limit import enforce_api_rate_limit
from portal_limiter.schemas.rate_limit import ApiStatusResponse, RateLimitStatus

router = APIRouter(tags=["API"])


@router.get("/status", response_model=ApiStatusResponse)
async def api_status(
    decision: Annotated[RateLimitDecision | None, Depends(enforce_api_rate_limit)],
) -> ApiStatusResponse:
    """General API liveness behind the API limiter (per API key or client IP)."""

    return ApiStatusResponse(
        rate_limit=RateLimitStatus.from_decision(decision) if decision else None,
    )
