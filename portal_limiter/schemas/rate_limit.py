"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from portal_limiter.adapters.rate_limit.base import RateLimitDecision


class RateLimitStatus(BaseModel):
    """Serialized rate limit decision."""

    success: bool = Field(..., description="Whether a request is (or was) admitted.")
    limit: int = Field(..., description="Requests allowed per sliding window.")
    remaining: int = Field(..., ge=0, description="Requests left in the trailing window.")
    reset: int = Field(..., description="UNIX seconds when the oldest counted request expires.")
    retry_after: int | None = Field(
        default=None,
        description="Seconds to wait before retrying; present only when rejected.",
    )

    @classmethod
    def from_decision(cls, decision: RateLimitDecision) -> "RateLimitStatus":
        return cls(
            success=decision.success,
            limit=decision.limit,
            remaining=decision.remaining,
            reset=decision.reset,
            retry_after=decision.retry_after,
        )


class PortalSessionResponse(BaseModel):
    customer_id: str
    rate_limit: RateLimitStatus | None = None


class ApiStatusResponse(BaseModel):
    status: Literal["ok"] = "ok"
    rate_limit: RateLimitStatus | None = None


class AdminRateLimitResponse(BaseModel):
    """Admin view of one identifier's window."""

    scope: str
    identifier: str
    store_available: bool = Field(
        ...,
        description="False when the limiter runs fail-open without a shared store.",
    )
    window_seconds: int
    rate_limit: RateLimitStatus | None = Field(
        default=None,
        description="Current window status; omitted after a reset.",
    )


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    rate_limit_store: Literal["configured", "unconfigured"]
