"""Rate limiting dependencies for FastAPI routes.

This module is the admission point: it wires the limiters built at startup
into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Explicit injection: limiters live on ``app.state.rate_limiters``, built once
  by the app factory, never in a module global.
- Headers everywhere: admitted responses carry the same X-RateLimit-* headers
  as rejections so clients can budget ahead of a 429.

Identifiers:
- Portal: customer id resolved by the upstream token validation step.
- General API: hashed API key when present, else the client IP.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, Response, status

from portal_limiter.adapters.rate_limit.base import RateLimitDecision
from portal_limiter.adapters.rate_limit.factory import RateLimiters
from portal_limiter.adapters.rate_limit.limiter import SlidingWindowRateLimiter
from portal_limiter.core.config import Settings, get_app_settings
from portal_limiter.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def build_rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Convert a decision into standard rate limit response headers.

    ``Retry-After`` is only present when the decision carries ``retry_after``,
    which happens exactly when the request was rejected.
    """

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset),
    }
    if decision.retry_after is not None:
        headers["Retry-After"] = str(decision.retry_after)
    return headers


def get_rate_limiters(request: Request) -> RateLimiters:
    """Return the limiters injected into the running application."""
    return request.app.state.rate_limiters


def _hash_identifier(value: str) -> str:
    """Hash a secret-bearing identifier so it never reaches logs or the store."""
    return hashlib.sha256(value.encode()).hexdigest()[:16]


async def resolve_portal_identifier(
    request: Request,
    cfg: Annotated[Settings, Depends(get_app_settings)],
) -> str:
    """Resolve the portal customer id set by upstream token validation.

    Raises:
        AuthenticationAppError: If the request carries no customer id.
    """

    header_name = cfg.app.portal_customer_header
    customer_id = (request.headers.get(header_name) or "").strip()
    if not customer_id:
        logger.warning(
            "rate_limit.identifier_missing",
            extra={"header": header_name, "request_path": request.url.path},
        )
        raise AuthenticationAppError(
            code="portal_customer_missing",
            message="Portal request is missing the authenticated customer id",
            details={"hint": f"Upstream token validation must set {header_name}"},
        )
    return customer_id


async def resolve_api_identifier(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> str:
    """Build the general API identifier: hashed API key, else client IP."""

    if x_api_key:
        return f"api_key:{_hash_identifier(x_api_key)}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def admit(
    limiter: SlidingWindowRateLimiter,
    identifier: str,
    response: Response,
) -> RateLimitDecision:
    """Run the limiter for one request and apply the outcome.

    Args:
        limiter: Limiter guarding the route.
        identifier: Stable identifier of the caller.
        response: Response whose headers receive the rate limit headers.

    Returns:
        The admitting decision.

    Raises:
        HTTPException: 429 Too Many Requests when the quota is exhausted.
    """

    decision = await limiter.limit(identifier)
    headers = build_rate_limit_headers(decision)

    if decision.success:
        response.headers.update(headers)
        return decision

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "limiter": limiter.name,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_s": limiter.config.window_seconds,
            "retry_after_s": decision.retry_after,
        },
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers,
    )


async def enforce_portal_rate_limit(
    request: Request,
    response: Response,
    customer_id: Annotated[str, Depends(resolve_portal_identifier)],
    cfg: Annotated[Settings, Depends(get_app_settings)],
) -> RateLimitDecision | None:
    """FastAPI dependency guarding portal routes with the portal limiter.

    Returns:
        The decision, or None when rate limiting is disabled.
    """

    if not cfg.app.rate_limit_enabled:
        return None
    return await admit(get_rate_limiters(request).portal, customer_id, response)


async def enforce_api_rate_limit(
    request: Request,
    response: Response,
    cfg: Annotated[Settings, Depends(get_app_settings)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> RateLimitDecision | None:
    """FastAPI dependency guarding general API routes with the API limiter."""

    if not cfg.app.rate_limit_enabled:
        return None
    identifier = await resolve_api_identifier(request, x_api_key)
    return await admit(get_rate_limiters(request).api, identifier, response)
