"""Factory functions building the window store and limiter profiles."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from portal_limiter.adapters.rate_limit.base import AbstractWindowStore, RateLimitConfig
from portal_limiter.adapters.rate_limit.limiter import SlidingWindowRateLimiter
from portal_limiter.adapters.rate_limit.upstash import UpstashRestWindowStore
from portal_limiter.core.config import Settings
from portal_limiter.core.errors import AppError, ValidationAppError

logger = logging.getLogger(__name__)

PORTAL_PREFIX = "portal:ratelimit"
API_PREFIX = "api:ratelimit"


@dataclass(frozen=True)
class RateLimiters:
    """The limiter profiles shared by every request handled in this process."""

    portal: SlidingWindowRateLimiter
    api: SlidingWindowRateLimiter

    def get(self, scope: str) -> SlidingWindowRateLimiter:
        """Look up a limiter by scope name ("portal" or "api").

        Raises:
            ValidationAppError: If the scope is unknown.
        """
        if scope == "portal":
            return self.portal
        if scope == "api":
            return self.api
        raise ValidationAppError(
            code="unknown_rate_limit_scope",
            message=f"Unknown rate limit scope: '{scope}'. Supported scopes: portal, api",
            details={"scope": scope},
        )

    @property
    def store_available(self) -> bool:
        return self.portal.store_available and self.api.store_available

    async def aclose(self) -> None:
        await self.portal.aclose()
        await self.api.aclose()


def create_window_store(settings: Settings) -> AbstractWindowStore | None:
    """Build the shared window store from settings.

    Returns:
        The configured store, or None when credentials are missing or invalid.
        Limiters built with None run permanently fail-open.
    """
    store_settings = settings.store
    if not store_settings.configured:
        return None

    try:
        return UpstashRestWindowStore(
            url=store_settings.rest_url or "",
            token=store_settings.rest_token or "",
            timeout_seconds=store_settings.timeout_ms / 1000,
        )
    except AppError as exc:
        logger.error(
            "rate_limit.store_init_failed",
            extra={"error_code": exc.code, "error_message": exc.message},
        )
        return None


def create_rate_limiters(
    settings: Settings,
    *,
    store: AbstractWindowStore | None = None,
) -> RateLimiters:
    """Build the portal and general API limiters.

    Args:
        settings: Resolved application settings.
        store: Optional pre-built store; when omitted one is created from
            settings. Both limiters share the same store.

    Returns:
        RateLimiters container.
    """
    if store is None:
        store = create_window_store(settings)

    timeout_seconds = settings.store.timeout_ms / 1000

    portal = SlidingWindowRateLimiter(
        RateLimitConfig(
            requests=settings.portal_limit.requests,
            window_seconds=settings.portal_limit.window_seconds,
        ),
        store,
        prefix=PORTAL_PREFIX,
        namespace="customer",
        name="portal",
        timeout_seconds=timeout_seconds,
    )
    api = SlidingWindowRateLimiter(
        RateLimitConfig(
            requests=settings.api_limit.requests,
            window_seconds=settings.api_limit.window_seconds,
        ),
        store,
        prefix=API_PREFIX,
        name="api",
        timeout_seconds=timeout_seconds,
    )
    return RateLimiters(portal=portal, api=api)
