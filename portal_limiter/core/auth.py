"""Admin API key check for the rate limit administration endpoints.

Portal and API traffic is authenticated upstream; only the admin surface
(inspecting and resetting windows) is guarded here, with static keys read from
``APP_API_KEYS``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Depends, Header

from portal_limiter.core.config import AppSettings, Settings, get_app_settings
from portal_limiter.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 ,key1")
        {'key1', 'key2'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _key_fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_admin_key(provided_key: str | None, app_config: AppSettings) -> None:
    """Check a provided admin key against the configured ones.

    Args:
        provided_key: Value of the X-API-Key header, if any.
        app_config: Application settings holding the configured keys.

    Raises:
        AuthenticationAppError: If no keys are configured, the key is missing
            or it matches none of the configured keys.
    """
    if not app_config.api_key_required:
        return

    valid_keys = parse_api_keys(app_config.api_keys)
    if not valid_keys:
        logger.error(
            "auth.keys_not_configured",
            extra={"auth_required": True},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="Admin authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.missing_key", extra={"api_key_present": False})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    provided = provided_key.encode()
    if not any(hmac.compare_digest(provided, key.encode()) for key in valid_keys):
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": _key_fingerprint(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_admin_key(
    cfg: Annotated[Settings, Depends(get_app_settings)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding admin routes.

    Usage:
        @router.post("/admin/...", dependencies=[Depends(verify_admin_key)])

    Raises:
        AuthenticationAppError: Rendered as 403 by the global handlers.
    """
    validate_admin_key(x_api_key, cfg.app)
    if x_api_key:
        logger.info(
            "auth.success",
            extra={"api_key_hash": _key_fingerprint(x_api_key)},
        )
