from __future__ import annotations

from portal_limiter.api.routes.admin import router as admin_router
from portal_limiter.api.routes.api import router as api_router
from portal_limiter.api.routes.health import router as health_router
from portal_limiter.api.routes.portal import router as portal_router

__all__ = ["admin_router", "api_router", "health_router", "portal_router"]
