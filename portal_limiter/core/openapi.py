"""OpenAPI customization.

Declares the admin API key scheme on the admin operations only and documents
the rate limit headers on every rate-limited operation, keeping documentation
concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {"name": "Portal", "description": "Customer portal endpoints (portal limiter)."},
    {"name": "API", "description": "General API endpoints (API limiter)."},
    {"name": "Admin", "description": "Inspect and reset rate limit windows."},
    {"name": "Health", "description": "Liveness checks."},
]

RATE_LIMIT_HEADERS_DOC = {
    "X-RateLimit-Limit": {"description": "Requests allowed per window.", "schema": {"type": "integer"}},
    "X-RateLimit-Remaining": {"description": "Requests left in the window.", "schema": {"type": "integer"}},
    "X-RateLimit-Reset": {"description": "UNIX seconds when the window frees up.", "schema": {"type": "integer"}},
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with security and header docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault(
            "AdminApiKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin API key for rate limit administration.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                if path.startswith("/v1/admin/"):
                    operation["security"] = [{"AdminApiKey": []}]
                elif path in ("/v1/portal/session", "/v1/status"):
                    responses = operation.setdefault("responses", {})
                    responses.setdefault("200", {}).setdefault("headers", {}).update(RATE_LIMIT_HEADERS_DOC)
                    responses["429"] = {
                        "description": "Rate limit exceeded.",
                        "headers": {
                            **RATE_LIMIT_HEADERS_DOC,
                            "Retry-After": {
                                "description": "Seconds until a retry can succeed.",
                                "schema": {"type": "integer"},
                            },
                        },
                    }

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
