"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a correlation id: the incoming header
value (``LOG_REQUEST_ID_HEADER``, default ``X-Request-ID``) or a fresh UUID.
The id is stored in a contextvar for the duration of the request, so rate
limit log records emitted deep inside the limiter are correlated too.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from portal_limiter.core.config import get_app_settings
from portal_limiter.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate the request id and report the handling duration.

    Adds the request id header and ``X-Request-Duration-ms`` to the response,
    including 429 rejections produced by the rate limit dependency.
    """

    header_name = get_app_settings(request).log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
