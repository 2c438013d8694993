"""Upstash Redis REST window store.

Each sliding window is a sorted set keyed by ``prefix:identifier`` whose scores
are request timestamps in milliseconds. Eviction, counting and recording run
inside one Lua script sent through ``EVAL``, which Redis executes atomically,
so concurrent processes can never over-admit the same key.

The REST protocol is a JSON array command posted to the endpoint with a bearer
token; the reply is ``{"result": ...}`` or ``{"error": "..."}``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx

from portal_limiter.adapters.rate_limit.base import AbstractWindowStore, WindowState
from portal_limiter.core.errors import ConfigurationAppError, WindowStoreError

logger = logging.getLogger(__name__)


# KEYS[1] = window key
# ARGV = limit, window_ms, now_ms, member, record (1 to record, 0 to peek)
# Only a recorded hit writes to the key; the TTL follows its newest entry.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local now_ms = tonumber(ARGV[3])
local member = ARGV[4]
local record = tonumber(ARGV[5])

redis.call("ZREMRANGEBYSCORE", key, "-inf", now_ms - window_ms)
local count = redis.call("ZCARD", key)
local allowed = 0
if count < limit then
  allowed = 1
  if record == 1 then
    redis.call("ZADD", key, now_ms, member)
    redis.call("PEXPIRE", key, window_ms)
    count = count + 1
  end
end

local oldest_ms = -1
local oldest = redis.call("ZRANGE", key, 0, 0, "WITHSCORES")
if oldest[2] then
  oldest_ms = tonumber(oldest[2])
end
return {allowed, count, oldest_ms}
"""


class UpstashRestWindowStore(AbstractWindowStore):
    """Window store backed by Upstash Redis over its REST API.

    The underlying ``httpx.AsyncClient`` is created on first use, so building
    the store never touches the network.
    """

    def __init__(
        self,
        *,
        url: str,
        token: str,
        timeout_seconds: float = 0.3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            url: REST endpoint, e.g. ``https://<db>.upstash.io``.
            token: REST access token.
            timeout_seconds: HTTP timeout applied to every command.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).

        Raises:
            ConfigurationAppError: If the URL or token is unusable.
        """
        if not url or not url.startswith(("http://", "https://")):
            raise ConfigurationAppError(
                code="store_invalid_url",
                message="Upstash REST URL must start with http:// or https://",
                details={"store": "upstash"},
            )
        if not token:
            raise ConfigurationAppError(
                code="store_missing_token",
                message="Upstash REST token is required",
                details={"store": "upstash"},
            )

        self._url = url.rstrip("/")
        self._token = token
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._url,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def _command(self, *args: Any) -> Any:
        """Send one Redis command and return its ``result``.

        Raises:
            WindowStoreError: On transport failures, non-2xx status or an
                error payload.
        """
        command = [str(arg) for arg in args]
        try:
            response = await self._get_client().post("/", json=command)
        except httpx.HTTPError as exc:
            raise WindowStoreError(
                code="store_unreachable",
                message=f"Upstash request failed: {type(exc).__name__}",
                details={"store": "upstash"},
            ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400 or not isinstance(payload, dict) or "error" in payload:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise WindowStoreError(
                code="store_error",
                message=error or f"Upstash returned HTTP {response.status_code}",
                details={"store": "upstash", "http_status": response.status_code},
            )

        return payload.get("result")

    async def _run_window_script(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
        record: bool,
    ) -> WindowState:
        now_ms = int(now * 1000)
        member = f"{now_ms}-{uuid.uuid4().hex}"
        result = await self._command(
            "EVAL",
            SLIDING_WINDOW_SCRIPT,
            1,
            key,
            limit,
            window_seconds * 1000,
            now_ms,
            member,
            1 if record else 0,
        )

        if not isinstance(result, list) or len(result) != 3:
            raise WindowStoreError(
                code="store_malformed_result",
                message="Unexpected sliding window script result",
                details={"store": "upstash"},
            )

        allowed, count, oldest_ms = (int(value) for value in result)
        return WindowState(
            allowed=allowed == 1,
            count=count,
            oldest=oldest_ms / 1000 if oldest_ms >= 0 else None,
        )

    async def hit(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> WindowState:
        return await self._run_window_script(
            key, limit=limit, window_seconds=window_seconds, now=now, record=True
        )

    async def peek(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> WindowState:
        return await self._run_window_script(
            key, limit=limit, window_seconds=window_seconds, now=now, record=False
        )

    async def clear(self, key: str) -> None:
        await self._command("DEL", key)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
