"""HTTP transport for the snapshot store."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from injtrack._constants import USER_AGENT
from injtrack.config import TrackerConfig
from injtrack.exceptions import NetworkFailureError

_logger = logging.getLogger(__name__)


class SnapshotTransport(Protocol):
    """Structural transport interface used by the snapshot API module.

    Tests pass in-memory doubles; production uses :class:`HttpTransport`.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> dict[str, Any]: ...

    async def post_json(self, endpoint: str, params: Mapping[str, str], body: bytes) -> dict[str, Any]: ...


class HttpTransport:
    """aiohttp-backed transport returning decoded JSON objects."""

    def __init__(self, config: TrackerConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _url(self, endpoint: str) -> str:
        return f"{self._config.base_url.rstrip('/')}{endpoint}"

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> dict[str, Any]:
        return await self._request("GET", endpoint, params, None)

    async def post_json(self, endpoint: str, params: Mapping[str, str], body: bytes) -> dict[str, Any]:
        return await self._request("POST", endpoint, params, body)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Mapping[str, str],
        body: bytes | None,
    ) -> dict[str, Any]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "cache-control": "no-store",
            "user-agent": USER_AGENT,
        }
        if body is not None:
            headers["content-type"] = "application/json; charset=utf-8"

        url = self._url(endpoint)
        _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params),
                data=body,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise NetworkFailureError(
                f"{method} {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

        try:
            body_json = json.loads(text) if text else None
        except json.JSONDecodeError as exc:
            raise NetworkFailureError(
                f"Invalid JSON from {endpoint} (HTTP {status}): {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        # The store reports rejections as {ok: false, error} with a 4xx status;
        # those bodies are handed back so the caller can classify them.
        if isinstance(body_json, dict) and "ok" in body_json and 400 <= status < 500:
            return body_json

        if status >= 300:
            raise NetworkFailureError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        if not isinstance(body_json, dict):
            raise NetworkFailureError(
                f"Expected a JSON object from {endpoint}, got {type(body_json).__name__}",
                status_code=status,
                endpoint=endpoint,
            )
        return body_json
