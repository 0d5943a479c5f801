from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from injtrack._api.snapshot import fetch_snapshot, upload_snapshot
from injtrack._transport import HttpTransport
from injtrack.config import TrackerConfig
from injtrack.exceptions import InvalidAccountIdError, NetworkFailureError, RemoteRejectedError
from injtrack.models.series import SeriesKind, StakePoint
from injtrack.models.snapshot import SnapshotPayload

ACCOUNT = "inj1" + "a" * 38

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


async def _call(handler: Handler, fn: Callable[[HttpTransport, TrackerConfig], Awaitable[Any]]) -> Any:
    app = web.Application()
    app.router.add_route("*", "/api/snapshot", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        config = TrackerConfig(base_url=str(server.make_url("/api")), request_timeout=5.0)
        async with aiohttp.ClientSession() as http:
            return await fn(HttpTransport(config, http), config)
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_fetch_snapshot_decodes_payload() -> None:
    seen: dict[str, str] = {}

    async def handler(request: web.Request) -> web.Response:
        seen.update(request.query)
        seen["method"] = request.method
        return web.json_response(
            {"ok": True, "data": {"v": 2, "t": 1, "stake": {"labels": ["1000"], "data": [5.0]}}}
        )

    payload = await _call(handler, lambda t, c: fetch_snapshot(t, c, ACCOUNT.upper()))

    assert seen == {"address": ACCOUNT, "method": "GET"}
    assert payload is not None
    assert payload.decode(SeriesKind.STAKE) == [StakePoint(ts=1000, balance=5.0)]


@pytest.mark.asyncio
async def test_fetch_snapshot_without_data_returns_none() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.json_response({"ok": True, "data": None})

    assert await _call(handler, lambda t, c: fetch_snapshot(t, c, ACCOUNT)) is None


@pytest.mark.asyncio
async def test_upload_snapshot_posts_body_with_address() -> None:
    received: list[dict[str, Any]] = []

    async def handler(request: web.Request) -> web.Response:
        assert request.method == "POST"
        received.append(json.loads(await request.read()))
        return web.json_response({"ok": True, "meta": {"uploadedAt": 1_767_225_600_000}})

    payload = SnapshotPayload.from_series({SeriesKind.STAKE: [StakePoint(ts=1000, balance=5.0)]}, now_ms=2000)
    uploaded_at = await _call(handler, lambda t, c: upload_snapshot(t, c, ACCOUNT, payload))

    assert uploaded_at == 1_767_225_600_000
    assert received[0]["address"] == ACCOUNT
    assert received[0]["t"] == 2000
    assert received[0]["stake"]["data"] == [5.0]


@pytest.mark.asyncio
async def test_rejection_body_raises_remote_rejected() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.json_response({"ok": False, "error": "address mismatch"}, status=400)

    with pytest.raises(RemoteRejectedError) as excinfo:
        await _call(handler, lambda t, c: fetch_snapshot(t, c, ACCOUNT))
    assert excinfo.value.error == "address mismatch"


@pytest.mark.asyncio
async def test_server_error_raises_network_failure() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(status=502, text="bad gateway")

    with pytest.raises(NetworkFailureError) as excinfo:
        await _call(handler, lambda t, c: fetch_snapshot(t, c, ACCOUNT))
    assert excinfo.value.status_code == 502
    assert excinfo.value.endpoint == "/snapshot"


@pytest.mark.asyncio
async def test_non_json_body_raises_network_failure() -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(text="<html>oops</html>")

    with pytest.raises(NetworkFailureError):
        await _call(handler, lambda t, c: fetch_snapshot(t, c, ACCOUNT))


@pytest.mark.asyncio
async def test_invalid_account_fails_before_network() -> None:
    hits: list[str] = []

    async def handler(request: web.Request) -> web.Response:
        hits.append(request.path)
        return web.json_response({"ok": True, "data": None})

    with pytest.raises(InvalidAccountIdError):
        await _call(handler, lambda t, c: fetch_snapshot(t, c, "cosmos1abc"))
    assert hits == []
