from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import pytest

from injtrack.config import TrackerConfig
from injtrack.exceptions import NetworkFailureError
from injtrack.state.session import AccountSession
from injtrack.state.store import MemorySeriesStore

ACCOUNT = "inj1" + "a" * 38


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """In-memory snapshot store speaking the transport protocol."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, Any] | None] = {}
        self.posts: list[dict[str, Any]] = []
        self.gets: list[str] = []
        self.fail_posts = False
        self.fail_gets = False
        self.reject_posts = False

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> dict[str, Any]:
        self.gets.append(params["address"])
        if self.fail_gets:
            raise NetworkFailureError("connection refused", endpoint=endpoint)
        return {"ok": True, "data": self.data.get(params["address"])}

    async def post_json(self, endpoint: str, params: Mapping[str, str], body: bytes) -> dict[str, Any]:
        if self.fail_posts:
            raise NetworkFailureError("connection refused", endpoint=endpoint)
        doc = json.loads(body)
        self.posts.append(doc)
        if self.reject_posts:
            return {"ok": False, "error": "address mismatch"}
        self.data[params["address"]] = {key: value for key, value in doc.items() if key != "address"}
        return {"ok": True, "meta": {"uploadedAt": 1_767_225_600_000}}


@pytest.fixture
def store() -> MemorySeriesStore:
    return MemorySeriesStore()


@pytest.fixture
def session(store: MemorySeriesStore) -> AccountSession:
    return AccountSession.open(ACCOUNT, store, generation=1)


@pytest.fixture
def config() -> TrackerConfig:
    return TrackerConfig(
        base_url="https://snapshots.example.invalid/api",
        push_debounce=0.05,
        pull_interval=3600.0,
        fail_cooldown=120.0,
        event_settle_delay=0.05,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
