from __future__ import annotations

import pytest

from injtrack.config import TrackerConfig
from injtrack.exceptions import InjTrackConfigError


def test_defaults_match_sync_timings() -> None:
    config = TrackerConfig(base_url="https://example.invalid/api")

    assert config.push_debounce == 1.2
    assert config.pull_interval == 45.0
    assert config.fail_cooldown == 120.0
    assert config.event_settle_delay == 1.5
    assert config.max_body_bytes == 950_000
    assert config.snapshot_endpoint == "/snapshot"
    assert config.storage_dir is None
    assert config.start_online is True


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INJTRACK_BASE_URL", "https://env.invalid/api")
    monkeypatch.setenv("INJTRACK_STORAGE_DIR", "/var/lib/injtrack")
    monkeypatch.setenv("INJTRACK_PUSH_DEBOUNCE", "2.5")
    monkeypatch.setenv("INJTRACK_MAX_BODY_BYTES", "1000")
    monkeypatch.setenv("INJTRACK_START_ONLINE", "off")

    config = TrackerConfig.from_env(fail_cooldown=30.0)

    assert config.base_url == "https://env.invalid/api"
    assert config.storage_dir == "/var/lib/injtrack"
    assert config.push_debounce == 2.5
    assert config.max_body_bytes == 1000
    assert config.start_online is False
    assert config.fail_cooldown == 30.0


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INJTRACK_BASE_URL", "https://env.invalid/api")
    monkeypatch.setenv("INJTRACK_PULL_INTERVAL", "not-a-number")

    config = TrackerConfig.from_env(base_url="https://override.invalid", pull_interval=10.0)

    assert config.base_url == "https://override.invalid"
    assert config.pull_interval == 10.0


def test_from_env_rejects_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("INJTRACK_BASE_URL", raising=False)
    with pytest.raises(InjTrackConfigError):
        TrackerConfig.from_env()

    monkeypatch.setenv("INJTRACK_BASE_URL", "https://env.invalid/api")
    monkeypatch.setenv("INJTRACK_FAIL_COOLDOWN", "soon")
    with pytest.raises(InjTrackConfigError):
        TrackerConfig.from_env()


def test_post_init_validates() -> None:
    with pytest.raises(InjTrackConfigError):
        TrackerConfig(base_url="")
    with pytest.raises(InjTrackConfigError):
        TrackerConfig(base_url="https://example.invalid", push_debounce=-1)
    with pytest.raises(InjTrackConfigError):
        TrackerConfig(base_url="https://example.invalid", max_body_bytes=0)
