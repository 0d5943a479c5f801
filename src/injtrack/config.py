"""Tracker configuration for injtrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from injtrack import _constants as c
from injtrack.exceptions import InjTrackConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    base_url : str
        Root URL of the snapshot store (e.g. ``"https://example.app/api"``).
    snapshot_endpoint : str
        Path of the snapshot resource appended to ``base_url``.
    storage_dir : str or None
        Directory for the file-backed local store. ``None`` keeps the
        series in memory only.
    push_debounce : float
        Seconds of quiet required after the last local change before a
        snapshot is pushed.
    pull_interval : float
        Seconds between periodic pulls.
    fail_cooldown : float
        Seconds during which no push is scheduled after a failed push.
    event_settle_delay : float
        Seconds after which a ``pending`` event moves to ``ok``/``err``.
    request_timeout : float
        Total timeout for a single snapshot request.
    max_body_bytes : int
        Upload size bound. Larger snapshots are rejected before sending.
    reward_withdraw_threshold : float
        Minimum drop of the unclaimed reward that counts as a withdrawal.
    net_worth_min_interval : float
        Minimum seconds between two net-worth samples.
    net_worth_min_usd_delta : float
        Minimum USD change between two net-worth samples.
    apr_event_threshold : float
        Minimum APR move (percentage points) that emits an ``apr`` event.
    start_online : bool
        Initial connectivity flag.
    """

    base_url: str
    snapshot_endpoint: str = c.SNAPSHOT_ENDPOINT
    storage_dir: str | None = None
    push_debounce: float = c.PUSH_DEBOUNCE_S
    pull_interval: float = c.PULL_INTERVAL_S
    fail_cooldown: float = c.FAIL_COOLDOWN_S
    event_settle_delay: float = c.EVENT_SETTLE_DELAY_S
    request_timeout: float = c.REQUEST_TIMEOUT_S
    max_body_bytes: int = c.MAX_BODY_BYTES
    reward_withdraw_threshold: float = c.REWARD_WITHDRAW_THRESHOLD
    net_worth_min_interval: float = c.NET_WORTH_MIN_INTERVAL_S
    net_worth_min_usd_delta: float = c.NET_WORTH_MIN_USD_DELTA
    apr_event_threshold: float = c.APR_EVENT_THRESHOLD
    start_online: bool = True

    def __post_init__(self) -> None:
        if not self.base_url:
            raise InjTrackConfigError("base_url must be set")
        for name in ("push_debounce", "pull_interval", "fail_cooldown", "event_settle_delay", "request_timeout"):
            if getattr(self, name) < 0:
                raise InjTrackConfigError(f"{name} must not be negative")
        if self.max_body_bytes <= 0:
            raise InjTrackConfigError("max_body_bytes must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads ``INJTRACK_BASE_URL`` and optional ``INJTRACK_*`` variables.
        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "INJTRACK_BASE_URL": "base_url",
            "INJTRACK_SNAPSHOT_ENDPOINT": "snapshot_endpoint",
            "INJTRACK_STORAGE_DIR": "storage_dir",
        }
        _ENV_FLOAT_MAP = {
            "INJTRACK_PUSH_DEBOUNCE": "push_debounce",
            "INJTRACK_PULL_INTERVAL": "pull_interval",
            "INJTRACK_FAIL_COOLDOWN": "fail_cooldown",
            "INJTRACK_EVENT_SETTLE_DELAY": "event_settle_delay",
            "INJTRACK_REQUEST_TIMEOUT": "request_timeout",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise InjTrackConfigError(f"{env_key} must be a number, got {val!r}") from exc

        body_env = env.get("INJTRACK_MAX_BODY_BYTES")
        if body_env is not None and "max_body_bytes" not in overrides:
            try:
                config_kwargs["max_body_bytes"] = int(body_env)
            except ValueError as exc:
                raise InjTrackConfigError(f"INJTRACK_MAX_BODY_BYTES must be an integer, got {body_env!r}") from exc

        if "start_online" not in overrides:
            config_kwargs["start_online"] = _env_bool(env.get("INJTRACK_START_ONLINE"), True)

        config_kwargs.update(overrides)

        if "base_url" not in config_kwargs:
            raise InjTrackConfigError("INJTRACK_BASE_URL is not set")

        return cls(**config_kwargs)
