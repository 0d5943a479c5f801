"""Constants shared across injtrack modules."""

from __future__ import annotations

USER_AGENT = "injtrack/0.1"

#: Address grammar: ``inj`` followed by 20-80 alphanumerics, case-insensitive.
ACCOUNT_PATTERN = r"^inj[a-z0-9]{20,80}$"

SNAPSHOT_ENDPOINT = "/snapshot"
SNAPSHOT_WIRE_VERSION = 2
MAX_BODY_BYTES = 950_000

# Local document layout versions, bumped whenever the stored shape changes.
STORE_LAYOUT_VERSION = 1
META_LAYOUT_VERSION = 2

STAKE_DECIMALS = 6
REWARD_WITHDRAW_THRESHOLD = 0.0002
NET_WORTH_MIN_INTERVAL_S = 2.5
NET_WORTH_MIN_USD_DELTA = 0.50
APR_EVENT_THRESHOLD = 0.05

PUSH_DEBOUNCE_S = 1.2
PULL_INTERVAL_S = 45.0
FAIL_COOLDOWN_S = 120.0
EVENT_SETTLE_DELAY_S = 1.5
REQUEST_TIMEOUT_S = 15.0

STAKE_CAUSE_DEFAULT = "Stake update"
STAKE_CAUSE_BASELINE = "Baseline (current)"
STAKE_CAUSE_INCREASE = "Delegate / Compound"
STAKE_CAUSE_DECREASE = "Undelegate"

#: Event kinds that never leave the ``pending`` status on their own.
UNSETTLED_EVENT_KINDS: frozenset[str] = frozenset({"price"})

NET_WORTH_WINDOWS_MS: dict[str, int | None] = {
    "live": 15 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
    "1w": 7 * 24 * 60 * 60 * 1000,
    "1m": 30 * 24 * 60 * 60 * 1000,
    "1y": 365 * 24 * 60 * 60 * 1000,
    "all": None,
}
