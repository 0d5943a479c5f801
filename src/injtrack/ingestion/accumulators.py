"""Series accumulators.

Each accumulator turns one fresh observation into zero or one new point.
When a point is added the accumulator appends it, enforces the retention
bound, persists the kind, bumps the point counter and marks the kind
dirty. Scheduling the push is left to the caller.
"""

from __future__ import annotations

import logging
import math
import secrets
import time
from typing import Any

from injtrack import _constants as c
from injtrack.account import short_account
from injtrack.models.series import (
    EventPoint,
    EventStatus,
    NetWorthPoint,
    Point,
    SeriesKind,
    StakeMove,
    StakePoint,
    WithdrawalPoint,
)
from injtrack.state.session import AccountSession
from injtrack.state.store import SeriesStore

_logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _finite(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def commit_point(session: AccountSession, store: SeriesStore, kind: SeriesKind, point: Point) -> None:
    """Append, bound, persist and mark dirty."""
    session.append(kind, point)
    session.persist(store, kind)
    session.meta.bump(1)
    session.meta.mark_dirty(kind)
    session.persist_meta(store)


def record_stake(
    session: AccountSession,
    store: SeriesStore,
    balance: Any,
    *,
    now_ms: int | None = None,
) -> StakePoint | None:
    """Record a staked balance observation.

    The first observation of an account is stored as a baseline. Later
    observations are stored only when the balance rounded to six decimals
    changed.
    """
    value = _finite(balance)
    if value is None:
        return None
    rounded = round(value, c.STAKE_DECIMALS)
    ts = now_ms if now_ms is not None else _now_ms()

    if not session.series[SeriesKind.STAKE]:
        point = StakePoint(ts=ts, balance=rounded, move=StakeMove.INCREASE, cause=c.STAKE_CAUSE_BASELINE)
    else:
        last = session.last_stake_rounded
        if last is None or rounded == last:
            session.last_stake_rounded = rounded
            return None
        increased = rounded > last
        point = StakePoint(
            ts=ts,
            balance=rounded,
            move=StakeMove.INCREASE if increased else StakeMove.DECREASE,
            cause=c.STAKE_CAUSE_INCREASE if increased else c.STAKE_CAUSE_DECREASE,
        )

    session.last_stake_rounded = rounded
    commit_point(session, store, SeriesKind.STAKE, point)
    return point


def record_rewards(
    session: AccountSession,
    store: SeriesStore,
    unclaimed: Any,
    *,
    threshold: float = c.REWARD_WITHDRAW_THRESHOLD,
    now_ms: int | None = None,
) -> WithdrawalPoint | None:
    """Record a withdrawal when the unclaimed reward drops by more than *threshold*."""
    value = _finite(unclaimed)
    if value is None:
        return None
    previous = session.last_rewards_seen
    session.last_rewards_seen = value
    if previous is None:
        return None

    drop = previous - value
    if drop <= threshold:
        return None
    point = WithdrawalPoint(ts=now_ms if now_ms is not None else _now_ms(), amount=drop)
    commit_point(session, store, SeriesKind.WITHDRAWAL, point)
    return point


def record_net_worth(
    session: AccountSession,
    store: SeriesStore,
    *,
    available: Any,
    staked: Any,
    rewards: Any,
    price: Any,
    min_interval: float = c.NET_WORTH_MIN_INTERVAL_S,
    min_usd_delta: float = c.NET_WORTH_MIN_USD_DELTA,
    now_ms: int | None = None,
) -> NetWorthPoint | None:
    """Sample total holdings valued at *price*.

    After the first sample a new one is stored only when *min_interval*
    seconds passed since the last one and the USD value moved by at least
    *min_usd_delta*.
    """
    px = _finite(price)
    if px is None or px <= 0:
        return None
    quantity = sum(_finite(v) or 0.0 for v in (available, staked, rewards))
    usd = quantity * px
    if not math.isfinite(usd) or usd <= 0:
        return None

    now = now_ms if now_ms is not None else _now_ms()
    points: list[NetWorthPoint] = session.series[SeriesKind.NET_WORTH]
    if points:
        last = points[-1]
        last_at = max(session.last_net_worth_at, last.ts)
        if now - last_at < min_interval * 1000:
            return None
        if abs(usd - last.usd) < min_usd_delta:
            return None

    point = NetWorthPoint(ts=now, usd=usd, quantity=quantity)
    session.last_net_worth_at = now
    commit_point(session, store, SeriesKind.NET_WORTH, point)
    return point


def new_event_id(now_ms: int | None = None) -> str:
    return f"{now_ms if now_ms is not None else _now_ms()}_{secrets.token_hex(6)}"


def record_event(
    session: AccountSession,
    store: SeriesStore,
    *,
    kind: str = "info",
    title: str = "Event",
    detail: str = "",
    direction: str | None = None,
    status: EventStatus | str = EventStatus.PENDING,
    event_id: str | None = None,
    now_ms: int | None = None,
) -> EventPoint:
    """Prepend an activity event. A duplicate ``event_id`` is ignored."""
    ts = now_ms if now_ms is not None else _now_ms()
    if event_id is not None:
        for existing in session.series[SeriesKind.EVENTS]:
            if existing.id == event_id:
                return existing
    event = EventPoint(
        id=event_id or new_event_id(ts),
        ts=ts,
        kind=kind,
        title=title,
        detail=detail,
        direction=direction,
        status=EventStatus(status),
    )
    commit_point(session, store, SeriesKind.EVENTS, event)
    _logger.debug("Event %s [%s] %s for %s", event.id, event.kind, event.title, short_account(session.account))
    return event


def set_event_status(
    session: AccountSession,
    store: SeriesStore,
    event_id: str,
    status: EventStatus | str,
) -> bool:
    """Move an event to *status*. Returns whether anything changed."""
    target = EventStatus(status)
    events: list[EventPoint] = session.series[SeriesKind.EVENTS]
    for idx, event in enumerate(events):
        if event.id != event_id:
            continue
        if event.status == target:
            return False
        events[idx] = event.model_copy(update={"status": target})
        session.persist(store, SeriesKind.EVENTS)
        session.meta.mark_dirty(SeriesKind.EVENTS)
        session.persist_meta(store)
        return True
    return False


def clear_series(session: AccountSession, store: SeriesStore, *kinds: SeriesKind) -> None:
    """Empty the given series (all four when none given), persist and mark dirty."""
    targets = kinds or tuple(SeriesKind)
    for kind in targets:
        session.series[kind] = []
        session.meta.mark_dirty(kind)
    if SeriesKind.STAKE in targets:
        session.last_stake_rounded = None
    if SeriesKind.WITHDRAWAL in targets:
        session.last_rewards_seen = None
    if SeriesKind.NET_WORTH in targets:
        session.last_net_worth_at = 0
    session.persist(store, *targets)
    session.persist_meta(store)


def record_apr_change(
    session: AccountSession,
    store: SeriesStore,
    apr: Any,
    *,
    threshold: float = c.APR_EVENT_THRESHOLD,
    now_ms: int | None = None,
) -> EventPoint | None:
    """Emit an ``apr`` event when APR moved by at least *threshold* points."""
    value = _finite(apr)
    if value is None:
        return None
    previous = session.last_apr_seen
    if previous is None:
        session.last_apr_seen = value
        return None
    delta = value - previous
    if abs(delta) < threshold:
        return None
    session.last_apr_seen = value
    return record_event(
        session,
        store,
        kind="apr",
        title="APR increased" if delta > 0 else "APR decreased",
        detail=f"{'+' if delta > 0 else ''}{delta:.2f}% • Now {value:.2f}%",
        direction="up" if delta > 0 else "down",
        now_ms=now_ms,
    )
