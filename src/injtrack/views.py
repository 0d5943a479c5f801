"""Read-only views derived from the series."""

from __future__ import annotations

from collections.abc import Iterable

from injtrack._constants import NET_WORTH_WINDOWS_MS
from injtrack.models.series import NetWorthPoint, WithdrawalPoint


def filter_withdrawals(points: Iterable[WithdrawalPoint], min_amount: float = 0.0) -> list[WithdrawalPoint]:
    return [p for p in points if p.amount >= min_amount]


def total_withdrawn(points: Iterable[WithdrawalPoint]) -> float:
    return sum(p.amount for p in points)


def net_worth_window(points: Iterable[NetWorthPoint], timeframe: str, now_ms: int) -> list[NetWorthPoint]:
    """Net-worth samples inside *timeframe* ending at *now_ms*.

    Timeframes: ``live`` (15 minutes), ``1d``, ``1w``, ``1m``, ``1y`` and
    ``all``. Unknown names fall back to one day. Samples with a
    non-positive USD value are skipped.
    """
    window = NET_WORTH_WINDOWS_MS.get(timeframe, NET_WORTH_WINDOWS_MS["1d"])
    start = 0 if window is None else now_ms - window
    return [p for p in points if p.ts >= start and p.usd > 0]
