"""Deterministic union of a local and a remote replica of one series.

Local wins on a duplicate key: a remote echo can never overwrite a point
produced locally in the same session. Both functions are pure, idempotent
and return new lists.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

from injtrack.models.series import MAX_LEN, EventPoint, SeriesKind

P = TypeVar("P")


def merge_timeseries(local: Sequence[P], remote: Sequence[P], max_len: int) -> list[P]:
    """Union keyed by ``ts``, ascending, keeping the most recent *max_len*."""
    by_ts: dict[int, P] = {}
    for point in local:
        by_ts.setdefault(point.ts, point)  # type: ignore[attr-defined]
    for point in remote:
        by_ts.setdefault(point.ts, point)  # type: ignore[attr-defined]
    merged = [by_ts[ts] for ts in sorted(by_ts)]
    if len(merged) > max_len:
        merged = merged[len(merged) - max_len :]
    return merged


def merge_events(local: Sequence[EventPoint], remote: Sequence[EventPoint], max_len: int) -> list[EventPoint]:
    """Union keyed by ``id``, newest first, keeping the newest *max_len*."""
    by_id: dict[str, EventPoint] = {}
    for event in local:
        by_id.setdefault(event.id, event)
    for event in remote:
        by_id.setdefault(event.id, event)
    merged = sorted(by_id.values(), key=lambda ev: (-ev.ts, ev.id))
    return merged[:max_len]


def merge_series(kind: SeriesKind, local: Sequence[Any], remote: Sequence[Any]) -> list[Any]:
    if kind is SeriesKind.EVENTS:
        return merge_events(local, remote, MAX_LEN[kind])
    return merge_timeseries(local, remote, MAX_LEN[kind])


def merge_changed(before: Sequence[Any], after: Sequence[Any]) -> bool:
    """Whether a merge result differs from the series it started from."""
    return list(before) != list(after)
