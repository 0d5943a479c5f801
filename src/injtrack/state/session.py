"""The per-account session: series, sync meta and accumulator memory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from injtrack._constants import STAKE_DECIMALS
from injtrack.account import normalize_account, short_account
from injtrack.models.meta import SyncMeta
from injtrack.models.series import MAX_LEN, Point, SeriesKind, StakePoint
from injtrack.state.store import SeriesStore

_logger = logging.getLogger(__name__)


def _empty_series() -> dict[SeriesKind, list[Any]]:
    return {kind: [] for kind in SeriesKind}


@dataclass
class AccountSession:
    """All mutable state belonging to one account.

    Accumulators, the merge path and the scheduler receive the session
    explicitly. ``generation`` identifies the session; network results
    issued under another generation are discarded.
    """

    account: str
    generation: int = 0
    series: dict[SeriesKind, list[Any]] = field(default_factory=_empty_series)
    meta: SyncMeta = field(default_factory=SyncMeta)

    # Accumulator memory. Not persisted: a fresh session starts priming again.
    last_stake_rounded: float | None = None
    last_rewards_seen: float | None = None
    last_net_worth_at: int = 0
    last_apr_seen: float | None = None

    @classmethod
    def open(cls, account: str, store: SeriesStore, *, generation: int = 0) -> AccountSession:
        """Create a session for *account* and load its persisted state."""
        session = cls(account=normalize_account(account), generation=generation)
        for kind in SeriesKind:
            loaded = store.load(session.account, kind)
            if loaded:
                session.series[kind] = list(loaded)
        meta = store.load_meta(session.account)
        if meta is not None:
            session.meta = meta
        session.refresh_memory()
        _logger.debug(
            "Opened session gen=%d for %s (%s)",
            generation,
            short_account(session.account),
            ", ".join(f"{kind.value}={len(points)}" for kind, points in session.series.items()),
        )
        return session

    def get(self, kind: SeriesKind) -> list[Any]:
        return self.series[kind]

    def replace(self, kind: SeriesKind, points: list[Point]) -> None:
        self.series[kind] = points
        if kind is SeriesKind.STAKE:
            self.refresh_memory()

    def append(self, kind: SeriesKind, point: Point) -> None:
        """Add *point* at the live end of the series and enforce the bound."""
        points = self.series[kind]
        if kind is SeriesKind.EVENTS:
            points.insert(0, point)
            del points[MAX_LEN[kind] :]
        else:
            points.append(point)
            if len(points) > MAX_LEN[kind]:
                del points[: len(points) - MAX_LEN[kind]]

    def refresh_memory(self) -> None:
        """Re-derive the last recorded stake from the stake series."""
        stake: list[StakePoint] = self.series[SeriesKind.STAKE]
        self.last_stake_rounded = round(stake[-1].balance, STAKE_DECIMALS) if stake else None

    def clear(self) -> None:
        """Drop every series and the accumulator memory (not the meta)."""
        self.series = _empty_series()
        self.last_stake_rounded = None
        self.last_rewards_seen = None
        self.last_net_worth_at = 0
        self.last_apr_seen = None

    def persist(self, store: SeriesStore, *kinds: SeriesKind) -> None:
        for kind in kinds or tuple(SeriesKind):
            store.save(self.account, kind, self.series[kind])

    def persist_meta(self, store: SeriesStore) -> None:
        store.save_meta(self.account, self.meta)

    def snapshot(self) -> dict[SeriesKind, list[Any]]:
        """Shallow copy of the four series; points themselves are immutable."""
        return {kind: list(points) for kind, points in self.series.items()}
