"""Wire payload exchanged with the snapshot store.

On the wire every series is a set of parallel arrays::

    {
      "v": 2, "t": 1767225600000,
      "stake": {"labels": [...], "data": [...], "moves": [...], "types": [...]},
      "wd": {"labels": [...], "values": [...], "times": [...]},
      "nw": {"times": [...], "usd": [...], "inj": [...]},
      "events": [{"id": ..., "ts": ..., "kind": ..., ...}]
    }

In memory the series are lists of point models. Each kind decodes
independently: a malformed kind raises :class:`MalformedRemoteDataError`
for that kind only, and individual points whose temporal key cannot be
parsed are dropped.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from injtrack._constants import SNAPSHOT_WIRE_VERSION
from injtrack.exceptions import MalformedRemoteDataError
from injtrack.models.series import (
    MAX_LEN,
    EventPoint,
    NetWorthPoint,
    Point,
    SeriesKind,
    StakeMove,
    StakePoint,
    WithdrawalPoint,
)

_logger = logging.getLogger(__name__)


def _equal_lengths(name: str, arrays: Mapping[str, Sequence[Any] | None]) -> None:
    lengths = {key: len(arr) for key, arr in arrays.items() if arr is not None}
    if len(set(lengths.values())) > 1:
        raise ValueError(f"{name} arrays differ in length: {lengths}")


class _StakeWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    labels: list[Any]
    data: list[Any]
    moves: list[Any] | None = None
    types: list[Any] | None = None

    @model_validator(mode="after")
    def _check_lengths(self) -> _StakeWire:
        _equal_lengths(
            "stake",
            {"labels": self.labels, "data": self.data, "moves": self.moves, "types": self.types},
        )
        return self


class _WithdrawalWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    values: list[Any]
    labels: list[Any] | None = None
    times: list[Any] | None = None

    @model_validator(mode="after")
    def _check_lengths(self) -> _WithdrawalWire:
        if self.labels is None and self.times is None:
            raise ValueError("wd needs labels or times")
        _equal_lengths("wd", {"values": self.values, "labels": self.labels, "times": self.times})
        return self


class _NetWorthWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    times: list[Any]
    usd: list[Any]
    inj: list[Any]

    @model_validator(mode="after")
    def _check_lengths(self) -> _NetWorthWire:
        _equal_lengths("nw", {"times": self.times, "usd": self.usd, "inj": self.inj})
        return self


def _build_points(
    kind: SeriesKind,
    rows: Sequence[dict[str, Any]],
    factory: Callable[[dict[str, Any]], Any],
) -> list[Point]:
    points: list[Point] = []
    dropped = 0
    for row in rows:
        try:
            points.append(factory(row))
        except (ValidationError, ValueError, TypeError):
            dropped += 1
    if dropped:
        _logger.debug("Dropped %d unparseable %s point(s) from remote snapshot", dropped, kind.value)
    return points


def _decode_stake(raw: Any) -> list[Point]:
    wire = _StakeWire.model_validate(raw)
    rows = []
    for i, label in enumerate(wire.labels):
        row: dict[str, Any] = {"ts": label, "balance": wire.data[i]}
        if wire.moves is not None:
            row["move"] = StakeMove(wire.moves[i])
        if wire.types is not None:
            row["cause"] = wire.types[i]
        rows.append(row)
    return _build_points(SeriesKind.STAKE, rows, StakePoint.model_validate)


def _decode_withdrawals(raw: Any) -> list[Point]:
    wire = _WithdrawalWire.model_validate(raw)
    rows = []
    for i, value in enumerate(wire.values):
        ts = wire.times[i] if wire.times is not None else None
        if not ts and wire.labels is not None:
            ts = wire.labels[i]
        rows.append({"ts": ts, "amount": value})
    return _build_points(SeriesKind.WITHDRAWAL, rows, WithdrawalPoint.model_validate)


def _decode_net_worth(raw: Any) -> list[Point]:
    wire = _NetWorthWire.model_validate(raw)
    rows = [{"ts": t, "usd": wire.usd[i], "quantity": wire.inj[i]} for i, t in enumerate(wire.times)]
    return _build_points(SeriesKind.NET_WORTH, rows, NetWorthPoint.model_validate)


def _decode_events(raw: Any) -> list[Point]:
    if not isinstance(raw, list):
        raise ValueError("events must be a list")
    rows = [item for item in raw if isinstance(item, dict)]
    return _build_points(SeriesKind.EVENTS, rows, EventPoint.model_validate)


_DECODERS: dict[SeriesKind, Callable[[Any], list[Point]]] = {
    SeriesKind.STAKE: _decode_stake,
    SeriesKind.WITHDRAWAL: _decode_withdrawals,
    SeriesKind.NET_WORTH: _decode_net_worth,
    SeriesKind.EVENTS: _decode_events,
}


def _encode(kind: SeriesKind, points: Sequence[Any]) -> Any:
    bounded = list(points)
    if len(bounded) > MAX_LEN[kind]:
        bounded = bounded[:MAX_LEN[kind]] if kind is SeriesKind.EVENTS else bounded[-MAX_LEN[kind]:]
    if kind is SeriesKind.STAKE:
        return {
            "labels": [str(p.ts) for p in bounded],
            "data": [p.balance for p in bounded],
            "moves": [int(p.move) for p in bounded],
            "types": [p.cause for p in bounded],
        }
    if kind is SeriesKind.WITHDRAWAL:
        return {
            "labels": [str(p.ts) for p in bounded],
            "values": [p.amount for p in bounded],
            "times": [p.ts for p in bounded],
        }
    if kind is SeriesKind.NET_WORTH:
        return {
            "times": [p.ts for p in bounded],
            "usd": [p.usd for p in bounded],
            "inj": [p.quantity for p in bounded],
        }
    return [p.model_dump(mode="json", by_alias=True) for p in bounded]


class SnapshotPayload(BaseModel):
    """The four-series document stored remotely for one account."""

    model_config = ConfigDict(extra="ignore")

    v: int = SNAPSHOT_WIRE_VERSION
    t: int = 0
    stake: Any = None
    wd: Any = None
    nw: Any = None
    events: Any = None

    @classmethod
    def from_series(cls, series: Mapping[SeriesKind, Sequence[Any]], *, now_ms: int | None = None) -> SnapshotPayload:
        """Encode in-memory series into parallel-array wire form."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        wire = {kind.value: _encode(kind, series.get(kind, ())) for kind in SeriesKind}
        return cls(v=SNAPSHOT_WIRE_VERSION, t=now_ms, **wire)

    @classmethod
    def parse(cls, data: Any) -> SnapshotPayload:
        """Validate the top-level document shape."""
        if not isinstance(data, dict):
            raise MalformedRemoteDataError(f"Snapshot data must be an object, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedRemoteDataError(f"Snapshot header invalid: {exc.error_count()} error(s)") from exc

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def decode(self, kind: SeriesKind) -> list[Point]:
        """Decode one kind into point models.

        A missing section decodes as an empty series.

        Raises
        ------
        MalformedRemoteDataError
            When the section exists but fails shape validation.
        """
        raw = getattr(self, kind.value)
        if raw is None:
            return []
        try:
            return _DECODERS[kind](raw)
        except (ValidationError, ValueError, TypeError) as exc:
            raise MalformedRemoteDataError(f"Remote {kind.value} series is malformed") from exc
