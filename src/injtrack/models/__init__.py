"""Data models for series points, sync bookkeeping and the wire payload."""

from injtrack.models._base import InjBaseModel, TemporalKey, parse_temporal_key
from injtrack.models.meta import SyncMeta
from injtrack.models.series import (
    MAX_LEN,
    POINT_MODELS,
    EventPoint,
    EventStatus,
    NetWorthPoint,
    Point,
    SeriesKind,
    StakeMove,
    StakePoint,
    TimedPoint,
    WithdrawalPoint,
)
from injtrack.models.snapshot import SnapshotPayload

__all__ = [
    "EventPoint",
    "EventStatus",
    "InjBaseModel",
    "MAX_LEN",
    "NetWorthPoint",
    "POINT_MODELS",
    "Point",
    "SeriesKind",
    "SnapshotPayload",
    "StakeMove",
    "StakePoint",
    "SyncMeta",
    "TemporalKey",
    "TimedPoint",
    "WithdrawalPoint",
    "parse_temporal_key",
]
