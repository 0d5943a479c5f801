"""injtrack - Async multi-series portfolio tracker for Injective accounts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("injtrack")
except PackageNotFoundError:
    __version__ = "0+local"
from injtrack.client import Tracker
from injtrack.config import TrackerConfig
from injtrack.exceptions import (
    InjTrackConfigError,
    InjTrackError,
    InvalidAccountIdError,
    InvalidTemporalKeyError,
    MalformedRemoteDataError,
    NetworkFailureError,
    PayloadTooLargeError,
    RemoteRejectedError,
)
from injtrack.models import (
    MAX_LEN,
    EventPoint,
    EventStatus,
    NetWorthPoint,
    SeriesKind,
    SnapshotPayload,
    StakeMove,
    StakePoint,
    SyncMeta,
    WithdrawalPoint,
)
from injtrack.state.session import AccountSession
from injtrack.state.store import FileSeriesStore, MemorySeriesStore, SeriesStore
from injtrack.sync import SyncOutcome, SyncScheduler, SyncState

__all__ = [
    "__version__",
    "AccountSession",
    "EventPoint",
    "EventStatus",
    "FileSeriesStore",
    "InjTrackConfigError",
    "InjTrackError",
    "InvalidAccountIdError",
    "InvalidTemporalKeyError",
    "MAX_LEN",
    "MalformedRemoteDataError",
    "MemorySeriesStore",
    "NetWorthPoint",
    "NetworkFailureError",
    "PayloadTooLargeError",
    "RemoteRejectedError",
    "SeriesKind",
    "SeriesStore",
    "SnapshotPayload",
    "StakeMove",
    "StakePoint",
    "SyncMeta",
    "SyncOutcome",
    "SyncScheduler",
    "SyncState",
    "Tracker",
    "TrackerConfig",
    "WithdrawalPoint",
]
