"""Series kinds and point models."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator

from injtrack._constants import STAKE_CAUSE_DEFAULT
from injtrack.models._base import InjBaseModel, TemporalKey


class SeriesKind(enum.StrEnum):
    """The four synchronized series. Values double as wire keys."""

    STAKE = "stake"
    WITHDRAWAL = "wd"
    NET_WORTH = "nw"
    EVENTS = "events"


#: Retention bound per kind. Oldest points are dropped first.
MAX_LEN: dict[SeriesKind, int] = {
    SeriesKind.STAKE: 2400,
    SeriesKind.WITHDRAWAL: 2400,
    SeriesKind.NET_WORTH: 4800,
    SeriesKind.EVENTS: 1200,
}


class StakeMove(enum.IntEnum):
    """Direction of a stake change."""

    DECREASE = -1
    NONE = 0
    INCREASE = 1

    @classmethod
    def _missing_(cls, value: object) -> StakeMove:
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.NONE
        if number > 0:
            return cls.INCREASE
        if number < 0:
            return cls.DECREASE
        return cls.NONE


class EventStatus(enum.StrEnum):
    """Lifecycle of an activity event."""

    PENDING = "pending"
    OK = "ok"
    ERR = "err"

    @classmethod
    def _missing_(cls, value: object) -> EventStatus | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        if normalized in {"fail", "failed", "error"}:
            return cls.ERR
        if normalized in {"success", "done"}:
            return cls.OK
        for member in cls:
            if member.value == normalized:
                return member
        return None


class StakePoint(InjBaseModel):
    ts: TemporalKey
    balance: float
    move: StakeMove = StakeMove.NONE
    cause: str = STAKE_CAUSE_DEFAULT

    @field_validator("cause", mode="before")
    @classmethod
    def _default_cause(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return STAKE_CAUSE_DEFAULT
        return value


class WithdrawalPoint(InjBaseModel):
    ts: TemporalKey
    amount: float


class NetWorthPoint(InjBaseModel):
    ts: TemporalKey
    usd: float
    quantity: float


class EventPoint(InjBaseModel):
    """A discrete activity record, identified by ``id`` rather than by time."""

    id: str = Field(min_length=1)
    ts: TemporalKey
    kind: str = "info"
    title: str = "Event"
    detail: str = ""
    direction: str | None = Field(default=None, alias="dir")
    status: EventStatus = EventStatus.PENDING

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if value is None:
            return EventStatus.PENDING
        try:
            return EventStatus(value)
        except ValueError:
            return EventStatus.PENDING

    @field_validator("kind", "title", "detail", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


TimedPoint = StakePoint | WithdrawalPoint | NetWorthPoint
Point = StakePoint | WithdrawalPoint | NetWorthPoint | EventPoint

POINT_MODELS: dict[SeriesKind, type[InjBaseModel]] = {
    SeriesKind.STAKE: StakePoint,
    SeriesKind.WITHDRAWAL: WithdrawalPoint,
    SeriesKind.NET_WORTH: NetWorthPoint,
    SeriesKind.EVENTS: EventPoint,
}
