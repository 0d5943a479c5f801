"""Per-account sync bookkeeping."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from injtrack.models.series import SeriesKind


def _clean_flags() -> dict[SeriesKind, bool]:
    return {kind: False for kind in SeriesKind}


class SyncMeta(BaseModel):
    """Point counter, last sync time and dirty flags for one account.

    ``points`` only grows and is used for display. ``last_sync`` is the
    epoch-ms time of the last successful push or pull merge.
    """

    model_config = ConfigDict(extra="forbid")

    points: int = Field(default=0, ge=0)
    last_sync: int = 0
    dirty: dict[SeriesKind, bool] = Field(default_factory=_clean_flags)

    @property
    def is_dirty(self) -> bool:
        return any(self.dirty.values())

    def dirty_kinds(self) -> list[SeriesKind]:
        return [kind for kind in SeriesKind if self.dirty.get(kind)]

    def mark_dirty(self, kind: SeriesKind) -> None:
        self.dirty[kind] = True

    def clear_dirty(self) -> None:
        self.dirty = _clean_flags()

    def bump(self, points: int = 1) -> None:
        self.points += max(0, points)
