"""Per-account local persistence of the four series and their sync meta.

Persistence never raises to the caller: a failed write is logged and the
next load of that document simply misses.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from injtrack._constants import META_LAYOUT_VERSION, STORE_LAYOUT_VERSION
from injtrack.account import short_account
from injtrack.models.meta import SyncMeta
from injtrack.models.series import MAX_LEN, POINT_MODELS, Point, SeriesKind

_logger = logging.getLogger(__name__)

_META_DOC = "meta"


class SeriesStore(Protocol):
    """Structural store interface used by the accumulators and the scheduler."""

    def load(self, account: str, kind: SeriesKind) -> list[Point] | None: ...

    def save(self, account: str, kind: SeriesKind, points: Sequence[Point]) -> None: ...

    def load_meta(self, account: str) -> SyncMeta | None: ...

    def save_meta(self, account: str, meta: SyncMeta) -> None: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dump_series(kind: SeriesKind, points: Sequence[Point]) -> str:
    bounded = list(points)
    if len(bounded) > MAX_LEN[kind]:
        # events are kept newest first, the timed series oldest first
        bounded = bounded[: MAX_LEN[kind]] if kind is SeriesKind.EVENTS else bounded[-MAX_LEN[kind] :]
    return json.dumps(
        {
            "v": STORE_LAYOUT_VERSION,
            "t": _now_ms(),
            "points": [p.model_dump(mode="json") for p in bounded],
        },
        separators=(",", ":"),
    )


def _parse_series(kind: SeriesKind, text: str) -> list[Point] | None:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(doc, dict) or doc.get("v") != STORE_LAYOUT_VERSION:
        return None
    raw_points = doc.get("points")
    if not isinstance(raw_points, list):
        return None
    model = POINT_MODELS[kind]
    try:
        return [model.model_validate(item) for item in raw_points]  # type: ignore[misc]
    except ValidationError:
        return None


def _dump_meta(meta: SyncMeta) -> str:
    return json.dumps({"v": META_LAYOUT_VERSION, **meta.model_dump(mode="json")}, separators=(",", ":"))


def _parse_meta(text: str) -> SyncMeta | None:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(doc, dict) or doc.pop("v", None) != META_LAYOUT_VERSION:
        return None
    try:
        return SyncMeta.model_validate(doc)
    except ValidationError:
        return None


class MemorySeriesStore:
    """In-process store holding serialized documents.

    Documents are stored as JSON text so a load never aliases the live
    series of a session.
    """

    def __init__(self) -> None:
        self._docs: dict[tuple[str, str], str] = {}

    def load(self, account: str, kind: SeriesKind) -> list[Point] | None:
        text = self._docs.get((account, kind.value))
        if text is None:
            return None
        return _parse_series(kind, text)

    def save(self, account: str, kind: SeriesKind, points: Sequence[Point]) -> None:
        self._docs[(account, kind.value)] = _dump_series(kind, points)

    def load_meta(self, account: str) -> SyncMeta | None:
        text = self._docs.get((account, _META_DOC))
        return _parse_meta(text) if text is not None else None

    def save_meta(self, account: str, meta: SyncMeta) -> None:
        self._docs[(account, _META_DOC)] = _dump_meta(meta)

    def accounts(self) -> set[str]:
        return {account for account, _ in self._docs}


class FileSeriesStore:
    """JSON-file store, one document per account and kind.

    Layout: ``<root>/<account>/<kind>.json`` plus ``meta.json``. Each
    document is written to a temp file and moved into place, so a single
    kind is never left half-written.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, account: str, name: str) -> Path:
        return self._root / account / f"{name}.json"

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError):
            _logger.warning("Could not read %s; treating as empty", path, exc_info=True)
            return None

    def _write(self, account: str, path: Path, text: str) -> None:
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError:
            _logger.warning(
                "Failed to persist %s for %s",
                path.name,
                short_account(account),
                exc_info=True,
            )
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    _logger.debug("Could not remove temp file %s", tmp_name)

    def load(self, account: str, kind: SeriesKind) -> list[Point] | None:
        text = self._read(self._path(account, kind.value))
        if text is None:
            return None
        points = _parse_series(kind, text)
        if points is None:
            _logger.debug("Discarding unreadable %s document for %s", kind.value, short_account(account))
        return points

    def save(self, account: str, kind: SeriesKind, points: Sequence[Point]) -> None:
        self._write(account, self._path(account, kind.value), _dump_series(kind, points))

    def load_meta(self, account: str) -> SyncMeta | None:
        text = self._read(self._path(account, _META_DOC))
        return _parse_meta(text) if text is not None else None

    def save_meta(self, account: str, meta: SyncMeta) -> None:
        self._write(account, self._path(account, _META_DOC), _dump_meta(meta))


def create_store(storage_dir: str | None) -> SeriesStore:
    """Return a file store for *storage_dir*, or a memory store when unset."""
    if storage_dir:
        return FileSeriesStore(storage_dir)
    return MemorySeriesStore()
