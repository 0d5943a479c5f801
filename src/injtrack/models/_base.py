"""Base model and temporal key handling for series points.

Every point model inherits from :class:`InjBaseModel` which provides:

* frozen instances, so a series can be shared between the session, the
  merge engine and the store without copying.
* rejection of NaN/inf floats at construction time.

Temporal keys are normalised to integer epoch milliseconds by
:func:`parse_temporal_key`. Legacy snapshots carry string labels that are
either numeric millisecond strings or human date strings.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict

from injtrack.exceptions import InvalidTemporalKeyError

_NUMERIC_LABEL_RE = re.compile(r"^\d{10,13}$")


def _datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def parse_temporal_key(value: Any) -> int:
    """Map a timestamp or label to epoch milliseconds.

    * ``int``/``float`` values are taken as milliseconds.
    * strings of 10-13 digits are taken as milliseconds.
    * other strings are parsed as ISO-8601, then RFC 2822 dates.

    Raises
    ------
    InvalidTemporalKeyError
        When the value cannot be mapped to a positive timestamp.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidTemporalKeyError(f"Not a temporal key: {value!r}")
    if isinstance(value, datetime):
        return _datetime_to_ms(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidTemporalKeyError(f"Not a temporal key: {value!r}")
        key = int(value)
    elif isinstance(value, str):
        label = value.strip()
        if _NUMERIC_LABEL_RE.match(label):
            key = int(label)
        else:
            key = _parse_date_label(label)
    else:
        raise InvalidTemporalKeyError(f"Not a temporal key: {value!r}")
    if key <= 0:
        raise InvalidTemporalKeyError(f"Temporal key must be positive: {value!r}")
    return key


def _parse_date_label(label: str) -> int:
    if not label:
        raise InvalidTemporalKeyError("Empty temporal label")
    try:
        return _datetime_to_ms(datetime.fromisoformat(label.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _datetime_to_ms(parsedate_to_datetime(label))
    except (TypeError, ValueError, IndexError) as exc:
        raise InvalidTemporalKeyError(f"Unparseable temporal label: {label[:64]!r}") from exc


TemporalKey = Annotated[int, BeforeValidator(parse_temporal_key)]
"""Annotated type that coerces labels and timestamps to epoch milliseconds."""


class InjBaseModel(BaseModel):
    """Base for series point models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        allow_inf_nan=False,
    )
