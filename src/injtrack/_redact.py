"""Helpers for compact, privacy-preserving debug logging.

Snapshot bodies carry full account histories and the account address.
This module shortens addresses and summarizes long series before they
reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from injtrack.account import short_account

_ADDRESS_KEYS: frozenset[str] = frozenset({"address", "account"})


def redact_for_log(value: Any, *, max_string: int = 256, max_items: int = 8, _depth: int = 0) -> Any:
    """Return a shortened copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _ADDRESS_KEYS and isinstance(v, str):
                redacted[key] = short_account(v)
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        if len(value) > max_items:
            return f"<list:{len(value)} items>"
        return [redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1) for v in value]

    return repr(value)
