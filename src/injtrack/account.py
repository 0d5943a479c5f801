"""Account identifier validation."""

from __future__ import annotations

import re

from injtrack._constants import ACCOUNT_PATTERN
from injtrack.exceptions import InvalidAccountIdError

_ACCOUNT_RE = re.compile(ACCOUNT_PATTERN, re.IGNORECASE)


def is_valid_account(value: object) -> bool:
    """Return ``True`` when *value* matches the address grammar."""
    return isinstance(value, str) and _ACCOUNT_RE.match(value.strip()) is not None


def normalize_account(value: object) -> str:
    """Validate and lower-case an account identifier.

    Raises
    ------
    InvalidAccountIdError
        When *value* is not a string matching ``inj`` + 20-80 alphanumerics.
    """
    if not isinstance(value, str) or _ACCOUNT_RE.match(value.strip()) is None:
        raise InvalidAccountIdError(f"Invalid account identifier: {str(value)[:96]!r}")
    return value.strip().lower()


def short_account(account: str | None) -> str:
    """Shorten an address for log lines."""
    if not account:
        return ""
    if len(account) <= 18:
        return account
    return f"{account[:10]}…{account[-6:]}"
