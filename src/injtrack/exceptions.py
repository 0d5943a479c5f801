"""Custom exception hierarchy for injtrack."""

from __future__ import annotations


class InjTrackError(Exception):
    """Base exception for all injtrack errors."""


class InjTrackConfigError(InjTrackError):
    """Invalid or missing configuration."""


class InvalidAccountIdError(InjTrackError, ValueError):
    """Account identifier does not match the address grammar.

    Raised before any network call is attempted.
    """


class InvalidTemporalKeyError(InjTrackError, ValueError):
    """A series label could not be mapped to a millisecond timestamp."""


class PayloadTooLargeError(InjTrackError):
    """Serialized snapshot exceeds the upload size bound."""

    def __init__(self, message: str, *, size: int = 0, limit: int = 0) -> None:
        self.size = size
        self.limit = limit
        super().__init__(message)


class NetworkFailureError(InjTrackError):
    """HTTP-level failure (network, timeout, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RemoteRejectedError(InjTrackError):
    """The snapshot store answered with ``ok: false``."""

    def __init__(self, message: str, *, endpoint: str = "", error: str = "") -> None:
        self.endpoint = endpoint
        self.error = error
        super().__init__(message)


class MalformedRemoteDataError(InjTrackError):
    """A response parsed as JSON but does not have the expected shape.

    The scheduler treats the affected series as empty for that pull.
    """
