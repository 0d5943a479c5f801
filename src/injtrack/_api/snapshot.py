"""Snapshot store endpoint: fetch the latest snapshot and upload a new one."""

from __future__ import annotations

import json
import logging
from typing import Any

from injtrack._redact import redact_for_log
from injtrack._transport import SnapshotTransport
from injtrack.account import normalize_account, short_account
from injtrack.config import TrackerConfig
from injtrack.exceptions import MalformedRemoteDataError, PayloadTooLargeError, RemoteRejectedError
from injtrack.models.snapshot import SnapshotPayload

_logger = logging.getLogger(__name__)


def _raise_if_rejected(endpoint: str, response: dict[str, Any]) -> None:
    if response.get("ok") is True:
        return
    error = str(response.get("error", "") or "")
    raise RemoteRejectedError(
        f"{endpoint} rejected the request: {error or 'ok=false'}",
        endpoint=endpoint,
        error=error,
    )


def encode_upload_body(account: str, payload: SnapshotPayload, *, max_body_bytes: int) -> bytes:
    """Serialize the upload body, rejecting oversized snapshots."""
    body = json.dumps({"address": account, **payload.to_wire()}, separators=(",", ":")).encode("utf-8")
    if len(body) > max_body_bytes:
        raise PayloadTooLargeError(
            f"Snapshot for {short_account(account)} is {len(body)} bytes (limit {max_body_bytes})",
            size=len(body),
            limit=max_body_bytes,
        )
    return body


async def fetch_snapshot(
    transport: SnapshotTransport,
    config: TrackerConfig,
    account: str,
) -> SnapshotPayload | None:
    """Fetch the latest snapshot for *account*.

    Returns ``None`` when the store has no snapshot yet.

    Raises
    ------
    InvalidAccountIdError
        Before any network call, for a malformed account.
    NetworkFailureError, RemoteRejectedError, MalformedRemoteDataError
    """
    address = normalize_account(account)
    endpoint = config.snapshot_endpoint
    response = await transport.get_json(endpoint, {"address": address})
    _raise_if_rejected(endpoint, response)

    data = response.get("data")
    if data is None:
        _logger.debug("No remote snapshot yet for %s", short_account(address))
        return None
    if not isinstance(data, dict):
        raise MalformedRemoteDataError(f"{endpoint} returned non-object data for {short_account(address)}")
    return SnapshotPayload.parse(data)


async def upload_snapshot(
    transport: SnapshotTransport,
    config: TrackerConfig,
    account: str,
    payload: SnapshotPayload,
) -> int:
    """Upload *payload* as the latest snapshot for *account*.

    Returns the store's ``meta.uploadedAt`` (``0`` when not reported).

    Raises
    ------
    InvalidAccountIdError, PayloadTooLargeError
        Before any network call.
    NetworkFailureError, RemoteRejectedError
    """
    address = normalize_account(account)
    endpoint = config.snapshot_endpoint
    body = encode_upload_body(address, payload, max_body_bytes=config.max_body_bytes)

    response = await transport.post_json(endpoint, {"address": address}, body)
    _raise_if_rejected(endpoint, response)
    _logger.debug("Upload response: %s", redact_for_log(response))

    meta = response.get("meta")
    uploaded_at = meta.get("uploadedAt") if isinstance(meta, dict) else None
    if isinstance(uploaded_at, (int, float)) and not isinstance(uploaded_at, bool):
        return int(uploaded_at)
    return 0
