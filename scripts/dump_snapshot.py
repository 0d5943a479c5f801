#!/usr/bin/env python3
"""Dump the remote snapshot of one account and compare it with local state.

This script fetches the latest snapshot for an address, decodes each
series, and prints per-kind counts and time ranges next to the local
store, plus how many points a pull would add locally and a push would add
remotely.

Usage
-----
Set environment variables and run::

    export INJTRACK_BASE_URL="https://example.app/api"
    export INJTRACK_STORAGE_DIR="$HOME/.injtrack"   # optional
    python scripts/dump_snapshot.py inj1...

Options::

    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --verbose, -v        Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import aiohttp  # noqa: E402

from injtrack import MalformedRemoteDataError, SeriesKind, TrackerConfig  # noqa: E402
from injtrack._api.snapshot import fetch_snapshot  # noqa: E402
from injtrack._transport import HttpTransport  # noqa: E402
from injtrack.account import normalize_account  # noqa: E402
from injtrack.state.merge import merge_series  # noqa: E402
from injtrack.state.store import create_store  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _iso(ts: int | None) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts / 1000, tz=UTC).isoformat(timespec="seconds")


def _summary(points: list[Any]) -> dict[str, Any]:
    stamps = [p.ts for p in points]
    return {
        "count": len(points),
        "first": _iso(min(stamps)) if stamps else "-",
        "last": _iso(max(stamps)) if stamps else "-",
    }


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dump the remote snapshot for one account for debugging / development.",
    )
    parser.add_argument("address", help="Injective address (inj1...)")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = TrackerConfig.from_env()
    account = normalize_account(args.address)
    store = create_store(config.storage_dir)

    async with aiohttp.ClientSession() as http:
        snapshot = await fetch_snapshot(HttpTransport(config, http), config, account)

    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "account": account,
        "remote_stamp": _iso(snapshot.t) if snapshot is not None else None,
        "series": {},
    }
    out: list[str] = [_section("injtrack dump_snapshot")]
    out.append(f"  time      : {result['timestamp']}")
    out.append(f"  account   : {account}")
    out.append(f"  remote t  : {result['remote_stamp'] or 'no snapshot'}")

    for kind in SeriesKind:
        local = store.load(account, kind) or []
        error = None
        remote: list[Any] = []
        if snapshot is not None:
            try:
                remote = snapshot.decode(kind)
            except MalformedRemoteDataError as exc:
                error = str(exc)
        merged = merge_series(kind, local, remote)
        entry = {
            "local": _summary(local),
            "remote": _summary(remote),
            "pull_adds": len(merged) - len(local),
            "push_adds": len(merged) - len(remote),
            "error": error,
        }
        result["series"][kind.value] = entry

        out.append(_section(f"SERIES {kind.value}"))
        out.append(f"  local     : {entry['local']['count']} ({entry['local']['first']} .. {entry['local']['last']})")
        out.append(
            f"  remote    : {entry['remote']['count']} ({entry['remote']['first']} .. {entry['remote']['last']})"
        )
        out.append(f"  pull adds : {entry['pull_adds']}")
        out.append(f"  push adds : {entry['push_adds']}")
        if error:
            out.append(f"  error     : {error}")

    if args.json_mode:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
    else:
        text = "\n".join(out)
        if args.output:
            Path(args.output).write_text(text, encoding="utf-8")
            print(f"Output written to {args.output}")
        else:
            print(text)


if __name__ == "__main__":
    asyncio.run(main())
