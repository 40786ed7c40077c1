#!/usr/bin/env python3
"""
Export the live API into a static JSON snapshot.

The snapshot is the fallback source used when the live API is down:

    matches.json
    matches/{id}.json
    matches/{id}_events.json

Usage:
    python scripts/export_static.py
    python scripts/export_static.py --live-url http://localhost:3000/api
    python scripts/export_static.py --output ../frontend/public/api --only-finished
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.env import load_env  # noqa: E402
from app.models import parse_matches  # noqa: E402
from app.settings import DEFAULT_STATIC_DIR, Settings  # noqa: E402
from app.sources import (  # noqa: E402
    FeedPaths,
    MatchFeed,
    RestTransport,
    SourceUnavailableError,
)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Write a static JSON snapshot of the live match API."
    )
    parser.add_argument(
        "--live-url",
        type=str,
        default=None,
        help="Live API base URL. Default: KRATOS_LIVE_API_URL / config.json.",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help=f"Output directory. Default: {DEFAULT_STATIC_DIR}",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds (default: 30).",
    )
    parser.add_argument(
        "--only-finished",
        action="store_true",
        help="Skip matches whose status is live.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List what would be exported without writing files.",
    )
    return parser.parse_args()


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)


def main() -> int:
    args = _parse_args()
    load_env()
    settings = Settings.from_env()

    live_url = args.live_url or settings.live_api_url
    if not live_url:
        print("❌ No live API URL. Set KRATOS_LIVE_API_URL or pass --live-url.")
        return 1

    output_dir = Path(args.output) if args.output else (settings.static_dir or DEFAULT_STATIC_DIR)
    feed = MatchFeed(
        RestTransport(live_url, timeout=args.timeout, tunnel_bypass=settings.tunnel_bypass),
        FeedPaths.live_from_env(),
    )

    try:
        payload = feed.fetch_matches()
    except SourceUnavailableError as exc:
        print(f"❌ Failed to fetch matches: {exc}")
        return 1

    matches = parse_matches(payload)
    if args.only_finished:
        matches = [match for match in matches if not match.is_live]

    print(f"Exporting {len(matches)} matches to {output_dir}")
    if args.dry_run:
        for match in matches:
            print(f"  • {match.id}: {match.team1_name} vs {match.team2_name} ({match.status or 'unknown'})")
        return 0

    start = time.perf_counter()
    exported = []
    failures = 0
    for index, match in enumerate(matches, start=1):
        if "/" in match.id or "\\" in match.id or match.id in (".", ".."):
            failures += 1
            print(f"[{index}/{len(matches)}] ❌ {match.id!r}: not usable as a file name")
            continue
        try:
            match_payload = feed.fetch_match(match.id)
            events_payload = feed.fetch_events(match.id)
        except SourceUnavailableError as exc:
            failures += 1
            print(f"[{index}/{len(matches)}] ❌ {match.id}: {exc}")
            continue

        _write_json(output_dir / "matches" / f"{match.id}.json", match_payload)
        _write_json(output_dir / "matches" / f"{match.id}_events.json", events_payload)
        exported.append(match.model_dump(mode="json", by_alias=True, exclude_none=True))
        events_count = len(events_payload) if isinstance(events_payload, list) else "?"
        print(f"[{index}/{len(matches)}] ✅ {match.id} ({events_count} events)")

    _write_json(output_dir / "matches.json", exported)
    print(
        f"Done. Exported={len(exported)} | failed={failures} | total_time={time.perf_counter() - start:.2f}s"
    )
    return 0 if failures == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
