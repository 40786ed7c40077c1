"""Print a match's event log to the terminal."""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.aggregator import ALL, EventAggregator, MapSelection, parse_map_selection  # noqa: E402
from app.env import load_env  # noqa: E402
from app.models import EventRow  # noqa: E402
from app.service import MatchViewerService  # noqa: E402
from app.settings import Settings  # noqa: E402
from app.sources import MatchNotFoundError  # noqa: E402


def _map_arg(value: str) -> MapSelection:
    try:
        return parse_map_selection(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a map number or 'all', got {value!r}")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Show the event log of one match.")
    parser.add_argument("match_id", help="Match identifier")
    parser.add_argument("--map", type=_map_arg, default=None, help="Map number or 'all' (default: first map)")
    parser.add_argument("--type", default=ALL, help="Event type filter (default: all)")
    return parser.parse_args()


async def main() -> int:
    args = _parse_args()
    load_env()
    service = MatchViewerService.from_settings(Settings.from_env())

    try:
        detail = await service.get_match_detail(args.match_id)
    except MatchNotFoundError as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        await service.close()

    aggregator = EventAggregator(detail.events)
    state = aggregator.initial_state()
    if args.map is not None:
        state = state.select_map(args.map)
    state = state.select_type(args.type)
    view = aggregator.view(state)

    match = detail.match
    live = "LIVE" if match.is_live else "FINISHED"
    print(f"{match.team1_name} vs {match.team2_name}  [{live}]  (source: {detail.source})")
    print("=" * 80)
    print(f"Maps: {', '.join(str(m) for m in view.maps) or 'none'} | showing: {view.selected_map}")
    stats = view.stats
    print(
        f"Kills: {stats.kills} | Headshots: {stats.headshots} | "
        f"Rounds: {stats.rounds_played} | HS Rate: {stats.headshot_rate}%"
    )
    facets = ", ".join(f"{facet.label} ({facet.count})" for facet in view.facets)
    print(f"All ({view.total_events}) {facets}")
    print("-" * 80)

    if not view.rows:
        print("No events")
    for row in view.rows:
        if not isinstance(row, EventRow):
            print(f"── Round {row.round_number} ──")
            continue
        mods = " ".join(modifier.value for modifier in row.modifiers)
        round_label = row.round_number or "—"
        print(
            f"{round_label:>4} | {row.label:<12} | {row.actor:<20} | {row.target:<20} | {row.weapon:<16} | {mods}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
