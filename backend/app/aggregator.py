from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Sequence, Tuple, Union

from app.models import (
    EVENT_TYPE_LABELS,
    PLACEHOLDER,
    DetailView,
    DisplayRow,
    Event,
    EventKind,
    EventRow,
    Facet,
    RoundMarker,
    StatSummary,
)

ALL = "all"

MapSelection = Union[int, str]


@dataclass(frozen=True)
class ViewState:
    """Current map and event-type selection for one match."""

    selected_map: MapSelection = ALL
    selected_type: str = ALL

    @classmethod
    def initial(cls, events: Iterable[Event]) -> "ViewState":
        maps = available_maps(events)
        return cls(selected_map=maps[0] if maps else ALL)

    def select_map(self, map_number: MapSelection) -> "ViewState":
        return replace(self, selected_map=map_number, selected_type=ALL)

    def select_type(self, event_type: str) -> "ViewState":
        return replace(self, selected_type=event_type)


def parse_map_selection(value: str) -> MapSelection:
    """Parse a map number or "all"; raises ValueError otherwise."""
    cleaned = value.strip().lower()
    if cleaned == ALL:
        return ALL
    return int(cleaned)


def format_event_type(event_type: str) -> str:
    kind = EventKind.parse(event_type)
    if kind is EventKind.UNKNOWN:
        return event_type
    return EVENT_TYPE_LABELS[kind]


def available_maps(events: Iterable[Event]) -> List[int]:
    return sorted({event.map_number for event in events if event.map_number is not None})


def map_filtered(events: Sequence[Event], selected_map: MapSelection) -> List[Event]:
    if selected_map == ALL:
        return list(events)
    return [event for event in events if event.map_number == selected_map]


def type_counts(events: Iterable[Event]) -> Dict[str, int]:
    # Counter keeps first-seen order, which is the facet order.
    return dict(Counter(event.event_type for event in events))


def type_filtered(events: Sequence[Event], selected_type: str) -> List[Event]:
    if selected_type == ALL:
        return list(events)
    return [event for event in events if event.event_type == selected_type]


def summary_stats(events: Iterable[Event]) -> StatSummary:
    kills = 0
    headshots = 0
    rounds_played = 0
    for event in events:
        rounds_played = max(rounds_played, event.round_number or 0)
        if event.kind is EventKind.KILL:
            kills += 1
            if event.is_headshot:
                headshots += 1

    headshot_rate = 0
    if kills > 0:
        # Divide before scaling so half cases round like the viewer does.
        headshot_rate = math.floor(headshots / kills * 100 + 0.5)

    return StatSummary(
        kills=kills,
        headshots=headshots,
        rounds_played=rounds_played,
        headshot_rate=headshot_rate,
    )


def resolve_display_names(event: Event) -> Tuple[str, str, str]:
    actor = event.actor or ""
    target = event.target or ""
    weapon = event.weapon or ""

    # Non-kill events carry their description in the free-text field.
    if not actor and not target and not weapon and event.log_text:
        weapon = event.log_text

    return actor or PLACEHOLDER, target or PLACEHOLDER, weapon or PLACEHOLDER


def _display_sort_key(event: Event) -> Tuple[int, int]:
    round_end_first = 0 if event.kind is EventKind.ROUND_END else 1
    return (-(event.round_number or 0), round_end_first)


def _event_row(event: Event) -> EventRow:
    actor, target, weapon = resolve_display_names(event)
    return EventRow(
        round_number=event.round_number or 0,
        event_type=event.event_type,
        label=format_event_type(event.event_type),
        actor=actor,
        target=target,
        weapon=weapon,
        modifiers=event.modifiers,
    )


def ordered_for_display(events: Iterable[Event]) -> List[DisplayRow]:
    """Order events by descending round with a marker row per round.

    ``round_end`` comes first inside a round; ties keep arrival order.
    Unassigned (round 0) events sort last and never get a marker.
    """
    rows: List[DisplayRow] = []
    last_round = -1
    for event in sorted(events, key=_display_sort_key):
        round_number = event.round_number or 0
        if round_number != last_round and round_number > 0:
            rows.append(RoundMarker(round_number=round_number))
            last_round = round_number
        rows.append(_event_row(event))
    return rows


class EventAggregator:
    """Derive presentation-ready views from one match's events."""

    def __init__(self, events: Sequence[Event]) -> None:
        self.events = tuple(events)

    def available_maps(self) -> List[int]:
        return available_maps(self.events)

    def initial_state(self) -> ViewState:
        return ViewState.initial(self.events)

    def view(self, state: ViewState) -> DetailView:
        map_events = map_filtered(self.events, state.selected_map)
        filtered = type_filtered(map_events, state.selected_type)
        facets = [
            Facet(event_type=event_type, label=format_event_type(event_type), count=count)
            for event_type, count in type_counts(map_events).items()
        ]
        return DetailView(
            maps=self.available_maps(),
            selected_map=state.selected_map,
            selected_type=state.selected_type,
            total_events=len(map_events),
            filtered_events=len(filtered),
            facets=facets,
            stats=summary_stats(map_events),
            rows=ordered_for_display(filtered),
        )
