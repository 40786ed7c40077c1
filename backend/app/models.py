from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"
TEAM1_PLACEHOLDER = "Team 1"
TEAM2_PLACEHOLDER = "Team 2"


def normalize_match_id(value: Any) -> str:
    """String identity key for a match id, whatever the source sent."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _coerce_text(value: Any) -> Optional[str]:
    # Feeds sometimes send numeric names; keep them as text.
    if value is None or isinstance(value, str):
        return value
    return str(value)


class EventKind(str, Enum):
    KILL = "kill"
    SUICIDE = "suicide"
    BOMB_PLANT = "bomb_plant"
    BOMB_DEFUSE = "bomb_defuse"
    ROUND_START = "round_start"
    ROUND_END = "round_end"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "EventKind":
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


EVENT_TYPE_LABELS: Dict[EventKind, str] = {
    EventKind.KILL: "Kill",
    EventKind.SUICIDE: "Suicide",
    EventKind.BOMB_PLANT: "Plant",
    EventKind.BOMB_DEFUSE: "Defuse",
    EventKind.ROUND_START: "Round Start",
    EventKind.ROUND_END: "Round End",
}


class Modifier(str, Enum):
    HEADSHOT = "HS"
    WALLBANG = "WB"
    THROUGH_SMOKE = "S"
    NO_SCOPE = "NS"
    BLIND_KILL = "F"


class Winner(str, Enum):
    TEAM1 = "team1"
    TEAM2 = "team2"
    NONE = "none"


class MapResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    map_number: int = Field(..., alias="mapNumber")
    team1_score: int = Field(0, alias="team1Score")
    team2_score: int = Field(0, alias="team2Score")
    winner: Winner = Winner.NONE

    @field_validator("team1_score", "team2_score", mode="before")
    @classmethod
    def _null_score(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("winner", mode="before")
    @classmethod
    def _coerce_winner(cls, value: Any) -> Winner:
        try:
            return Winner(str(value).strip().lower())
        except ValueError:
            return Winner.NONE


class Match(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: str
    team1: Optional[str] = None
    team2: Optional[str] = None
    status: Optional[str] = None
    team1_score: Optional[int] = Field(None, alias="team1Score")
    team2_score: Optional[int] = Field(None, alias="team2Score")
    maps: List[MapResult] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        if value is None or isinstance(value, (bool, dict, list)):
            raise ValueError("match id must be a string or number")
        return normalize_match_id(value)

    @field_validator("team1", "team2", "status", mode="before")
    @classmethod
    def _text_field(cls, value: Any) -> Any:
        return _coerce_text(value)

    @field_validator("maps", mode="before")
    @classmethod
    def _null_maps(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_live(self) -> bool:
        return (self.status or "").strip().lower() == "live"

    @property
    def team1_name(self) -> str:
        return self.team1 or TEAM1_PLACEHOLDER

    @property
    def team2_name(self) -> str:
        return self.team2 or TEAM2_PLACEHOLDER

    @property
    def series_score(self) -> Optional[Tuple[int, int]]:
        if self.team1_score is None or self.team2_score is None:
            return None
        return (self.team1_score, self.team2_score)


class Event(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    map_number: Optional[int] = Field(None, alias="mapNumber")
    round_number: int = Field(0, alias="roundNumber")
    event_type: str = Field("", alias="eventType")
    actor: Optional[str] = Field(None, alias="killerName")
    target: Optional[str] = Field(None, alias="victimName")
    weapon: Optional[str] = None
    log_text: Optional[str] = Field(None, alias="logText")
    is_headshot: bool = Field(False, alias="isHeadshot")
    is_wallbang: bool = Field(False, alias="isWallbang")
    is_through_smoke: bool = Field(False, alias="isThroughSmoke")
    is_no_scope: bool = Field(False, alias="isNoScope")
    is_blind_kill: bool = Field(False, alias="isBlindKill")

    @field_validator("round_number", mode="before")
    @classmethod
    def _null_round(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("event_type", mode="before")
    @classmethod
    def _null_type(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator("actor", "target", "weapon", "log_text", mode="before")
    @classmethod
    def _text_field(cls, value: Any) -> Any:
        return _coerce_text(value)

    @field_validator(
        "is_headshot",
        "is_wallbang",
        "is_through_smoke",
        "is_no_scope",
        "is_blind_kill",
        mode="before",
    )
    @classmethod
    def _truthy_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def kind(self) -> EventKind:
        return EventKind.parse(self.event_type)

    @property
    def modifiers(self) -> List[Modifier]:
        flags = (
            (self.is_headshot, Modifier.HEADSHOT),
            (self.is_wallbang, Modifier.WALLBANG),
            (self.is_through_smoke, Modifier.THROUGH_SMOKE),
            (self.is_no_scope, Modifier.NO_SCOPE),
            (self.is_blind_kill, Modifier.BLIND_KILL),
        )
        return [modifier for enabled, modifier in flags if enabled]


class StatSummary(BaseModel):
    kills: int
    headshots: int
    rounds_played: int
    headshot_rate: int


class Facet(BaseModel):
    event_type: str
    label: str
    count: int


class RoundMarker(BaseModel):
    row_type: Literal["round"] = "round"
    round_number: int


class EventRow(BaseModel):
    row_type: Literal["event"] = "event"
    round_number: int
    event_type: str
    label: str
    actor: str
    target: str
    weapon: str
    modifiers: List[Modifier] = Field(default_factory=list)


DisplayRow = Annotated[Union[RoundMarker, EventRow], Field(discriminator="row_type")]


class DetailView(BaseModel):
    maps: List[int]
    selected_map: Union[int, Literal["all"]]
    selected_type: str
    total_events: int
    filtered_events: int
    facets: List[Facet]
    stats: StatSummary
    rows: List[DisplayRow]


class MatchSummary(BaseModel):
    id: str
    team1: str
    team2: str
    status: Optional[str] = None
    is_live: bool
    series_score: Optional[Tuple[int, int]] = None
    maps: List[MapResult] = Field(default_factory=list)
    source: Literal["live", "static"]

    @classmethod
    def from_match(cls, match: Match, source: str) -> "MatchSummary":
        return cls(
            id=match.id,
            team1=match.team1_name,
            team2=match.team2_name,
            status=match.status,
            is_live=match.is_live,
            series_score=match.series_score,
            maps=match.maps,
            source=source,
        )


class MatchListResponse(BaseModel):
    count: int
    matches: List[MatchSummary]


class MatchDetailResponse(BaseModel):
    match: MatchSummary
    view: DetailView


def _extract_list(payload: Any, keys: Tuple[str, ...]) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    for key in keys + ("items", "data"):
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


def parse_matches(payload: Any) -> List[Match]:
    matches: List[Match] = []
    for record in _extract_list(payload, ("matches",)):
        try:
            matches.append(Match.model_validate(record))
        except ValidationError as exc:
            logger.warning(f"Skipping malformed match record: {exc.errors()[0].get('msg')}")
    return matches


def parse_match(payload: Any) -> Optional[Match]:
    if not isinstance(payload, dict):
        return None
    try:
        return Match.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"Malformed match record: {exc.errors()[0].get('msg')}")
        return None


def parse_events(payload: Any) -> List[Event]:
    events: List[Event] = []
    for record in _extract_list(payload, ("events",)):
        try:
            events.append(Event.model_validate(record))
        except ValidationError as exc:
            logger.warning(f"Skipping malformed event record: {exc.errors()[0].get('msg')}")
    return events
