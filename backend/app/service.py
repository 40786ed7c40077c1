from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple
from urllib.parse import urlparse

from app.models import Event, Match, parse_events, parse_match, parse_matches
from app.reconciler import reconcile
from app.settings import Settings
from app.sources import (
    AsyncMatchFeed,
    AsyncRestTransport,
    FeedPaths,
    KratosConfigError,
    MatchFeed,
    MatchNotFoundError,
    RestTransport,
    SourceUnavailableError,
    ThreadedMatchFeed,
    build_static_feed,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchList:
    matches: List[Match]
    live_ids: frozenset

    def source_of(self, match: Match) -> str:
        return "live" if match.id in self.live_ids else "static"


@dataclass(frozen=True)
class MatchDetail:
    match: Match
    events: Tuple[Event, ...]
    source: str


def _validate_base_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise KratosConfigError(f"Live API URL must be an http(s) address: {url!r}")
    return url


class MatchViewerService:
    """Client facade over the live API and the static export."""

    def __init__(
        self,
        live: Optional[MatchFeed] = None,
        static: Optional[MatchFeed] = None,
        async_live: Optional[AsyncMatchFeed] = None,
    ) -> None:
        self.live = live
        self.static = static
        self.async_live = async_live
        self.async_static = ThreadedMatchFeed(static) if static is not None else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchViewerService":
        live = None
        async_live = None
        if settings.live_api_url:
            base_url = _validate_base_url(settings.live_api_url)
            paths = FeedPaths.live_from_env()
            live = MatchFeed(
                RestTransport(
                    base_url,
                    timeout=settings.live_timeout,
                    tunnel_bypass=settings.tunnel_bypass,
                ),
                paths,
            )
            async_live = AsyncMatchFeed(
                AsyncRestTransport(
                    base_url,
                    timeout=settings.live_timeout,
                    tunnel_bypass=settings.tunnel_bypass,
                ),
                paths,
            )
        else:
            logger.info("[Config] No live API configured, running static-only")

        static = build_static_feed(
            settings.static_dir, settings.static_url, timeout=settings.static_timeout
        )
        return cls(live=live, static=static, async_live=async_live)

    @property
    def live_enabled(self) -> bool:
        return self.live is not None

    def load_matches(self) -> MatchList:
        live_matches: Optional[List[Match]] = None
        if self.live is not None:
            try:
                live_matches = parse_matches(self.live.fetch_matches())
                logger.info(f"[Live] Loaded {len(live_matches)} matches from live API")
            except SourceUnavailableError as exc:
                logger.warning(f"[Live] Live API unavailable, falling back to static: {exc}")

        static_matches: Optional[List[Match]] = None
        if self.static is not None:
            try:
                static_matches = parse_matches(self.static.fetch_matches())
            except SourceUnavailableError as exc:
                logger.warning(f"[Static] Failed to load static matches: {exc}")

        if live_matches is None and static_matches is None:
            raise SourceUnavailableError("No match source available")

        matches = reconcile(live_matches, static_matches or [])
        if static_matches is not None:
            logger.info(f"[Static] Merged static data, total: {len(matches)} matches")
        live_ids = frozenset(match.id for match in live_matches or [])
        return MatchList(matches=matches, live_ids=live_ids)

    async def get_match_detail(self, match_id: str) -> MatchDetail:
        match_id = str(match_id)
        for feed in (self.async_live, self.async_static):
            if feed is None:
                continue
            detail = await self._fetch_detail(feed, match_id)
            if detail is not None:
                return detail
        raise MatchNotFoundError(f"Match {match_id} not found")

    async def _fetch_detail(self, feed: Any, match_id: str) -> Optional[MatchDetail]:
        match_result, events_result = await asyncio.gather(
            feed.fetch_match(match_id),
            feed.fetch_events(match_id),
            return_exceptions=True,
        )
        for result in (match_result, events_result):
            if isinstance(result, BaseException) and not isinstance(
                result, SourceUnavailableError
            ):
                raise result

        if isinstance(match_result, SourceUnavailableError):
            logger.warning(f"[{feed.name.title()}] Failed to fetch match {match_id}: {match_result}")
            return None
        match = parse_match(match_result)
        if match is None:
            return None

        events: List[Event] = []
        if isinstance(events_result, SourceUnavailableError):
            logger.warning(
                f"[{feed.name.title()}] No events for match {match_id}: {events_result}"
            )
        else:
            events = parse_events(events_result)

        logger.info(
            f"[{feed.name.title()}] Loaded match {match_id} with {len(events)} events"
        )
        return MatchDetail(match=match, events=tuple(events), source=feed.name)

    async def close(self) -> None:
        if self.async_live is not None:
            await self.async_live.close()
