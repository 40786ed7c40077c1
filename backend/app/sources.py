from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp
import requests


# localtunnel serves an interstitial HTML page unless this header is present.
TUNNEL_HEADERS = {"Bypass-Tunnel-Reminder": "true"}

DEFAULT_LIVE_TIMEOUT = 5.0
DEFAULT_STATIC_TIMEOUT = 30.0


class KratosAPIError(RuntimeError):
    pass


class SourceUnavailableError(KratosAPIError):
    pass


class KratosConfigError(ValueError):
    pass


class MatchNotFoundError(LookupError):
    pass


def _build_headers(tunnel_bypass: bool) -> Dict[str, str]:
    headers = {"Accept": "application/json"}
    if tunnel_bypass:
        headers.update(TUNNEL_HEADERS)
    return headers


def _is_json_content_type(content_type: Optional[str]) -> bool:
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _format_detail(payload: Any, text: str) -> str:
    if isinstance(payload, dict):
        if "error" in payload:
            return str(payload["error"])
        if "message" in payload:
            return str(payload["message"])
        return json.dumps(payload)
    return text[:200] or "No response body"


def _extract_error_detail(response: requests.Response) -> str:
    text = response.text.strip()
    if not _is_json_content_type(response.headers.get("Content-Type")):
        return _format_detail(None, text)
    try:
        payload = response.json()
    except ValueError:
        return _format_detail(None, text)
    return _format_detail(payload, text)


@dataclass(frozen=True)
class FeedPaths:
    matches_path: str
    match_path: str
    events_path: str

    @classmethod
    def live_from_env(cls) -> "FeedPaths":
        return cls(
            matches_path=os.getenv("KRATOS_LIVE_MATCHES_PATH", "/matches"),
            match_path=os.getenv("KRATOS_LIVE_MATCH_PATH", "/matches/{match_id}"),
            events_path=os.getenv(
                "KRATOS_LIVE_EVENTS_PATH", "/matches/{match_id}/events"
            ),
        )

    @classmethod
    def static_from_env(cls) -> "FeedPaths":
        return cls(
            matches_path=os.getenv("KRATOS_STATIC_MATCHES_PATH", "/matches.json"),
            match_path=os.getenv("KRATOS_STATIC_MATCH_PATH", "/matches/{match_id}.json"),
            events_path=os.getenv(
                "KRATOS_STATIC_EVENTS_PATH", "/matches/{match_id}_events.json"
            ),
        )


class RestTransport:
    """Single-attempt JSON GET over ``requests``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_LIVE_TIMEOUT,
        tunnel_bypass: bool = True,
        name: str = "live",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = _build_headers(tunnel_bypass)
        self.name = name
        self.session = session or requests.Session()

    def get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
        except requests.Timeout as exc:
            raise SourceUnavailableError(
                f"{self.name} source timed out after {self.timeout}s: {url}"
            ) from exc
        except requests.RequestException as exc:
            raise SourceUnavailableError(f"{self.name} source unreachable: {exc}") from exc

        if response.status_code >= 400:
            detail = _extract_error_detail(response)
            raise SourceUnavailableError(
                f"{self.name} source error: {response.status_code} - {detail}"
            )
        content_type = response.headers.get("Content-Type")
        if not _is_json_content_type(content_type):
            raise SourceUnavailableError(
                f"{self.name} source returned {content_type or 'no content type'} instead of JSON"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SourceUnavailableError(f"Non-JSON response from {self.name} source: {exc}") from exc


class DirectoryTransport:
    """Reads a static JSON export from local disk."""

    def __init__(self, root: Path, name: str = "static") -> None:
        self.root = Path(root).resolve()
        self.name = name

    def get(self, path: str) -> Any:
        file_path = self._safe_path(path)
        if not file_path.is_file():
            raise SourceUnavailableError(f"{self.name} source has no file {path}")
        try:
            with file_path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            raise SourceUnavailableError(f"Failed to read {file_path}: {exc}") from exc

    def _safe_path(self, path: str) -> Path:
        resolved = (self.root / path.lstrip("/")).resolve()
        if self.root not in resolved.parents:
            raise SourceUnavailableError(f"{self.name} source path escapes export root: {path}")
        return resolved


class AsyncRestTransport:
    """Async version of RestTransport using aiohttp."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_LIVE_TIMEOUT,
        tunnel_bypass: bool = True,
        name: str = "live",
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = _build_headers(tunnel_bypass)
        self.name = name
        self.session = session
        self._own_session = session is None

    async def get(self, path: str) -> Any:
        if self.session is None:
            self.session = aiohttp.ClientSession()

        url = f"{self.base_url}{path}"
        try:
            response = await self.session.get(
                url,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            if response.status >= 400:
                text = (await response.text()).strip()
                raise SourceUnavailableError(
                    f"{self.name} source error: {response.status} - {_format_detail(None, text)}"
                )
            content_type = response.headers.get("Content-Type")
            if not _is_json_content_type(content_type):
                response.release()
                raise SourceUnavailableError(
                    f"{self.name} source returned {content_type or 'no content type'} instead of JSON"
                )
            return await response.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise SourceUnavailableError(
                f"{self.name} source timed out after {self.timeout}s: {url}"
            ) from exc
        except aiohttp.ClientError as exc:
            raise SourceUnavailableError(f"{self.name} source unreachable: {exc}") from exc
        except ValueError as exc:
            raise SourceUnavailableError(f"Non-JSON response from {self.name} source: {exc}") from exc

    async def close(self) -> None:
        if self._own_session and self.session:
            await self.session.close()
            self.session = None


class MatchFeed:
    def __init__(self, transport: Any, paths: FeedPaths) -> None:
        self.transport = transport
        self.paths = paths

    @property
    def name(self) -> str:
        return self.transport.name

    def fetch_matches(self) -> Any:
        return self.transport.get(self.paths.matches_path)

    def fetch_match(self, match_id: str) -> Any:
        return self.transport.get(self.paths.match_path.format(match_id=match_id))

    def fetch_events(self, match_id: str) -> Any:
        return self.transport.get(self.paths.events_path.format(match_id=match_id))


class AsyncMatchFeed:
    def __init__(self, transport: AsyncRestTransport, paths: FeedPaths) -> None:
        self.transport = transport
        self.paths = paths

    @property
    def name(self) -> str:
        return self.transport.name

    async def fetch_matches(self) -> Any:
        return await self.transport.get(self.paths.matches_path)

    async def fetch_match(self, match_id: str) -> Any:
        return await self.transport.get(self.paths.match_path.format(match_id=match_id))

    async def fetch_events(self, match_id: str) -> Any:
        return await self.transport.get(self.paths.events_path.format(match_id=match_id))

    async def close(self) -> None:
        await self.transport.close()


class ThreadedMatchFeed:
    """Runs a blocking MatchFeed off the event loop."""

    def __init__(self, feed: MatchFeed) -> None:
        self.feed = feed

    @property
    def name(self) -> str:
        return self.feed.name

    async def fetch_matches(self) -> Any:
        return await asyncio.to_thread(self.feed.fetch_matches)

    async def fetch_match(self, match_id: str) -> Any:
        return await asyncio.to_thread(self.feed.fetch_match, match_id)

    async def fetch_events(self, match_id: str) -> Any:
        return await asyncio.to_thread(self.feed.fetch_events, match_id)

    async def close(self) -> None:
        return None


def build_static_feed(
    static_dir: Optional[Path],
    static_url: Optional[str],
    timeout: float = DEFAULT_STATIC_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> Optional[MatchFeed]:
    paths = FeedPaths.static_from_env()
    if static_url:
        transport = RestTransport(
            static_url, timeout=timeout, tunnel_bypass=False, name="static", session=session
        )
        return MatchFeed(transport, paths)
    if static_dir:
        return MatchFeed(DirectoryTransport(static_dir), paths)
    return None
