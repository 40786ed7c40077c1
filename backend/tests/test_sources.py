from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
import pytest
import requests

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.sources import (
    AsyncMatchFeed,
    AsyncRestTransport,
    DirectoryTransport,
    FeedPaths,
    MatchFeed,
    RestTransport,
    SourceUnavailableError,
    build_static_feed,
)

_INVALID = object()


class _FakeResponse:
    def __init__(
        self,
        payload: Any = None,
        status_code: int = 200,
        content_type: Optional[str] = "application/json; charset=utf-8",
        text: str = "",
    ) -> None:
        self.payload = payload
        self.status_code = status_code
        self.headers = {"Content-Type": content_type} if content_type else {}
        self.text = text or (json.dumps(payload) if payload is not _INVALID else "{oops")

    def json(self) -> Any:
        if self.payload is _INVALID:
            raise ValueError("Expecting value")
        return self.payload


class _FakeSession:
    def __init__(self, response: Optional[_FakeResponse] = None, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Any = None) -> _FakeResponse:
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


class _FakeAsyncResponse:
    def __init__(self, payload: Any = None, status: int = 200, content_type: str = "application/json") -> None:
        self.payload = payload
        self.status = status
        self.headers = {"Content-Type": content_type}
        self.released = False

    async def text(self) -> str:
        return json.dumps(self.payload)

    async def json(self, content_type: Any = "application/json") -> Any:
        return self.payload

    def release(self) -> None:
        self.released = True


class _FakeAsyncSession:
    def __init__(self, response: Optional[_FakeAsyncResponse] = None, error: Optional[BaseException] = None) -> None:
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Any = None) -> _FakeAsyncResponse:
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_live_transport_sends_tunnel_header_and_timeout() -> None:
    session = _FakeSession(_FakeResponse([{"id": "1"}]))
    transport = RestTransport("http://tunnel.example/api/", timeout=5, session=session)
    feed = MatchFeed(transport, FeedPaths.live_from_env())

    assert feed.fetch_matches() == [{"id": "1"}]
    call = session.calls[0]
    assert call["url"] == "http://tunnel.example/api/matches"
    assert call["timeout"] == 5
    assert call["headers"]["Bypass-Tunnel-Reminder"] == "true"

    feed.fetch_events("42")
    assert session.calls[1]["url"] == "http://tunnel.example/api/matches/42/events"


def test_timeout_is_unavailable() -> None:
    session = _FakeSession(error=requests.Timeout("read timed out"))
    transport = RestTransport("http://tunnel.example/api", session=session)
    with pytest.raises(SourceUnavailableError, match="timed out"):
        transport.get("/matches")


def test_connection_error_is_unavailable() -> None:
    session = _FakeSession(error=requests.ConnectionError("refused"))
    transport = RestTransport("http://tunnel.example/api", session=session)
    with pytest.raises(SourceUnavailableError, match="unreachable"):
        transport.get("/matches")


def test_error_status_is_unavailable() -> None:
    session = _FakeSession(_FakeResponse({"error": "no such match"}, status_code=404))
    transport = RestTransport("http://tunnel.example/api", session=session)
    with pytest.raises(SourceUnavailableError, match="404 - no such match"):
        transport.get("/matches/9")


def test_html_interstitial_is_unavailable_not_parsed() -> None:
    response = _FakeResponse(_INVALID, content_type="text/html", text="<html>Click to continue</html>")
    transport = RestTransport("http://tunnel.example/api", session=_FakeSession(response))
    with pytest.raises(SourceUnavailableError, match="text/html"):
        transport.get("/matches")


def test_undecodable_json_is_unavailable() -> None:
    transport = RestTransport("http://tunnel.example/api", session=_FakeSession(_FakeResponse(_INVALID)))
    with pytest.raises(SourceUnavailableError, match="Non-JSON"):
        transport.get("/matches")


def test_static_url_feed_skips_tunnel_header() -> None:
    session = _FakeSession(_FakeResponse({"id": "3"}))
    feed = build_static_feed(None, "https://cdn.example/kratos/api", session=session)

    assert feed.fetch_match("3") == {"id": "3"}
    call = session.calls[0]
    assert call["url"] == "https://cdn.example/kratos/api/matches/3.json"
    assert "Bypass-Tunnel-Reminder" not in call["headers"]
    assert call["timeout"] == 30.0


def test_directory_feed_reads_export_layout(tmp_path: Path) -> None:
    (tmp_path / "matches").mkdir()
    (tmp_path / "matches.json").write_text(json.dumps([{"id": "7"}]), encoding="utf-8")
    (tmp_path / "matches" / "7.json").write_text(json.dumps({"id": "7"}), encoding="utf-8")
    (tmp_path / "matches" / "7_events.json").write_text(json.dumps([]), encoding="utf-8")

    feed = build_static_feed(tmp_path, None)
    assert feed.fetch_matches() == [{"id": "7"}]
    assert feed.fetch_match("7") == {"id": "7"}
    assert feed.fetch_events("7") == []

    with pytest.raises(SourceUnavailableError):
        feed.fetch_match("8")


def test_directory_transport_rejects_escaping_paths(tmp_path: Path) -> None:
    root = tmp_path / "export"
    root.mkdir()
    (tmp_path / "secret.json").write_text("{}", encoding="utf-8")

    transport = DirectoryTransport(root)
    with pytest.raises(SourceUnavailableError, match="escapes"):
        transport.get("/../secret.json")


def test_directory_transport_malformed_file_is_unavailable(tmp_path: Path) -> None:
    (tmp_path / "matches.json").write_text("not json", encoding="utf-8")
    with pytest.raises(SourceUnavailableError):
        DirectoryTransport(tmp_path).get("/matches.json")


def test_no_static_location_means_no_feed() -> None:
    assert build_static_feed(None, None) is None


def test_async_transport_fetches_json() -> None:
    session = _FakeAsyncSession(_FakeAsyncResponse({"id": "5"}))
    feed = AsyncMatchFeed(
        AsyncRestTransport("http://tunnel.example/api", timeout=5, session=session),
        FeedPaths.live_from_env(),
    )

    assert asyncio.run(feed.fetch_match("5")) == {"id": "5"}
    call = session.calls[0]
    assert call["url"] == "http://tunnel.example/api/matches/5"
    assert call["timeout"].total == 5
    assert call["headers"]["Bypass-Tunnel-Reminder"] == "true"


def test_async_transport_timeout_is_unavailable() -> None:
    session = _FakeAsyncSession(error=asyncio.TimeoutError())
    transport = AsyncRestTransport("http://tunnel.example/api", session=session)
    with pytest.raises(SourceUnavailableError, match="timed out"):
        asyncio.run(transport.get("/matches"))


def test_async_transport_client_error_is_unavailable() -> None:
    session = _FakeAsyncSession(error=aiohttp.ClientConnectionError("reset"))
    transport = AsyncRestTransport("http://tunnel.example/api", session=session)
    with pytest.raises(SourceUnavailableError, match="unreachable"):
        asyncio.run(transport.get("/matches"))


def test_async_transport_rejects_non_json_content_type() -> None:
    response = _FakeAsyncResponse("<html></html>", content_type="text/html; charset=utf-8")
    transport = AsyncRestTransport("http://tunnel.example/api", session=_FakeAsyncSession(response))
    with pytest.raises(SourceUnavailableError, match="instead of JSON"):
        asyncio.run(transport.get("/matches"))
    assert response.released


def test_async_transport_error_status_is_unavailable() -> None:
    response = _FakeAsyncResponse({"error": "down"}, status=502)
    transport = AsyncRestTransport("http://tunnel.example/api", session=_FakeAsyncSession(response))
    with pytest.raises(SourceUnavailableError, match="502"):
        asyncio.run(transport.get("/matches"))
