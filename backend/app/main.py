from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from app.aggregator import ALL, EventAggregator, MapSelection, parse_map_selection
from app.env import load_env
from app.models import MatchDetailResponse, MatchListResponse, MatchSummary
from app.service import MatchViewerService
from app.settings import Settings
from app.sources import MatchNotFoundError, SourceUnavailableError

load_env()

settings = Settings.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

service = MatchViewerService.from_settings(settings)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await service.close()


app = FastAPI(title="Kratos Match Viewer API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _parse_map_param(value: str) -> MapSelection:
    try:
        return parse_map_selection(value)
    except ValueError:
        raise HTTPException(
            status_code=422, detail=f"map must be an integer or 'all', got {value!r}"
        )


@app.get("/api/matches", response_model=MatchListResponse)
async def list_matches() -> MatchListResponse:
    t0 = time.perf_counter()
    try:
        result = await run_in_threadpool(service.load_matches)
    except SourceUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    logger.info(f"[TIMING] load_matches: {time.perf_counter() - t0:.2f}s ({len(result.matches)} matches)")

    summaries = [
        MatchSummary.from_match(match, result.source_of(match)) for match in result.matches
    ]
    return MatchListResponse(count=len(summaries), matches=summaries)


@app.get("/api/matches/{match_id}", response_model=MatchDetailResponse)
async def get_match(
    match_id: str,
    map_param: str | None = Query(None, alias="map", description="Map number or 'all'"),
    type_param: str = Query(ALL, alias="type", min_length=1, description="Event type or 'all'"),
) -> MatchDetailResponse:
    t0 = time.perf_counter()
    try:
        detail = await service.get_match_detail(match_id)
    except MatchNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    logger.info(f"[TIMING] get_match_detail: {time.perf_counter() - t0:.2f}s ({len(detail.events)} events)")

    aggregator = EventAggregator(detail.events)
    state = aggregator.initial_state()
    if map_param is not None:
        state = state.select_map(_parse_map_param(map_param))
    state = state.select_type(type_param)

    return MatchDetailResponse(
        match=MatchSummary.from_match(detail.match, detail.source),
        view=aggregator.view(state),
    )


@app.get("/api/config")
async def get_config() -> dict:
    return {"liveApiUrl": settings.live_api_url}


@app.get("/api/health")
async def health_check() -> dict:
    return {
        "status": "healthy",
        "live_enabled": service.live_enabled,
        "static_dir": str(settings.static_dir) if settings.static_dir else None,
        "static_url": settings.static_url,
    }
