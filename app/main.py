"""Entry point for the FastAPI-powered catalog service."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from .accumulator import AccumulationLimits, SearchSessionRegistry
from .aggregation import QualityThresholds
from .config import settings
from .database import Database
from .models import ContentType, Interest, WatchlistEntry
from .pagination import pagination_window
from .services.catalog import CatalogBrowser
from .services.genres import GenreDirectory
from .services.interests import InterestStore, InterestStoreError
from .services.recommendations import RecommendationService
from .services.tmdb import FetchFailure, TMDBClient
from .services.watchlist import WatchlistStore, WatchlistStoreError
from .utils import parse_id_list

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI

CATEGORY_ALIASES: dict[str, ContentType] = {
    "movie": "movie",
    "movies": "movie",
    "series": "series",
    "tv": "series",
}


@dataclass(slots=True)
class Services:
    """Runtime collaborators shared by the route handlers."""

    catalog: CatalogBrowser
    recommendations: RecommendationService
    interests: InterestStore
    watchlist: WatchlistStore
    searches: SearchSessionRegistry


class InterestPayload(BaseModel):
    interests: list[Interest] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(settings.tmdb_timeout_seconds, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    if not settings.tmdb_api_key:
        logger.warning("TMDB_API_KEY is not configured; upstream requests will fail")

    tmdb = TMDBClient(settings, tmdb_http_client)
    genres = GenreDirectory(tmdb)
    interests = InterestStore(database.session_factory)
    fastapi_app.state.services = Services(
        catalog=CatalogBrowser(settings, tmdb, genres),
        recommendations=RecommendationService(settings, tmdb, interests),
        interests=interests,
        watchlist=WatchlistStore(database.session_factory),
        searches=SearchSessionRegistry(
            tmdb.search,
            limits=AccumulationLimits.from_settings(settings),
            thresholds=QualityThresholds.from_settings(settings),
            max_sessions=settings.search_session_limit,
        ),
    )
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie and series catalog aggregation backed by TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_services(fastapi_app: FastAPI) -> Services:
    services = getattr(fastapi_app.state, "services", None)
    if not isinstance(services, Services):
        raise RuntimeError("Services not initialised")
    return services


def _resolve_category(raw: str) -> ContentType:
    category = CATEGORY_ALIASES.get(raw.strip().lower())
    if category is None:
        raise HTTPException(status_code=400, detail="Unsupported content type")
    return category


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/search")
    async def search(
        query: str = "",
        session: str = Query(default="default", min_length=1, max_length=128),
    ) -> JSONResponse:
        services = get_services(fastapi_app)
        search_session = services.searches.get(session)
        state = await search_session.search(query)
        return JSONResponse(state.to_payload())

    @fastapi_app.post("/api/search/{session}/more")
    async def search_more(session: str) -> JSONResponse:
        services = get_services(fastapi_app)
        if session not in services.searches:
            raise HTTPException(status_code=404, detail="Unknown search session")
        state = await services.searches.get(session).load_more()
        return JSONResponse(state.to_payload())

    @fastapi_app.delete("/api/search/{session}")
    async def close_search(session: str) -> dict[str, bool]:
        services = get_services(fastapi_app)
        return {"closed": services.searches.close(session)}

    @fastapi_app.get("/api/browse/{content_type}")
    async def browse(
        content_type: str,
        page: int = Query(default=1, ge=1),
        genres: str | None = None,
        year: int | None = Query(default=None, ge=1870, le=2100),
        sort_by: str = Query(default="popularity.desc", alias="sortBy"),
    ) -> JSONResponse:
        category = _resolve_category(content_type)
        services = get_services(fastapi_app)
        try:
            result = await services.catalog.browse(
                category,
                page=page,
                genres=tuple(parse_id_list(genres)),
                year=year,
                sort_by=sort_by,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except FetchFailure as exc:
            raise HTTPException(status_code=502, detail=exc.message) from exc
        return JSONResponse(result.to_payload())

    @fastapi_app.get("/api/pagination")
    async def pagination(
        page: int = 1,
        total_pages: int = Query(default=0, alias="totalPages", ge=0),
        window: int | None = Query(default=None, ge=1, le=51),
    ) -> dict[str, Any]:
        size = window or settings.pagination_window_size
        return {"pages": list(pagination_window(page, total_pages, size))}

    @fastapi_app.get("/api/home")
    async def home() -> dict[str, Any]:
        services = get_services(fastapi_app)
        rows = await services.catalog.home_rows()
        return {"rows": [row.to_payload() for row in rows]}

    @fastapi_app.get("/api/genres")
    async def genre_list() -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            genres = await services.catalog.genre_list()
        except FetchFailure as exc:
            raise HTTPException(status_code=502, detail=exc.message) from exc
        return {"genres": [genre.model_dump() for genre in genres]}

    @fastapi_app.get("/api/users/{user_id}/recommendations")
    async def recommendations(user_id: str) -> JSONResponse:
        services = get_services(fastapi_app)
        feed = await services.recommendations.for_user(user_id)
        return JSONResponse(feed.to_payload())

    @fastapi_app.post("/api/users/{user_id}/interests")
    async def save_interests(user_id: str, request: Request) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            body = await request.json()
        except json.JSONDecodeError:
            body = {}
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        try:
            payload = InterestPayload.model_validate(body)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        if not payload.interests:
            raise HTTPException(status_code=400, detail="No interests supplied")
        try:
            added = await services.interests.save_interests(user_id, payload.interests)
        except InterestStoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"added": added}

    @fastapi_app.get("/api/users/{user_id}/watchlist")
    async def list_watchlist(user_id: str) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            entries = await services.watchlist.list_entries(user_id)
        except WatchlistStoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"items": [entry.to_payload() for entry in entries]}

    @fastapi_app.post("/api/users/{user_id}/watchlist")
    async def add_to_watchlist(user_id: str, request: Request) -> dict[str, Any]:
        services = get_services(fastapi_app)
        try:
            body = await request.json()
        except json.JSONDecodeError:
            body = None
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        try:
            entry = WatchlistEntry.model_validate(body)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        try:
            added = await services.watchlist.add_entry(user_id, entry)
        except WatchlistStoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"added": added}

    @fastapi_app.delete("/api/users/{user_id}/watchlist/{content_type}/{tmdb_id}")
    async def remove_from_watchlist(
        user_id: str, content_type: str, tmdb_id: int
    ) -> dict[str, Any]:
        category = _resolve_category(content_type)
        services = get_services(fastapi_app)
        try:
            removed = await services.watchlist.remove_entry(user_id, tmdb_id, category)
        except WatchlistStoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"removed": removed}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
