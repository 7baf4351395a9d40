"""Client for the paged list endpoints of The Movie Database (TMDB)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from ..config import Settings
from ..models import UPSTREAM_CATEGORY, ContentType, Genre, ResultPage

logger = logging.getLogger(__name__)

MOVIE_CERTIFICATION_PARAMS = {
    "certification_country": "US",
    "certification.lte": "R",
}


class FetchFailure(Exception):
    """Raised when a TMDB request fails at the network or HTTP level."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


@dataclass(frozen=True, slots=True)
class DiscoverFilters:
    """Parameters for a ``/discover`` query shared by movies and series."""

    genres: tuple[int, ...] = ()
    year: int | None = None
    sort_by: str = "popularity.desc"
    providers: tuple[int, ...] = ()
    min_votes: int | None = None
    min_rating: float | None = None

    def to_params(self, category: ContentType, *, region: str) -> dict[str, Any]:
        params: dict[str, Any] = {"sort_by": self.sort_by}
        if self.genres:
            params["with_genres"] = ",".join(str(genre) for genre in self.genres)
        if self.year:
            key = "primary_release_year" if category == "movie" else "first_air_date_year"
            params[key] = self.year
        if self.providers:
            params["with_watch_providers"] = "|".join(
                str(provider) for provider in self.providers
            )
            params["watch_region"] = region
        if self.min_votes is not None:
            params["vote_count.gte"] = self.min_votes
        if self.min_rating is not None:
            params["vote_average.gte"] = self.min_rating
        return params


@dataclass(frozen=True, slots=True)
class FallbackPolicy:
    """What to request instead when the primary query comes back empty.

    ``sort_by`` re-runs the same discover filters with another ordering;
    ``use_popular`` swaps to the category's popular list.
    """

    sort_by: str | None = None
    use_popular: bool = False
    on_not_found: bool = True
    on_empty: bool = True


POPULARITY_FALLBACK = FallbackPolicy(sort_by="popularity.desc")
POPULAR_LIST_FALLBACK = FallbackPolicy(use_popular=True, on_empty=False)


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.tmdb_max_retries

    async def search(self, query: str, page: int = 1) -> ResultPage:
        """Search movies, series and people in one call."""

        query = (query or "").strip()
        if not query:
            return ResultPage(page=1, total_pages=0, results=[])
        data = await self._get(
            "/search/multi", {"query": query, "page": max(page, 1)}
        )
        return ResultPage.from_payload(data)

    async def discover(
        self,
        category: ContentType,
        filters: DiscoverFilters | None = None,
        page: int = 1,
        *,
        fallback: FallbackPolicy | None = None,
    ) -> ResultPage:
        filters = filters or DiscoverFilters()
        result = await self._discover_once(category, filters, page)
        if fallback and fallback.on_empty and result.is_empty():
            logger.info(
                "Discover %s returned no results for %s; applying fallback",
                category,
                filters,
            )
            return await self._apply_fallback(category, filters, page, fallback)
        return result

    async def recommendations(
        self,
        category: ContentType,
        tmdb_id: int,
        page: int = 1,
        *,
        fallback: FallbackPolicy | None = POPULAR_LIST_FALLBACK,
    ) -> ResultPage:
        """Titles TMDB recommends for a given movie or series."""

        path = f"/{UPSTREAM_CATEGORY[category]}/{tmdb_id}/recommendations"
        try:
            data = await self._get(path, {"page": max(page, 1)})
        except FetchFailure as exc:
            if fallback and fallback.on_not_found and exc.is_not_found:
                logger.info(
                    "No recommendations for %s %s; applying fallback", category, tmdb_id
                )
                return await self._apply_fallback(
                    category, DiscoverFilters(), 1, fallback
                )
            raise
        result = ResultPage.from_payload(data, category=category)
        if fallback and fallback.on_empty and result.is_empty():
            return await self._apply_fallback(category, DiscoverFilters(), 1, fallback)
        return result

    async def popular(self, category: ContentType, page: int = 1) -> ResultPage:
        params: dict[str, Any] = {"page": max(page, 1)}
        if category == "movie":
            params.update(MOVIE_CERTIFICATION_PARAMS)
        data = await self._get(f"/{UPSTREAM_CATEGORY[category]}/popular", params)
        return ResultPage.from_payload(data, category=category)

    async def trending(
        self, category: ContentType, *, window: str = "week"
    ) -> ResultPage:
        data = await self._get(f"/trending/{UPSTREAM_CATEGORY[category]}/{window}", {})
        return ResultPage.from_payload(data, category=category)

    async def now_playing(self, page: int = 1) -> ResultPage:
        params: dict[str, Any] = {"page": max(page, 1), **MOVIE_CERTIFICATION_PARAMS}
        data = await self._get("/movie/now_playing", params)
        return ResultPage.from_payload(data, category="movie")

    async def on_the_air(self, page: int = 1) -> ResultPage:
        data = await self._get("/tv/on_the_air", {"page": max(page, 1)})
        return ResultPage.from_payload(data, category="series")

    async def genres(self, category: ContentType) -> list[Genre]:
        data = await self._get(f"/genre/{UPSTREAM_CATEGORY[category]}/list", {})
        raw_genres = data.get("genres") if isinstance(data, dict) else None
        genres: list[Genre] = []
        for entry in raw_genres or []:
            if not isinstance(entry, dict):
                continue
            try:
                genres.append(Genre.model_validate(entry))
            except ValueError:
                logger.debug("Skipping malformed genre entry %s", entry)
        return genres

    async def _discover_once(
        self, category: ContentType, filters: DiscoverFilters, page: int
    ) -> ResultPage:
        params = filters.to_params(category, region=self._settings.tmdb_region)
        params["page"] = max(page, 1)
        if category == "movie":
            params.update(MOVIE_CERTIFICATION_PARAMS)
        data = await self._get(f"/discover/{UPSTREAM_CATEGORY[category]}", params)
        return ResultPage.from_payload(data, category=category)

    async def _apply_fallback(
        self,
        category: ContentType,
        filters: DiscoverFilters,
        page: int,
        fallback: FallbackPolicy,
    ) -> ResultPage:
        if fallback.use_popular:
            return await self.popular(category, page)
        if fallback.sort_by:
            alternate = DiscoverFilters(
                genres=filters.genres,
                year=filters.year,
                sort_by=fallback.sort_by,
                providers=filters.providers,
                min_votes=filters.min_votes,
                min_rating=filters.min_rating,
            )
            return await self._discover_once(category, alternate, page)
        return ResultPage(page=page, total_pages=0, results=[], category=category)

    def _base_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "include_adult": "false",
            "language": self._settings.tmdb_language,
        }
        if self._settings.tmdb_api_key:
            params["api_key"] = self._settings.tmdb_api_key
        return params

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """Issue a GET request, retrying transient failures a bounded number of times."""

        query = {**self._base_params(), **params}
        attempt = 0
        while True:
            try:
                response = await self._client.get(path, params=query)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), 5) + (0.1 * attempt)
                    logger.info(
                        "Transient error talking to TMDB (%s). Retrying %s in %.1fs",
                        exc.__class__.__name__,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.warning("TMDB request %s failed: %s", path, exc)
                raise FetchFailure(f"Unable to reach TMDB: {exc}") from exc

            if 500 <= response.status_code < 600 or response.status_code == 429:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), 5) + (0.1 * attempt)
                    logger.info(
                        "TMDB %s during %s. Retrying in %.1fs",
                        response.status_code,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
            break

        if response.status_code >= 400:
            logger.warning(
                "TMDB request %s failed with %s: %s",
                path,
                response.status_code,
                response.text,
            )
            raise FetchFailure(
                f"TMDB responded with {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("Unexpected non-JSON TMDB response for %s", path)
            raise FetchFailure(
                "TMDB returned an unreadable response",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise FetchFailure(
                "TMDB returned an unexpected payload",
                status_code=response.status_code,
            )
        return data


def provider_ids(settings: Settings, names: Sequence[str]) -> tuple[int, ...]:
    """Resolve configured watch provider names to TMDB ids, skipping unknowns."""

    return tuple(
        settings.watch_providers[name] for name in names if name in settings.watch_providers
    )
