"""Catalog browsing pages and the home screen rows."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable

from ..aggregation import QualityThresholds, filter_items, normalize_items
from ..config import Settings
from ..models import CatalogItem, ContentType, DedupKey, Genre, ResultPage
from ..pagination import PageToken, pagination_window
from .genres import GenreDirectory
from .tmdb import (
    POPULARITY_FALLBACK,
    DiscoverFilters,
    FetchFailure,
    TMDBClient,
    provider_ids,
)

logger = logging.getLogger(__name__)

PROVIDER_LABELS: dict[str, str] = {
    "netflix": "Netflix",
    "disney-plus": "Disney+",
    "prime-video": "Prime Video",
    "max": "Max",
    "hulu": "Hulu",
}

BROWSE_SORT_OPTIONS: frozenset[str] = frozenset(
    {
        "popularity.desc",
        "popularity.asc",
        "vote_average.desc",
        "vote_average.asc",
        "vote_count.desc",
        "primary_release_date.desc",
        "primary_release_date.asc",
        "first_air_date.desc",
        "first_air_date.asc",
        "release_date.desc",
        "revenue.desc",
    }
)


@dataclass(slots=True)
class BrowsePage:
    """One page of a catalog listing with its navigation window."""

    category: ContentType
    page: int
    total_pages: int
    items: list[CatalogItem]
    window: tuple[PageToken, ...]
    genre_names: dict[DedupKey, list[str]] = field(default_factory=dict)

    def to_payload(self) -> dict[str, object]:
        items: list[dict[str, object]] = []
        for item in self.items:
            payload = item.to_payload()
            names = self.genre_names.get(item.key)
            if names:
                payload["genres"] = names
            items.append(payload)
        return {
            "category": self.category,
            "page": self.page,
            "totalPages": self.total_pages,
            "items": items,
            "pagination": list(self.window),
        }


@dataclass(slots=True)
class CatalogRow:
    """A titled horizontal row on the home screen."""

    key: str
    title: str
    category: ContentType
    items: list[CatalogItem] = field(default_factory=list)
    failed: bool = False

    def to_payload(self) -> dict[str, object]:
        return {
            "key": self.key,
            "title": self.title,
            "type": self.category,
            "items": [item.to_payload() for item in self.items],
            "failed": self.failed,
        }


@dataclass(frozen=True, slots=True)
class _RowDefinition:
    key: str
    title: str
    category: ContentType
    request: Callable[[], Awaitable[ResultPage]]


class CatalogBrowser:
    """Single-call catalog listings backed by TMDB discover queries."""

    def __init__(
        self,
        settings: Settings,
        tmdb: TMDBClient,
        genres: GenreDirectory,
        *,
        today: Callable[[], date] = date.today,
    ):
        self._settings = settings
        self._tmdb = tmdb
        self._genres = genres
        self._thresholds = QualityThresholds.from_settings(settings)
        self._today = today

    async def browse(
        self,
        category: ContentType,
        *,
        page: int = 1,
        genres: tuple[int, ...] = (),
        year: int | None = None,
        sort_by: str = "popularity.desc",
    ) -> BrowsePage:
        if sort_by not in BROWSE_SORT_OPTIONS:
            raise ValueError(f"Unsupported sort order: {sort_by}")
        page = min(max(page, 1), self._settings.browse_max_pages)
        filters = DiscoverFilters(
            genres=genres,
            year=year,
            sort_by=sort_by,
            min_votes=self._settings.browse_min_votes,
            min_rating=self._settings.browse_min_rating,
        )
        result = await self._tmdb.discover(category, filters, page)
        items = filter_items(
            normalize_items(result.results, category), thresholds=self._thresholds
        )
        # TMDB refuses pages beyond 500 even when it reports more.
        total_pages = min(result.total_pages, self._settings.browse_max_pages)
        return BrowsePage(
            category=category,
            page=page,
            total_pages=total_pages,
            items=items,
            window=pagination_window(
                page, total_pages, self._settings.pagination_window_size
            ),
            genre_names=await self._genre_names(items),
        )

    async def _genre_names(
        self, items: list[CatalogItem]
    ) -> dict[DedupKey, list[str]]:
        """Genre labels per item; the listing is still served without them."""

        if not any(item.genre_ids for item in items):
            return {}
        try:
            return {
                item.key: await self._genres.names_for(item.genre_ids)
                for item in items
            }
        except FetchFailure as exc:
            logger.warning("Genre names unavailable for browse page: %s", exc)
            return {}

    async def genre_list(self) -> tuple[Genre, ...]:
        return await self._genres.all()

    async def home_rows(self) -> list[CatalogRow]:
        """Fetch every home row together; a failed row comes back empty."""

        definitions = self._row_definitions()
        outcomes = await asyncio.gather(
            *(definition.request() for definition in definitions),
            return_exceptions=True,
        )
        today = self._today()
        rows: list[CatalogRow] = []
        for definition, outcome in zip(definitions, outcomes):
            if isinstance(outcome, FetchFailure):
                logger.warning("Home row %s failed: %s", definition.key, outcome)
                rows.append(
                    CatalogRow(
                        definition.key,
                        definition.title,
                        definition.category,
                        failed=True,
                    )
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            items = [
                item
                for item in filter_items(
                    normalize_items(outcome.results, definition.category),
                    thresholds=self._thresholds,
                )
                if item.is_released(today)
            ]
            rows.append(
                CatalogRow(definition.key, definition.title, definition.category, items)
            )
        return rows

    def _row_definitions(self) -> list[_RowDefinition]:
        tmdb = self._tmdb
        definitions = [
            _RowDefinition(
                "trending-movies",
                "Trending Movies",
                "movie",
                lambda: tmdb.trending("movie"),
            ),
            _RowDefinition("now-playing", "Now Playing", "movie", tmdb.now_playing),
            _RowDefinition(
                "trending-series",
                "Trending Series",
                "series",
                lambda: tmdb.trending("series"),
            ),
            _RowDefinition("on-the-air", "On The Air", "series", tmdb.on_the_air),
        ]
        for name in self._settings.watch_providers:
            providers = provider_ids(self._settings, [name])
            label = PROVIDER_LABELS.get(name, name.replace("-", " ").title())
            definitions.append(
                _RowDefinition(
                    f"{name}-movies",
                    f"New on {label}: Movies",
                    "movie",
                    self._provider_request("movie", providers, "release_date.desc"),
                )
            )
            definitions.append(
                _RowDefinition(
                    f"{name}-series",
                    f"New on {label}: Series",
                    "series",
                    self._provider_request("series", providers, "first_air_date.desc"),
                )
            )
        return definitions

    def _provider_request(
        self, category: ContentType, providers: tuple[int, ...], sort_by: str
    ) -> Callable[[], Awaitable[ResultPage]]:
        filters = DiscoverFilters(providers=providers, sort_by=sort_by)
        fallback = POPULARITY_FALLBACK if category == "series" else None

        def request() -> Awaitable[ResultPage]:
            return self._tmdb.discover(category, filters, 1, fallback=fallback)

        return request

