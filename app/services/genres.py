"""Process-lifetime lookup of TMDB genre names."""

from __future__ import annotations

import asyncio
import logging

from ..models import Genre
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


class GenreDirectory:
    """Lazily built table of movie and series genres.

    The taxonomy is effectively static, so the table is built once on first
    use and never invalidated. A failed build leaves it empty so the next
    caller tries again.
    """

    def __init__(self, tmdb: TMDBClient):
        self._tmdb = tmdb
        self._lock = asyncio.Lock()
        self._genres: tuple[Genre, ...] | None = None
        self._names: dict[int, str] = {}

    @property
    def loaded(self) -> bool:
        return self._genres is not None

    async def all(self) -> tuple[Genre, ...]:
        """Movie genres followed by series-only genres."""

        if self._genres is not None:
            return self._genres
        async with self._lock:
            if self._genres is None:
                await self._load()
        return self._genres or ()

    async def names_for(self, genre_ids: tuple[int, ...] | list[int]) -> list[str]:
        await self.all()
        return [self._names[genre_id] for genre_id in genre_ids if genre_id in self._names]

    async def _load(self) -> None:
        movie_genres, series_genres = await asyncio.gather(
            self._tmdb.genres("movie"), self._tmdb.genres("series")
        )
        combined: list[Genre] = []
        names: dict[int, str] = {}
        for genre in [*movie_genres, *series_genres]:
            if genre.id in names:
                continue
            names[genre.id] = genre.name
            combined.append(genre)
        self._genres = tuple(combined)
        self._names = names
        logger.info("Loaded %s genres from TMDB", len(combined))
