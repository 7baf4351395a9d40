"""Personalised "For You" recommendations built from stored interests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Sequence

from ..aggregation import QualityThresholds, merge_streams, normalize_items
from ..config import Settings
from ..models import CatalogItem, Interest
from .interests import InterestStore, InterestStoreError
from .tmdb import DiscoverFilters, FetchFailure, TMDBClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PersonalizedFeed:
    """Recommendations for a user plus whether onboarding has been done."""

    items: list[CatalogItem] = field(default_factory=list)
    onboarding_complete: bool = False
    failed_sources: int = 0

    def to_payload(self) -> dict[str, object]:
        return {
            "items": [item.to_payload() for item in self.items],
            "onboardingComplete": self.onboarding_complete,
            "failedSources": self.failed_sources,
        }


@dataclass(frozen=True, slots=True)
class _Source:
    label: str
    request: Awaitable


class RecommendationService:
    """Merges genre and title based TMDB lists into one ranked feed."""

    def __init__(
        self,
        settings: Settings,
        tmdb: TMDBClient,
        interests: InterestStore,
    ):
        self._settings = settings
        self._tmdb = tmdb
        self._interests = interests
        self._thresholds = QualityThresholds.from_settings(settings)

    async def for_user(self, user_id: str) -> PersonalizedFeed:
        try:
            interests = await self._interests.list_interests(user_id)
        except InterestStoreError:
            return PersonalizedFeed(onboarding_complete=False)

        if not interests:
            logger.info("No interests stored for %s; onboarding incomplete", user_id)
            return PersonalizedFeed(onboarding_complete=False)

        return await self.from_interests(interests)

    async def from_interests(self, interests: Sequence[Interest]) -> PersonalizedFeed:
        """Fan out one request per source, then merge once all have settled.

        Sources are issued in a fixed order: the combined genre query first,
        then one recommendations query per title in stored order. That order
        decides which duplicate wins and how ranking ties fall.
        """

        sources = self._build_sources(interests)
        if not sources:
            return PersonalizedFeed(onboarding_complete=True)

        outcomes = await asyncio.gather(
            *(source.request for source in sources), return_exceptions=True
        )

        streams: list[list[CatalogItem]] = []
        failed = 0
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, FetchFailure):
                failed += 1
                logger.warning(
                    "Recommendation source %s failed: %s", source.label, outcome
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            streams.append(normalize_items(outcome.results, outcome.category))

        items = merge_streams(
            streams,
            thresholds=self._thresholds,
            limit=self._settings.recommendation_limit,
        )
        logger.info(
            "Built %s personalised recommendations from %s sources (%s failed)",
            len(items),
            len(sources),
            failed,
        )
        return PersonalizedFeed(
            items=items, onboarding_complete=True, failed_sources=failed
        )

    def _build_sources(self, interests: Sequence[Interest]) -> list[_Source]:
        genre_ids: list[int] = []
        titles: list[Interest] = []
        for interest in interests:
            if interest.is_genre:
                if interest.interest_id not in genre_ids:
                    genre_ids.append(interest.interest_id)
            elif interest not in titles:
                titles.append(interest)

        sources: list[_Source] = []
        if genre_ids:
            filters = DiscoverFilters(
                genres=tuple(genre_ids),
                sort_by="popularity.desc",
                min_votes=self._settings.recommendation_genre_min_votes,
            )
            sources.append(
                _Source(
                    label=f"genres {genre_ids}",
                    request=self._tmdb.discover("movie", filters),
                )
            )
        for interest in titles:
            category = "movie" if interest.interest_type == "movie" else "series"
            sources.append(
                _Source(
                    label=f"{category} {interest.interest_id}",
                    request=self._tmdb.recommendations(
                        category, interest.interest_id, fallback=None
                    ),
                )
            )
        return sources
