"""Normalisation, quality filtering and ranking of catalog results.

Every function here is pure. Callers own the set of accepted identities and
update it explicitly with :func:`accept_keys` after taking a filtered batch,
which keeps each stage testable on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError

from .config import Settings
from .models import CatalogItem, ContentType, DedupKey
from .utils import coerce_float, coerce_int, parse_iso_date

logger = logging.getLogger(__name__)

MEDIA_TYPE_CATEGORIES: dict[str, ContentType] = {"movie": "movie", "tv": "series"}


@dataclass(frozen=True, slots=True)
class QualityThresholds:
    """An item is junk when it has fewer votes AND a lower rating than these."""

    min_votes: int = 10
    min_rating: float = 3.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "QualityThresholds":
        return cls(
            min_votes=settings.junk_min_votes,
            min_rating=settings.junk_min_rating,
        )

    def is_junk(self, item: CatalogItem) -> bool:
        return item.vote_count < self.min_votes and item.vote_average < self.min_rating


def normalize_item(
    raw: Any, default_category: ContentType | None = None
) -> CatalogItem | None:
    """Convert one upstream result into a :class:`CatalogItem`.

    Results that are not movies or series (people, collections) and malformed
    entries yield ``None``.
    """

    if not isinstance(raw, Mapping):
        return None

    media_type = raw.get("media_type")
    if media_type:
        category = MEDIA_TYPE_CATEGORIES.get(str(media_type))
        if category is None:
            return None
    elif default_category is not None:
        category = default_category
    else:
        return None

    item_id = coerce_int(raw.get("id"))
    if item_id is None:
        return None

    title = raw.get("title") or raw.get("name")
    if not isinstance(title, str) or not title.strip():
        return None

    raw_date = raw.get("release_date") if category == "movie" else raw.get("first_air_date")
    if not raw_date:
        raw_date = raw.get("release_date") or raw.get("first_air_date")

    genre_ids = raw.get("genre_ids")
    if not isinstance(genre_ids, list):
        genre_ids = []

    try:
        return CatalogItem(
            id=item_id,
            category=category,
            title=title.strip(),
            poster_path=_optional_str(raw.get("poster_path")),
            backdrop_path=_optional_str(raw.get("backdrop_path")),
            overview=_optional_str(raw.get("overview")),
            popularity=max(coerce_float(raw.get("popularity")), 0.0),
            vote_average=min(max(coerce_float(raw.get("vote_average")), 0.0), 10.0),
            vote_count=max(coerce_int(raw.get("vote_count"), default=0) or 0, 0),
            release_date=parse_iso_date(raw_date),
            genre_ids=tuple(
                parsed
                for parsed in (coerce_int(value) for value in genre_ids)
                if parsed is not None
            ),
        )
    except ValidationError:
        return None


def normalize_items(
    raw_items: Iterable[Any], default_category: ContentType | None = None
) -> list[CatalogItem]:
    """Normalise a batch, skipping entries that cannot be displayed."""

    items: list[CatalogItem] = []
    skipped = 0
    for raw in raw_items:
        item = normalize_item(raw, default_category)
        if item is None:
            skipped += 1
            continue
        items.append(item)
    if skipped:
        logger.debug("Skipped %s non-displayable upstream results", skipped)
    return items


def filter_items(
    items: Iterable[CatalogItem],
    accepted: Iterable[DedupKey] = (),
    thresholds: QualityThresholds | None = None,
) -> list[CatalogItem]:
    """Return the new, displayable, non-junk items in their original order."""

    thresholds = thresholds or QualityThresholds()
    seen = set(accepted)
    kept: list[CatalogItem] = []
    for item in items:
        if item.key in seen:
            continue
        if not item.poster_path:
            continue
        if thresholds.is_junk(item):
            continue
        seen.add(item.key)
        kept.append(item)
    return kept


def accept_keys(accepted: set[DedupKey], items: Iterable[CatalogItem]) -> None:
    """Record the identities of a batch the caller has taken."""

    accepted.update(item.key for item in items)


def _rank_key(item: CatalogItem) -> tuple[int, float]:
    return (-item.vote_count, -item.vote_average)


def rank_items(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """Order by vote count then vote average, both descending.

    ``sorted`` is stable, so remaining ties keep their upstream order.
    """

    return sorted(items, key=_rank_key)


def merge_streams(
    streams: Sequence[Iterable[CatalogItem]],
    accepted: Iterable[DedupKey] = (),
    thresholds: QualityThresholds | None = None,
    *,
    limit: int | None = None,
) -> list[CatalogItem]:
    """Combine several result streams into one filtered, ranked sequence.

    Streams are concatenated in the order given, so the order requests were
    issued decides which duplicate survives and how ties fall.
    """

    combined = [item for stream in streams for item in stream]
    ranked = rank_items(filter_items(combined, accepted, thresholds))
    if limit is not None:
        return ranked[: max(limit, 0)]
    return ranked


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None
