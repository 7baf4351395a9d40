"""Pydantic models describing catalog payloads."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ContentType = Literal["movie", "series"]
InterestType = Literal["genre", "movie", "series"]
DedupKey = tuple[int, str]

IMAGE_BASE_URL = "https://image.tmdb.org/t/p/"
PLACEHOLDER_IMAGE = "/no-image-placeholder.svg"

# TMDB names series "tv" in paths and media types.
UPSTREAM_CATEGORY: dict[str, str] = {"movie": "movie", "series": "tv"}


def build_image_url(path: str | None, size: str = "w500") -> str:
    """Return a TMDB image URL or the placeholder asset when no path exists."""

    if not path:
        return PLACEHOLDER_IMAGE
    if path.startswith("http"):
        return path
    return f"{IMAGE_BASE_URL}{size}{path}"


class CatalogItem(BaseModel):
    """A single movie or series entry in uniform shape."""

    model_config = ConfigDict(frozen=True)

    id: int
    category: ContentType
    title: str
    poster_path: str | None = None
    backdrop_path: str | None = None
    overview: str | None = None
    popularity: float = Field(default=0.0, ge=0)
    vote_average: float = Field(default=0.0, ge=0, le=10)
    vote_count: int = Field(default=0, ge=0)
    release_date: date | None = None
    genre_ids: tuple[int, ...] = ()

    @property
    def key(self) -> DedupKey:
        """Identity used for de-duplication across result streams."""

        return (self.id, self.category)

    def is_released(self, today: date) -> bool:
        """Items without a known date are treated as released."""

        if self.release_date is None:
            return True
        return self.release_date <= today

    def poster_url(self, size: str = "w500") -> str:
        return build_image_url(self.poster_path, size)

    def to_payload(self) -> dict[str, object]:
        """Return the JSON shape consumed by the browser UI."""

        payload: dict[str, object] = {
            "id": self.id,
            "type": self.category,
            "title": self.title,
            "poster": self.poster_url(),
            "voteAverage": self.vote_average,
            "voteCount": self.vote_count,
            "popularity": self.popularity,
        }
        if self.backdrop_path:
            payload["backdrop"] = build_image_url(self.backdrop_path, "w780")
        if self.overview:
            payload["overview"] = self.overview
        if self.release_date:
            payload["releaseDate"] = self.release_date.isoformat()
        if self.genre_ids:
            payload["genreIds"] = list(self.genre_ids)
        return payload


class ResultPage(BaseModel):
    """One page of raw upstream results plus paging metadata."""

    page: int = 1
    total_pages: int = 0
    results: list[dict[str, Any]] = Field(default_factory=list)
    category: ContentType | None = None

    @field_validator("results", mode="before")
    @classmethod
    def _drop_non_mappings(cls, value: object) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    @field_validator("page", "total_pages", mode="before")
    @classmethod
    def _coerce_count(cls, value: object) -> int:
        try:
            return max(int(value), 0)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError):
            return 0

    @classmethod
    def from_payload(
        cls, data: object, *, category: ContentType | None = None
    ) -> "ResultPage":
        if not isinstance(data, dict):
            return cls(category=category)
        return cls(
            page=data.get("page", 1),
            total_pages=data.get("total_pages", 0),
            results=data.get("results") or [],
            category=category,
        )

    def is_empty(self) -> bool:
        return not self.results


class Interest(BaseModel):
    """A user's declared affinity for a genre or a specific title."""

    interest_type: InterestType = Field(alias="type")
    interest_id: int = Field(alias="id")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("interest_type", mode="before")
    @classmethod
    def _normalise_type(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() == "tv":
            return "series"
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_genre(self) -> bool:
        return self.interest_type == "genre"


class Genre(BaseModel):
    """A TMDB genre reference."""

    id: int
    name: str


class WatchlistEntry(BaseModel):
    """A title saved to a user's watchlist, with enough detail to render it."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    category: ContentType = Field(alias="type")
    title: str = Field(min_length=1)
    poster_path: str | None = Field(default=None, alias="posterPath")
    overview: str | None = None
    vote_average: float = Field(default=0.0, ge=0, le=10, alias="voteAverage")

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return {"tv": "series", "movies": "movie"}.get(lowered, lowered)
        return value

    @property
    def key(self) -> DedupKey:
        return (self.id, self.category)

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "type": self.category,
            "title": self.title,
            "poster": build_image_url(self.poster_path),
            "voteAverage": self.vote_average,
        }
        if self.overview:
            payload["overview"] = self.overview
        return payload
