"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_WATCH_PROVIDERS: dict[str, int] = {
    "netflix": 8,
    "disney-plus": 337,
    "prime-video": 9,
    "max": 1899,
    "hulu": 15,
}


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="StreamWave", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="en-US", alias="TMDB_LANGUAGE")
    tmdb_region: str = Field(default="US", alias="TMDB_REGION")
    tmdb_timeout_seconds: float = Field(
        default=15.0, alias="TMDB_TIMEOUT", gt=0, le=120
    )
    tmdb_max_retries: int = Field(default=2, alias="TMDB_MAX_RETRIES", ge=0, le=10)

    junk_min_votes: int = Field(default=10, alias="JUNK_MIN_VOTES", ge=0)
    junk_min_rating: float = Field(
        default=3.0, alias="JUNK_MIN_RATING", ge=0, le=10
    )

    search_initial_target: int = Field(
        default=20, alias="SEARCH_INITIAL_TARGET", ge=1, le=200
    )
    search_load_more_target: int = Field(
        default=10, alias="SEARCH_LOAD_MORE_TARGET", ge=1, le=200
    )
    search_max_pages_per_pass: int = Field(
        default=5, alias="SEARCH_MAX_PAGES", ge=1, le=50
    )
    search_session_limit: int = Field(
        default=1_000, alias="SEARCH_SESSION_LIMIT", ge=1
    )

    pagination_window_size: int = Field(
        default=7, alias="PAGINATION_WINDOW", ge=1, le=51
    )
    recommendation_limit: int = Field(
        default=20, alias="RECOMMENDATION_LIMIT", ge=1, le=200
    )
    recommendation_genre_min_votes: int = Field(
        default=20, alias="RECOMMENDATION_GENRE_MIN_VOTES", ge=0
    )

    browse_min_votes: int = Field(default=500, alias="BROWSE_MIN_VOTES", ge=0)
    browse_min_rating: float = Field(
        default=6.0, alias="BROWSE_MIN_RATING", ge=0, le=10
    )
    browse_max_pages: int = Field(default=500, alias="BROWSE_MAX_PAGES", ge=1)

    watch_providers: Annotated[dict[str, int], NoDecode] = Field(
        default_factory=lambda: dict(DEFAULT_WATCH_PROVIDERS),
        alias="WATCH_PROVIDERS",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./streamwave.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("pagination_window_size")
    @classmethod
    def _require_odd_window(cls, value: int) -> int:
        """Pagination windows are centred on the current page."""

        if value % 2 == 0:
            raise ValueError("PAGINATION_WINDOW must be an odd number")
        return value

    @field_validator("watch_providers", mode="before")
    @classmethod
    def _parse_watch_providers(cls, value: object) -> dict[str, int]:
        """Accept ``name:id`` pairs separated by commas from the environment."""

        if value is None or value == "":
            return dict(DEFAULT_WATCH_PROVIDERS)
        if isinstance(value, dict):
            pairs: list[tuple[object, object]] = list(value.items())
        elif isinstance(value, str):
            pairs = []
            for part in value.split(","):
                part = part.strip()
                if not part:
                    continue
                name, sep, raw_id = part.partition(":")
                if not sep:
                    raise ValueError("WATCH_PROVIDERS entries must look like name:id")
                pairs.append((name, raw_id))
        else:
            raise TypeError("WATCH_PROVIDERS must be a mapping or a string")

        providers: dict[str, int] = {}
        for name, raw_id in pairs:
            key = str(name).strip().lower().replace("_", "-").replace(" ", "-")
            if not key:
                continue
            try:
                providers[key] = int(str(raw_id).strip())
            except ValueError as exc:
                raise ValueError(f"Invalid watch provider id for {key}") from exc
        return providers or dict(DEFAULT_WATCH_PROVIDERS)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
