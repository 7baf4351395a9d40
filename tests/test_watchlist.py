"""Tests for watchlist persistence."""

from __future__ import annotations

import pytest
from sqlalchemy import update

from app.database import Database
from app.db_models import WatchlistRecord
from app.models import WatchlistEntry
from app.services.watchlist import WatchlistStore, WatchlistStoreError


def _entry(tmdb_id: int, category: str = "movie", **overrides) -> WatchlistEntry:
    data = {"id": tmdb_id, "type": category, "title": f"Title {tmdb_id}"}
    data.update(overrides)
    return WatchlistEntry.model_validate(data)


def test_entry_accepts_upstream_category_names() -> None:
    assert _entry(1, "tv").category == "series"
    assert _entry(1, "movies").category == "movie"
    payload = _entry(2, posterPath="/p.jpg", voteAverage=7.5).to_payload()
    assert payload["poster"] == "https://image.tmdb.org/t/p/w500/p.jpg"
    assert payload["voteAverage"] == 7.5


@pytest.mark.anyio
async def test_watchlist_add_list_remove(database: Database) -> None:
    store = WatchlistStore(database.session_factory)

    assert await store.add_entry("alice", _entry(603, overview="Red pill")) is True
    assert await store.add_entry("alice", _entry(1399, "tv")) is True
    # Same id, other category is a different title.
    assert await store.add_entry("alice", _entry(603, "series")) is True
    assert await store.add_entry("alice", _entry(603)) is False

    entries = await store.list_entries("alice")
    assert [entry.key for entry in entries] == [
        (603, "movie"),
        (1399, "series"),
        (603, "series"),
    ]
    assert entries[0].overview == "Red pill"
    assert await store.list_entries("bob") == []

    assert await store.remove_entry("alice", 603, "series") is True
    assert await store.remove_entry("alice", 603, "series") is False
    assert [entry.key for entry in await store.list_entries("alice")] == [
        (603, "movie"),
        (1399, "series"),
    ]


@pytest.mark.anyio
async def test_undecodable_watchlist_row_fails_the_whole_read(database: Database) -> None:
    store = WatchlistStore(database.session_factory)
    await store.add_entry("alice", _entry(1))
    await store.add_entry("alice", _entry(2))
    async with database.session() as session:
        await session.execute(
            update(WatchlistRecord)
            .where(WatchlistRecord.tmdb_id == 2)
            .values(content_type="podcast")
        )
        await session.commit()

    with pytest.raises(WatchlistStoreError):
        await store.list_entries("alice")
