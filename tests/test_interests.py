"""Tests for interest persistence."""

from __future__ import annotations

import pytest
from sqlalchemy import update

from app.database import Database
from app.db_models import UserInterestRecord
from app.models import Interest
from app.services.interests import InterestStore, InterestStoreError


@pytest.mark.anyio
async def test_interests_round_trip_in_insertion_order(database: Database) -> None:
    store = InterestStore(database.session_factory)

    added = await store.save_interests(
        "alice",
        [
            Interest(type="genre", id=28),
            Interest(type="tv", id=1399),
            Interest(type="movie", id=603),
        ],
    )

    assert added == 3
    interests = await store.list_interests("alice")
    assert [(i.interest_type, i.interest_id) for i in interests] == [
        ("genre", 28),
        ("series", 1399),
        ("movie", 603),
    ]
    assert await store.list_interests("bob") == []


@pytest.mark.anyio
async def test_duplicate_interests_are_skipped(database: Database) -> None:
    store = InterestStore(database.session_factory)
    await store.save_interests("alice", [Interest(type="genre", id=28)])

    added = await store.save_interests(
        "alice",
        [
            Interest(type="genre", id=28),
            Interest(type="genre", id=35),
            Interest(type="genre", id=35),
        ],
    )

    assert added == 1
    assert len(await store.list_interests("alice")) == 2
    assert await store.save_interests("alice", []) == 0


@pytest.mark.anyio
async def test_undecodable_rows_fail_the_whole_read(database: Database) -> None:
    store = InterestStore(database.session_factory)
    await store.save_interests(
        "alice", [Interest(type="genre", id=28), Interest(type="movie", id=1)]
    )
    async with database.session() as session:
        await session.execute(
            update(UserInterestRecord)
            .where(UserInterestRecord.interest_id == 1)
            .values(interest_type="podcast")
        )
        await session.commit()

    with pytest.raises(InterestStoreError):
        await store.list_interests("alice")
