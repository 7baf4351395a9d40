"""Persistence of the titles users save to watch later."""

from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import WatchlistRecord
from ..models import ContentType, WatchlistEntry

logger = logging.getLogger(__name__)


class WatchlistStoreError(Exception):
    """Raised when a watchlist cannot be read or changed."""


class WatchlistStore:
    """Watchlist rows keyed by an opaque user id and ``(id, category)``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_entries(self, user_id: str) -> list[WatchlistEntry]:
        """Return the watchlist in the order titles were added.

        Like interest reads this is all-or-nothing: one undecodable row fails
        the whole read with :class:`WatchlistStoreError`.
        """

        statement = (
            select(WatchlistRecord)
            .where(WatchlistRecord.user_id == user_id)
            .order_by(WatchlistRecord.id)
        )
        try:
            async with self._session_factory() as session:
                records = (await session.scalars(statement)).all()
            return [
                WatchlistEntry(
                    id=record.tmdb_id,
                    category=record.content_type,
                    title=record.title,
                    poster_path=record.poster_path,
                    overview=record.overview,
                    vote_average=record.vote_average,
                )
                for record in records
            ]
        except (SQLAlchemyError, ValidationError) as exc:
            logger.warning("Failed to read watchlist for %s: %s", user_id, exc)
            raise WatchlistStoreError(f"Unable to read watchlist for {user_id}") from exc

    async def add_entry(self, user_id: str, entry: WatchlistEntry) -> bool:
        """Save ``entry``; returns ``False`` when the title is already listed."""

        try:
            async with self._session_factory() as session:
                existing = await session.scalar(
                    select(WatchlistRecord.id).where(
                        WatchlistRecord.user_id == user_id,
                        WatchlistRecord.tmdb_id == entry.id,
                        WatchlistRecord.content_type == entry.category,
                    )
                )
                if existing is not None:
                    return False
                session.add(
                    WatchlistRecord(
                        user_id=user_id,
                        tmdb_id=entry.id,
                        content_type=entry.category,
                        title=entry.title,
                        poster_path=entry.poster_path,
                        overview=entry.overview,
                        vote_average=entry.vote_average,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to add %s to watchlist for %s: %s", entry.key, user_id, exc)
            raise WatchlistStoreError(f"Unable to update watchlist for {user_id}") from exc

        logger.info("Added %s %s to watchlist for %s", entry.category, entry.id, user_id)
        return True

    async def remove_entry(
        self, user_id: str, tmdb_id: int, category: ContentType
    ) -> bool:
        """Drop a title; returns whether anything was removed."""

        statement = delete(WatchlistRecord).where(
            WatchlistRecord.user_id == user_id,
            WatchlistRecord.tmdb_id == tmdb_id,
            WatchlistRecord.content_type == category,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to update watchlist for %s: %s", user_id, exc)
            raise WatchlistStoreError(f"Unable to update watchlist for {user_id}") from exc
        return bool(result.rowcount)
