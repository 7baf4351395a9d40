"""Persistence of user interests picked during onboarding."""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import UserInterestRecord
from ..models import Interest

logger = logging.getLogger(__name__)


class InterestStoreError(Exception):
    """Raised when interests cannot be read or written."""


class InterestStore:
    """Reads and appends interest rows keyed by an opaque user id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_interests(self, user_id: str) -> list[Interest]:
        """Return every interest for ``user_id`` in insertion order.

        The read is all-or-nothing: any database or decoding problem raises
        :class:`InterestStoreError` instead of returning a partial list.
        """

        statement = (
            select(UserInterestRecord)
            .where(UserInterestRecord.user_id == user_id)
            .order_by(UserInterestRecord.id)
        )
        try:
            async with self._session_factory() as session:
                records = (await session.scalars(statement)).all()
            return [
                Interest(
                    interest_type=record.interest_type,
                    interest_id=record.interest_id,
                )
                for record in records
            ]
        except (SQLAlchemyError, ValidationError) as exc:
            logger.warning("Failed to read interests for %s: %s", user_id, exc)
            raise InterestStoreError(f"Unable to read interests for {user_id}") from exc

    async def save_interests(
        self, user_id: str, interests: Iterable[Interest]
    ) -> int:
        """Store new interests, skipping ones the user already has.

        Returns the number of rows added.
        """

        pending: list[Interest] = []
        for interest in interests:
            if interest not in pending:
                pending.append(interest)
        if not pending:
            return 0

        try:
            async with self._session_factory() as session:
                existing = {
                    (record.interest_type, record.interest_id)
                    for record in (
                        await session.scalars(
                            select(UserInterestRecord).where(
                                UserInterestRecord.user_id == user_id
                            )
                        )
                    ).all()
                }
                added = 0
                for interest in pending:
                    identity = (interest.interest_type, interest.interest_id)
                    if identity in existing:
                        continue
                    session.add(
                        UserInterestRecord(
                            user_id=user_id,
                            interest_type=interest.interest_type,
                            interest_id=interest.interest_id,
                        )
                    )
                    added += 1
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to save interests for %s: %s", user_id, exc)
            raise InterestStoreError(f"Unable to save interests for {user_id}") from exc

        logger.info("Stored %s new interests for %s", added, user_id)
        return added
