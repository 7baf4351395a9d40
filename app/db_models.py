"""SQLAlchemy ORM models backing the persistent user state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class UserInterestRecord(Base):
    """A genre or title a user picked during onboarding."""

    __tablename__ = "user_interests"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "interest_type", "interest_id", name="uq_user_interest"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    interest_type: Mapped[str] = mapped_column(String(16))
    interest_id: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )


class WatchlistRecord(Base):
    """A title a user saved to watch later."""

    __tablename__ = "user_watchlist"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "tmdb_id", "content_type", name="uq_user_watchlist"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    tmdb_id: Mapped[int] = mapped_column(Integer)
    content_type: Mapped[str] = mapped_column(String(16))
    title: Mapped[str] = mapped_column(String(512))
    poster_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    vote_average: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
