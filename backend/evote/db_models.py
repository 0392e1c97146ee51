from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from evote.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, always hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255))
    username: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    has_voted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    votes: Mapped[List["Vote"]] = relationship(back_populates="user", passive_deletes=True)


class VotingPeriod(Base):
    __tablename__ = "voting_periods"
    __table_args__ = (Index("ix_voting_periods_start_end", "start_time", "end_time"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime)
    results_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    forced_ended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    candidates: Mapped[List["Candidate"]] = relationship(back_populates="period", passive_deletes=True)

    def is_open(self, now: datetime) -> bool:
        return not self.forced_ended and self.start_time <= now <= self.end_time

    def has_ended(self, now: datetime) -> bool:
        return self.forced_ended or now > self.end_time

    def is_concluded(self, now: datetime) -> bool:
        return self.results_published or self.has_ended(now)


class Candidate(Base):
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    lga: Mapped[str] = mapped_column(String(255))
    photo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    # NULL period means staged (never published)
    period_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("voting_periods.id", ondelete="CASCADE"), nullable=True, index=True
    )
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    votes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    period: Mapped[Optional[VotingPeriod]] = relationship(back_populates="candidates")


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        # one ballot per user per period, enforced by the store itself
        UniqueConstraint("user_id", "period_id", name="uq_votes_user_period"),
        Index("ix_votes_period_candidate", "period_id", "candidate_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id", ondelete="CASCADE"))
    period_id: Mapped[int] = mapped_column(ForeignKey("voting_periods.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    user: Mapped[User] = relationship(back_populates="votes")
    candidate: Mapped[Candidate] = relationship()

    def __repr__(self) -> str:
        return f"<Vote {self.id} by User {self.user_id} in Period {self.period_id}>"


__all__ = ["User", "VotingPeriod", "Candidate", "Vote", "UTCDateTime", "as_utc", "utcnow"]
