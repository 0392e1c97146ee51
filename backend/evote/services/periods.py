"""
Voting-period lifecycle.

A period moves Active -> ForcedEnded | NaturallyEnded -> ResultsPublished,
and may only be deleted once concluded. Starting a period publishes every
staged candidate into it in the same transaction; if there is nothing to
publish the whole start is rolled back so no empty election ever exists.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from evote.db import atomic
from evote.db_models import Candidate, User, Vote, VotingPeriod, as_utc, utcnow
from evote.errors import ConflictError, NoCandidatesError, NotFoundError, ValidationError
from evote.notifications import (
    CANDIDATES_UPDATED,
    PERIOD_DELETED,
    RESULTS_PUBLISHED,
    VOTING_ENDED,
    VOTING_STARTED,
    Notifier,
)
from evote.photos import delete_uploaded_file

logger = logging.getLogger(__name__)


class NoVotingPeriodError(NotFoundError):
    """Raised when a latest-period action runs before any period exists.

    Reported to clients as a bad request rather than a missing resource.
    """

    status_code = 400


def latest_period_query(*, for_update: bool = False):
    stmt = select(VotingPeriod).order_by(VotingPeriod.id.desc()).limit(1)
    return stmt.with_for_update() if for_update else stmt


class PeriodService:
    def __init__(
        self,
        db: Session,
        notifier: Notifier,
        *,
        uploads_dir: str = "./uploads",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.uploads_dir = uploads_dir
        self.clock = clock

    # ---------------- Reads ----------------
    def latest_period(self) -> Optional[VotingPeriod]:
        return self.db.execute(latest_period_query()).scalar_one_or_none()

    def list_periods(self, user_id: Optional[int] = None) -> List[VotingPeriod]:
        """All periods, newest start first; for a user, only published ones they voted in."""
        stmt = select(VotingPeriod).order_by(VotingPeriod.start_time.desc())
        if user_id is not None:
            stmt = (
                stmt.join(Vote, Vote.period_id == VotingPeriod.id)
                .where(Vote.user_id == user_id, VotingPeriod.results_published.is_(True))
                .distinct()
            )
        return list(self.db.execute(stmt).scalars())

    # ---------------- Lifecycle ----------------
    def _active_period(self, now: datetime, *, exclude_id: Optional[int] = None) -> Optional[VotingPeriod]:
        """The latest period if it is not yet concluded."""
        stmt = select(VotingPeriod)
        if exclude_id is not None:
            stmt = stmt.where(VotingPeriod.id != exclude_id)
        stmt = stmt.order_by(VotingPeriod.id.desc()).limit(1).with_for_update()
        latest = self.db.execute(stmt).scalar_one_or_none()
        if latest is not None and not latest.is_concluded(now):
            return latest
        return None

    def start_period(self, start_time: Optional[datetime], end_time: Optional[datetime]) -> VotingPeriod:
        if start_time is None or end_time is None:
            raise ValidationError("startTime and endTime are required")
        start, end = as_utc(start_time), as_utc(end_time)
        if start >= end:
            raise ValidationError("End time must be after start time")

        now = self.clock()
        with atomic(self.db):
            active = self._active_period(now)
            if active is not None:
                logger.warning("Rejected start: period %s is still active", active.id)
                raise ConflictError("There is already an active voting period")

            period = VotingPeriod(start_time=start, end_time=end, results_published=False, forced_ended=False)
            self.db.add(period)
            self.db.flush()

            published = self.db.execute(
                update(Candidate)
                .where(Candidate.period_id.is_(None), Candidate.published.is_(False))
                .values(period_id=period.id, published=True, votes=0)
                .execution_options(synchronize_session=False)
            ).rowcount
            if not published:
                # raising inside atomic() discards the period row as well
                rival = self._active_period(now, exclude_id=period.id)
                if rival is not None:
                    # a concurrent start committed first and took the staged candidates
                    logger.warning("Rejected start: period %s started concurrently", rival.id)
                    raise ConflictError("There is already an active voting period")
                raise NoCandidatesError("No unpublished candidates available to start voting")

            self.db.execute(update(User).values(has_voted=False))

        logger.info("Voting period %s started with %d candidate(s)", period.id, published)
        self.notifier.publish(VOTING_STARTED, {"periodId": period.id})
        self.notifier.publish(CANDIDATES_UPDATED)
        return period

    def end_early(self) -> VotingPeriod:
        with atomic(self.db):
            period = self.db.execute(latest_period_query(for_update=True)).scalar_one_or_none()
            if period is None:
                raise NoVotingPeriodError("No voting period found")
            if period.forced_ended:
                raise ConflictError("Voting already forced to end")
            period.forced_ended = True

        logger.info("Voting period %s ended early", period.id)
        self.notifier.publish(VOTING_ENDED, {"periodId": period.id})
        return period

    def publish_results(self) -> VotingPeriod:
        now = self.clock()
        with atomic(self.db):
            period = self.db.execute(latest_period_query(for_update=True)).scalar_one_or_none()
            if period is None:
                raise NoVotingPeriodError("No voting period found")
            if period.results_published:
                raise ConflictError("Results already published")
            if not period.has_ended(now):
                raise ConflictError("Voting still ongoing")
            period.results_published = True

        logger.info("Results published for period %s", period.id)
        self.notifier.publish(RESULTS_PUBLISHED, {"periodId": period.id})
        return period

    def delete_period(self, period_id: Optional[int]) -> None:
        if period_id is None:
            raise ValidationError("Valid periodId is required")

        now = self.clock()
        with atomic(self.db):
            period = self.db.get(VotingPeriod, period_id, with_for_update=True)
            if period is None:
                raise NotFoundError("Voting period not found")
            if not period.is_concluded(now):
                raise ConflictError("Cannot delete an active voting period")

            photos = list(
                self.db.execute(select(Candidate.photo_url).where(Candidate.period_id == period_id)).scalars()
            )
            self.db.execute(delete(Vote).where(Vote.period_id == period_id))
            self.db.execute(delete(Candidate).where(Candidate.period_id == period_id))
            self.db.execute(delete(VotingPeriod).where(VotingPeriod.id == period_id))

        # files go only after the rows are gone for good
        for photo_url in photos:
            delete_uploaded_file(photo_url, self.uploads_dir)

        logger.info("Voting period %s deleted", period_id)
        self.notifier.publish(PERIOD_DELETED, {"periodId": period_id})
        self.notifier.publish(CANDIDATES_UPDATED)


__all__ = ["PeriodService", "NoVotingPeriodError", "latest_period_query"]
