from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from evote.db import atomic
from evote.db_models import Candidate, User, Vote, utcnow
from evote.errors import ConflictError, ForbiddenError, InternalError, ValidationError
from evote.notifications import VOTE_CAST, Notifier
from evote.services.periods import latest_period_query

logger = logging.getLogger(__name__)


class BallotService:
    """
    Records one ballot per user per period.

    The pre-insert lookup gives a friendly error in the common case; the
    unique (user, period) constraint settles the race when two requests
    pass the lookup at the same time.
    """

    def __init__(self, db: Session, notifier: Notifier, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.notifier = notifier
        self.clock = clock

    def _existing_vote(self, user_id: int, period_id: int) -> Optional[int]:
        return self.db.execute(
            select(Vote.id).where(Vote.user_id == user_id, Vote.period_id == period_id).limit(1)
        ).scalar_one_or_none()

    def cast_vote(self, user_id: int, candidate_id: Optional[int], claimed_user_id: Optional[int] = None) -> Vote:
        """
        Cast ``user_id``'s ballot for ``candidate_id`` in the latest period.

        Raises:
            ForbiddenError: the body names a different user than the token
            ValidationError: missing candidate, no period, or candidate not on this ballot
            ConflictError: voting closed, or the user already voted
            InternalError: the tally could not be updated
        """
        if claimed_user_id is not None and claimed_user_id != user_id:
            logger.warning("Vote rejected: token user %s claimed to be %s", user_id, claimed_user_id)
            raise ForbiddenError("User mismatch")
        if candidate_id is None:
            raise ValidationError("candidateId is required")

        now = self.clock()
        period_id: Optional[int] = None
        try:
            with atomic(self.db):
                period = self.db.execute(latest_period_query()).scalar_one_or_none()
                if period is None:
                    raise ValidationError("No voting period")
                period_id = period.id
                if not period.is_open(now):
                    raise ConflictError("Voting is not currently open")

                candidate = self.db.execute(
                    select(Candidate).where(
                        Candidate.id == candidate_id,
                        Candidate.period_id == period.id,
                        Candidate.published.is_(True),
                    )
                ).scalar_one_or_none()
                if candidate is None:
                    raise ValidationError("Candidate not available for this period")

                if self._existing_vote(user_id, period.id) is not None:
                    raise ConflictError("User already voted")

                vote = Vote(user_id=user_id, candidate_id=candidate.id, period_id=period.id)
                self.db.add(vote)
                self.db.flush()

                tallied = self.db.execute(
                    update(Candidate)
                    .where(Candidate.id == candidate.id, Candidate.period_id == period.id)
                    .values(votes=Candidate.votes + 1)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if tallied != 1:
                    raise InternalError("Vote tally update failed")

                self.db.execute(update(User).where(User.id == user_id).values(has_voted=True))
        except IntegrityError as exc:
            # the transaction is already rolled back; find out which constraint fired
            if period_id is not None and self._existing_vote(user_id, period_id) is not None:
                logger.info("Concurrent duplicate vote for user %s in period %s", user_id, period_id)
                raise ConflictError("User already voted") from exc
            logger.exception("Vote insert failed for user %s", user_id)
            raise InternalError("Vote failed") from exc

        logger.info("Vote %s cast in period %s for candidate %s", vote.id, period_id, candidate_id)
        self.notifier.publish(VOTE_CAST, {"periodId": period_id, "candidateId": candidate_id})
        return vote

    def user_vote(self, user_id: Optional[int], period_id: Optional[int]) -> Optional[Tuple[Vote, Candidate]]:
        if user_id is None or period_id is None:
            raise ValidationError("userId and periodId are required")
        row = self.db.execute(
            select(Vote, Candidate)
            .join(Candidate, Candidate.id == Vote.candidate_id)
            .where(Vote.user_id == user_id, Vote.period_id == period_id)
            .limit(1)
        ).first()
        if row is None:
            return None
        return row[0], row[1]


__all__ = ["BallotService"]
