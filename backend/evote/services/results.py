from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from evote.db_models import Candidate, Vote, VotingPeriod
from evote.errors import NotFoundError, ValidationError
from evote.services.periods import latest_period_query


@dataclass
class ResultsView:
    published: bool
    candidates: List[Candidate] = field(default_factory=list)
    no_participation: Optional[bool] = None


class ResultsService:
    """Tallies per period, gated on publication and, for voters, on participation."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _tallies(self, period_id: int) -> List[Candidate]:
        stmt = (
            select(Candidate)
            .where(Candidate.period_id == period_id)
            .order_by(Candidate.votes.desc(), Candidate.name.asc())
        )
        return list(self.db.execute(stmt).scalars())

    def public_results(self, period_id: Optional[int], requester_user_id: Optional[int] = None) -> ResultsView:
        if period_id is None:
            raise ValidationError("periodId is required")
        period = self.db.get(VotingPeriod, period_id)
        if period is None:
            raise NotFoundError("Voting period not found")

        if not period.results_published:
            return ResultsView(published=False)

        if requester_user_id is not None:
            participated = self.db.execute(
                select(Vote.id).where(Vote.user_id == requester_user_id, Vote.period_id == period_id).limit(1)
            ).scalar_one_or_none()
            if participated is None:
                return ResultsView(published=True, no_participation=True)

        return ResultsView(published=True, candidates=self._tallies(period_id))

    def admin_results(self, period_id: Optional[int] = None) -> List[Candidate]:
        """Live tallies for the given or latest period, published or not."""
        if period_id is None:
            latest = self.db.execute(latest_period_query()).scalar_one_or_none()
            if latest is None:
                return []
            period_id = latest.id
        return self._tallies(period_id)


__all__ = ["ResultsService", "ResultsView"]
