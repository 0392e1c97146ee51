from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from evote.db import atomic
from evote.db_models import Candidate
from evote.errors import NotFoundError, ValidationError
from evote.notifications import CANDIDATES_UPDATED, Notifier
from evote.photos import delete_uploaded_file, normalize_photo_path
from evote.services.periods import latest_period_query

logger = logging.getLogger(__name__)


def _staged(candidate_id: int):
    return (
        Candidate.id == candidate_id,
        Candidate.published.is_(False),
        Candidate.period_id.is_(None),
    )


class CandidateService:
    def __init__(self, db: Session, notifier: Notifier, *, uploads_dir: str = "./uploads") -> None:
        self.db = db
        self.notifier = notifier
        self.uploads_dir = uploads_dir

    def add_candidate(self, name: Optional[str], lga: Optional[str], photo_url: Optional[str] = None) -> Candidate:
        """Stage a candidate for the next period."""
        trimmed_name = (name or "").strip()
        trimmed_lga = (lga or "").strip()
        if not trimmed_name or not trimmed_lga:
            raise ValidationError("Candidate name and LGA are required")

        candidate = Candidate(
            name=trimmed_name,
            lga=trimmed_lga,
            photo_url=normalize_photo_path(photo_url),
            period_id=None,
            published=False,
            votes=0,
        )
        with atomic(self.db):
            self.db.add(candidate)

        logger.info("Candidate %s staged: %s (%s)", candidate.id, candidate.name, candidate.lga)
        self.notifier.publish(CANDIDATES_UPDATED)
        return candidate

    def remove_candidate(self, candidate_id: Optional[int]) -> None:
        """Delete a staged candidate; published ones belong to their period."""
        if candidate_id is None:
            raise ValidationError("candidateId is required")

        with atomic(self.db):
            photo_url = self.db.execute(select(Candidate.photo_url).where(*_staged(candidate_id))).first()
            if photo_url is None:
                raise NotFoundError("Candidate not found or already published")
            self.db.execute(delete(Candidate).where(*_staged(candidate_id)))

        delete_uploaded_file(photo_url[0], self.uploads_dir)
        logger.info("Candidate %s removed", candidate_id)
        self.notifier.publish(CANDIDATES_UPDATED)

    def admin_candidates(self) -> List[Candidate]:
        """Staged candidates plus those of the latest period, newest first."""
        latest = self.db.execute(latest_period_query()).scalar_one_or_none()
        condition = Candidate.period_id.is_(None)
        if latest is not None:
            condition = or_(condition, Candidate.period_id == latest.id)
        stmt = select(Candidate).where(condition).order_by(Candidate.created_at.desc(), Candidate.id.desc())
        return list(self.db.execute(stmt).scalars())

    def period_candidates(self, period_id: Optional[int]) -> List[Candidate]:
        if period_id is None:
            raise ValidationError("periodId is required")
        stmt = (
            select(Candidate)
            .where(Candidate.period_id == period_id)
            .order_by(Candidate.votes.desc(), Candidate.name.asc())
        )
        return list(self.db.execute(stmt).scalars())

    def published_candidates(self, period_id: Optional[int] = None) -> List[Candidate]:
        """The ballot of the given period, or of the latest one."""
        if period_id is None:
            latest = self.db.execute(latest_period_query()).scalar_one_or_none()
            if latest is None:
                return []
            period_id = latest.id
        stmt = (
            select(Candidate)
            .where(Candidate.period_id == period_id, Candidate.published.is_(True))
            .order_by(Candidate.name.asc())
        )
        return list(self.db.execute(stmt).scalars())


__all__ = ["CandidateService"]
