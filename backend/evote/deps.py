"""FastAPI dependencies wiring per-request services to app-scoped resources."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from evote.core.settings import Settings
from evote.db import get_db
from evote.db_models import Candidate as CandidateRow
from evote.db_models import VotingPeriod
from evote.models import Candidate, Period, ResultEntry
from evote.notifications import Notifier
from evote.photos import build_absolute_photo_url
from evote.services import AccountService, BallotService, CandidateService, PeriodService, ResultsService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_account_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)
) -> AccountService:
    return AccountService(db, settings)


def get_period_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_app_settings),
) -> PeriodService:
    return PeriodService(db, notifier, uploads_dir=settings.uploads_dir)


def get_ballot_service(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> BallotService:
    return BallotService(db, notifier)


def get_candidate_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_app_settings),
) -> CandidateService:
    return CandidateService(db, notifier, uploads_dir=settings.uploads_dir)


def get_results_service(db: Session = Depends(get_db)) -> ResultsService:
    return ResultsService(db)


def get_public_base_url(request: Request) -> str:
    configured = request.app.state.settings.public_base_url
    if configured:
        return configured.rstrip("/")
    return str(request.base_url).rstrip("/")


# ---------------- Row -> payload ----------------
def period_out(period: Optional[VotingPeriod]) -> Optional[Period]:
    if period is None:
        return None
    return Period(
        id=period.id,
        start_time=period.start_time,
        end_time=period.end_time,
        results_published=period.results_published,
        forced_ended=period.forced_ended,
    )


def candidate_out(row: CandidateRow, base_url: Optional[str]) -> Candidate:
    return Candidate(
        id=row.id,
        name=row.name,
        lga=row.lga,
        photo_url=build_absolute_photo_url(row.photo_url, base_url),
        period_id=row.period_id,
        published=row.published,
        votes=row.votes,
    )


def result_out(row: CandidateRow, base_url: Optional[str]) -> ResultEntry:
    return ResultEntry(
        id=row.id,
        name=row.name,
        lga=row.lga,
        photo_url=build_absolute_photo_url(row.photo_url, base_url),
        votes=row.votes,
    )
