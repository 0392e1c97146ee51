from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from evote.deps import (
    candidate_out,
    get_candidate_service,
    get_period_service,
    get_public_base_url,
    get_results_service,
    period_out,
    result_out,
)
from evote.models import AddCandidateRequest, Candidate, MessageResponse, Period, ResultEntry
from evote.security import require_admin
from evote.services import CandidateService, PeriodService, ResultsService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------------- Candidate staging ----------------
@router.post("/candidates", response_model=Candidate, status_code=status.HTTP_201_CREATED)
def add_candidate(
    payload: AddCandidateRequest,
    candidates: CandidateService = Depends(get_candidate_service),
    base_url: str = Depends(get_public_base_url),
) -> Candidate:
    row = candidates.add_candidate(payload.name, payload.lga, payload.photo_url)
    return candidate_out(row, base_url)


@router.delete("/candidates/{candidate_id}", response_model=MessageResponse)
def remove_candidate(
    candidate_id: int,
    candidates: CandidateService = Depends(get_candidate_service),
) -> MessageResponse:
    candidates.remove_candidate(candidate_id)
    return MessageResponse(message="Candidate removed")


@router.get("/candidates", response_model=List[Candidate])
def staged_and_current_candidates(
    candidates: CandidateService = Depends(get_candidate_service),
    base_url: str = Depends(get_public_base_url),
) -> List[Candidate]:
    return [candidate_out(c, base_url) for c in candidates.admin_candidates()]


@router.get("/periods/{period_id}/candidates", response_model=List[Candidate])
def period_candidates(
    period_id: int,
    candidates: CandidateService = Depends(get_candidate_service),
    base_url: str = Depends(get_public_base_url),
) -> List[Candidate]:
    return [candidate_out(c, base_url) for c in candidates.period_candidates(period_id)]


# ---------------- Periods & live tallies ----------------
@router.get("/period", response_model=Optional[Period])
def latest_period(periods: PeriodService = Depends(get_period_service)) -> Optional[Period]:
    return period_out(periods.latest_period())


@router.get("/periods", response_model=List[Period])
def all_periods(periods: PeriodService = Depends(get_period_service)) -> List[Period]:
    return [period_out(p) for p in periods.list_periods()]


@router.get("/results", response_model=List[ResultEntry])
def live_results(
    period_id: Optional[int] = Query(default=None, alias="periodId"),
    results: ResultsService = Depends(get_results_service),
    base_url: str = Depends(get_public_base_url),
) -> List[ResultEntry]:
    return [result_out(c, base_url) for c in results.admin_results(period_id)]
