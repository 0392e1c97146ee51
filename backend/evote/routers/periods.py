from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from evote.deps import get_period_service, period_out
from evote.models import MessageResponse, Period, StartPeriodRequest, StartPeriodResponse
from evote.security import Principal, require_admin
from evote.services import PeriodService

router = APIRouter(tags=["periods"])


@router.post("/period/start", response_model=StartPeriodResponse)
def start_period(
    payload: StartPeriodRequest,
    admin: Principal = Depends(require_admin),
    periods: PeriodService = Depends(get_period_service),
) -> StartPeriodResponse:
    period = periods.start_period(payload.start_time, payload.end_time)
    return StartPeriodResponse(message="Voting started", period_id=period.id)


@router.post("/period/end", response_model=MessageResponse)
def end_period(
    admin: Principal = Depends(require_admin),
    periods: PeriodService = Depends(get_period_service),
) -> MessageResponse:
    periods.end_early()
    return MessageResponse(message="Voting ended early")


@router.post("/period/publish", response_model=MessageResponse)
def publish_results(
    admin: Principal = Depends(require_admin),
    periods: PeriodService = Depends(get_period_service),
) -> MessageResponse:
    periods.publish_results()
    return MessageResponse(message="Results published")


@router.delete("/period/{period_id}", response_model=MessageResponse)
def delete_period(
    period_id: int,
    admin: Principal = Depends(require_admin),
    periods: PeriodService = Depends(get_period_service),
) -> MessageResponse:
    periods.delete_period(period_id)
    return MessageResponse(message="Voting period deleted")


# ---------------- Public reads ----------------
@router.get("/period", response_model=Optional[Period])
def latest_period(periods: PeriodService = Depends(get_period_service)) -> Optional[Period]:
    return period_out(periods.latest_period())


@router.get("/periods", response_model=List[Period])
def list_periods(
    user_id: Optional[int] = Query(default=None, alias="userId"),
    periods: PeriodService = Depends(get_period_service),
) -> List[Period]:
    return [period_out(p) for p in periods.list_periods(user_id)]
