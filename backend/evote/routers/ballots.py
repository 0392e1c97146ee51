from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from evote.deps import (
    candidate_out,
    get_ballot_service,
    get_candidate_service,
    get_public_base_url,
    get_results_service,
    result_out,
)
from evote.errors import ForbiddenError
from evote.models import Candidate, MessageResponse, PublicResults, UserVote, VoteRequest
from evote.security import Principal, get_current_user
from evote.services import BallotService, CandidateService, ResultsService

router = APIRouter(tags=["ballots"])


@router.get("/candidates", response_model=List[Candidate])
def list_candidates(
    period_id: Optional[int] = Query(default=None, alias="periodId"),
    candidates: CandidateService = Depends(get_candidate_service),
    base_url: str = Depends(get_public_base_url),
) -> List[Candidate]:
    return [candidate_out(c, base_url) for c in candidates.published_candidates(period_id)]


@router.post("/vote", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def cast_vote(
    payload: VoteRequest,
    user: Principal = Depends(get_current_user),
    ballots: BallotService = Depends(get_ballot_service),
) -> MessageResponse:
    ballots.cast_vote(user.id, payload.candidate_id, claimed_user_id=payload.user_id)
    return MessageResponse(message="Vote cast")


@router.get("/uservote", response_model=None)
def user_vote(
    user_id: Optional[int] = Query(default=None, alias="userId"),
    period_id: Optional[int] = Query(default=None, alias="periodId"),
    user: Principal = Depends(get_current_user),
    ballots: BallotService = Depends(get_ballot_service),
):
    """The caller's own choice in a period; admins may look up any user."""
    if user_id is None:
        user_id = user.id
    elif user_id != user.id and not user.is_admin:
        raise ForbiddenError("User mismatch")
    found = ballots.user_vote(user_id, period_id)
    if found is None:
        return {}
    vote, candidate = found
    return UserVote(candidate_id=vote.candidate_id, name=candidate.name, lga=candidate.lga).model_dump(by_alias=True)


@router.get("/results", response_model=PublicResults, response_model_exclude_unset=True)
def public_results(
    period_id: Optional[int] = Query(default=None, alias="periodId"),
    user_id: Optional[int] = Query(default=None, alias="userId"),
    results: ResultsService = Depends(get_results_service),
    base_url: str = Depends(get_public_base_url),
) -> PublicResults:
    view = results.public_results(period_id, user_id)
    body = {"published": view.published, "results": [result_out(c, base_url) for c in view.candidates]}
    if view.no_participation is not None:
        # only present when the participation gate hid the tallies
        body["no_participation"] = view.no_participation
    return PublicResults(**body)
