from evote.services.accounts import AccountService
from evote.services.ballots import BallotService
from evote.services.candidates import CandidateService
from evote.services.periods import NoVotingPeriodError, PeriodService
from evote.services.results import ResultsService, ResultsView

__all__ = [
    "AccountService",
    "BallotService",
    "CandidateService",
    "NoVotingPeriodError",
    "PeriodService",
    "ResultsService",
    "ResultsView",
]
