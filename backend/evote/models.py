from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------- Accounts ----------------
class RegisterRequest(ApiModel):
    full_name: Optional[str] = None
    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, max_length=128)


class LoginRequest(ApiModel):
    # email or username
    email: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(ApiModel):
    token: str
    is_admin: bool


class MeResponse(ApiModel):
    id: int
    full_name: str
    username: str
    email: str
    has_voted: bool
    is_admin: bool


# ---------------- Periods ----------------
class StartPeriodRequest(ApiModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class StartPeriodResponse(ApiModel):
    message: str
    period_id: int


class Period(ApiModel):
    id: int
    start_time: datetime
    end_time: datetime
    results_published: bool
    forced_ended: bool


# ---------------- Candidates ----------------
class AddCandidateRequest(ApiModel):
    name: Optional[str] = None
    lga: Optional[str] = None
    photo_url: Optional[str] = None


class Candidate(ApiModel):
    id: int
    name: str
    lga: str
    photo_url: Optional[str] = None
    period_id: Optional[int] = None
    published: bool
    votes: int


# ---------------- Voting ----------------
class VoteRequest(ApiModel):
    candidate_id: Optional[int] = None
    user_id: Optional[int] = None


class UserVote(ApiModel):
    candidate_id: int
    name: str
    lga: str


# ---------------- Results ----------------
class ResultEntry(ApiModel):
    id: int
    name: str
    lga: str
    photo_url: Optional[str] = None
    votes: int


class PublicResults(ApiModel):
    published: bool
    results: List[ResultEntry] = Field(default_factory=list)
    no_participation: Optional[bool] = None


class MessageResponse(ApiModel):
    message: str
