from fastapi import APIRouter, Depends, Request, status

from evote.deps import get_account_service
from evote.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, RegisterRequest
from evote.ratelimit import limiter, login_rate_limit
from evote.security import Principal, get_current_user
from evote.services import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, accounts: AccountService = Depends(get_account_service)) -> MessageResponse:
    accounts.register(
        full_name=payload.full_name,
        username=payload.username,
        email=str(payload.email) if payload.email else None,
        password=payload.password,
    )
    return MessageResponse(message="User registered successfully")


@router.post("/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)
def login(
    request: Request,
    payload: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
) -> LoginResponse:
    token, is_admin = accounts.login(payload.email, payload.password)
    return LoginResponse(token=token, is_admin=is_admin)


@router.get("/me", response_model=MeResponse)
def me(
    user: Principal = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> MeResponse:
    row = accounts.get_user(user.id)
    return MeResponse(
        id=row.id,
        full_name=row.full_name,
        username=row.username,
        email=row.email,
        has_voted=row.has_voted,
        is_admin=accounts.is_admin(row),
    )
