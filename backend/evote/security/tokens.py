from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from evote.core.settings import Settings
from evote.errors import InternalError, UnauthorizedError


def _jwt_config(settings: Settings) -> tuple[str, str]:
    if not settings.jwt_secret:
        raise InternalError("JWT secret not configured")
    return settings.jwt_secret, settings.jwt_algorithm or "HS256"


def create_access_token(
    settings: Settings,
    *,
    user_id: int,
    email: str,
    username: str,
    is_admin: bool,
    expires_delta: Optional[timedelta] = None,
) -> str:
    secret, algorithm = _jwt_config(settings)
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims = {
        "sub": str(user_id),
        "id": user_id,
        "email": email,
        "username": username,
        "isAdmin": is_admin,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_token(settings: Settings, token: str) -> Dict[str, Any]:
    secret, algorithm = _jwt_config(settings)
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid token")
    if not isinstance(payload.get("id"), int):
        raise UnauthorizedError("Invalid token")
    return payload


__all__ = ["create_access_token", "decode_token"]
