from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from evote.core.settings import Settings
from evote.errors import ForbiddenError, UnauthorizedError
from evote.security.tokens import decode_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    id: int
    email: str
    username: str
    is_admin: bool


def is_admin_identity(settings: Settings, email: Optional[str], username: Optional[str]) -> bool:
    return (email or "").lower() in settings.admin_emails or (
        username or ""
    ).lower() in settings.admin_usernames


def _is_admin_claims(settings: Settings, claims: Dict[str, Any]) -> bool:
    if claims.get("isAdmin") is True:
        return True
    return is_admin_identity(settings, claims.get("email"), claims.get("username"))


def get_current_user(request: Request) -> Principal:
    settings: Settings = request.app.state.settings
    auth = request.headers.get("authorization", "")
    parts = auth.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Authentication required")

    claims = decode_token(settings, parts[1])
    return Principal(
        id=claims["id"],
        email=claims.get("email") or "",
        username=claims.get("username") or "",
        is_admin=_is_admin_claims(settings, claims),
    )


def require_admin(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_admin:
        logger.warning("Admin access denied for user %s", user.id)
        raise ForbiddenError("Unauthorized")
    return user


__all__ = ["Principal", "get_current_user", "require_admin", "is_admin_identity"]
