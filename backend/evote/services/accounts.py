from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from evote.core.settings import Settings
from evote.db import atomic
from evote.db_models import User
from evote.errors import DuplicateUserError, NotFoundError, UnauthorizedError, ValidationError
from evote.security import is_admin_identity
from evote.security.passwords import hash_password, verify_password
from evote.security.tokens import create_access_token

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    def register(
        self,
        full_name: Optional[str],
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> User:
        full_name = (full_name or "").strip()
        username = (username or "").strip()
        email = (email or "").strip()
        if not full_name or not username or not email or not password:
            raise ValidationError("fullName, username, email and password are required")

        try:
            with atomic(self.db):
                existing = self.db.execute(
                    select(User).where(or_(User.username == username, User.email == email)).limit(1)
                ).scalar_one_or_none()
                if existing is not None:
                    field = "email" if existing.email == email else "username"
                    raise DuplicateUserError(f"A user with that {field} already exists")

                user = User(
                    full_name=full_name,
                    username=username,
                    email=email,
                    password_hash=hash_password(password, self.settings.password_pepper),
                    has_voted=False,
                )
                self.db.add(user)
        except IntegrityError as exc:
            # lost a registration race for the same username/email
            raise DuplicateUserError("A user with that username or email already exists") from exc

        logger.info("New user registered: %s", user.username)
        return user

    def is_admin(self, user: User) -> bool:
        return is_admin_identity(self.settings, user.email, user.username)

    def authenticate(self, identifier: Optional[str], password: Optional[str]) -> User:
        if not identifier or not password:
            raise ValidationError("Email (or username) and password are required")

        user = self.db.execute(
            select(User).where(or_(User.email == identifier, User.username == identifier)).limit(1)
        ).scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash, self.settings.password_pepper):
            logger.warning("Failed login for %s", identifier)
            raise UnauthorizedError("Invalid credentials")

        logger.info("Successful login for %s", user.username)
        return user

    def login(self, identifier: Optional[str], password: Optional[str]) -> tuple[str, bool]:
        user = self.authenticate(identifier, password)
        is_admin = self.is_admin(user)
        token = create_access_token(
            self.settings,
            user_id=user.id,
            email=user.email,
            username=user.username,
            is_admin=is_admin,
        )
        return token, is_admin

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user


__all__ = ["AccountService"]
