from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


class Settings(BaseModel):
    database_url: str = Field(default="sqlite:///./evote.db")
    jwt_secret: Optional[str] = Field(default=None)
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=480)
    admin_emails: List[str] = Field(default_factory=list)
    admin_usernames: List[str] = Field(default_factory=list)
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    public_base_url: Optional[str] = Field(default=None)
    uploads_dir: str = Field(default="./uploads")
    password_pepper: str = Field(default="")
    login_rate_limit: str = Field(default="10/minute")
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_list(name: str, *, lower: bool = False) -> List[str]:
    """
    Split a comma-separated env var:
      ADMIN_EMAILS="alice@example.com, bob@example.com"
    """
    raw = os.getenv(name, "")
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return [item.lower() for item in items] if lower else items


def _load_settings() -> Settings:
    return Settings(
        database_url=_env("DATABASE_URL", "sqlite:///./evote.db"),
        jwt_secret=_env("JWT_SECRET"),
        jwt_algorithm=_env("JWT_ALGORITHM", "HS256"),
        access_token_expire_minutes=int(_env("ACCESS_TOKEN_EXPIRE_MINUTES", "480")),
        admin_emails=_env_list("ADMIN_EMAILS", lower=True),
        admin_usernames=_env_list("ADMIN_USERNAMES", lower=True),
        allowed_origins=_env_list("ALLOWED_ORIGINS") or list(DEFAULT_ALLOWED_ORIGINS),
        public_base_url=_env("PUBLIC_BASE_URL"),
        uploads_dir=_env("UPLOADS_DIR", "./uploads"),
        password_pepper=os.getenv("PASSWORD_PEPPER", ""),
        login_rate_limit=_env("LOGIN_RATE_LIMIT", "10/minute"),
        log_level=_env("LOG_LEVEL", "INFO"),
        log_file=_env("LOG_FILE"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
