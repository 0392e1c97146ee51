from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from evote.core.settings import get_settings

# If later behind a proxy, parse X-Forwarded-For here.
limiter = Limiter(key_func=get_remote_address)

# set by create_app(); falls back to the env settings
_login_limit: Optional[str] = None


def set_login_rate_limit(value: Optional[str]) -> None:
    global _login_limit
    _login_limit = value


def login_rate_limit() -> str:
    return _login_limit or get_settings().login_rate_limit
