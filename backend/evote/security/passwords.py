from __future__ import annotations

import hashlib
import hmac

from passlib.hash import argon2


# Explicit Argon2id configuration
_argon = argon2.using(type="ID", time_cost=3, memory_cost=65536, parallelism=2)


def _pepperize(password: str, pepper: str) -> str:
    """Combine the password with the application-wide pepper (kept outside the DB)."""
    if not pepper:
        return password
    return hmac.new(pepper.encode("utf-8"), password.encode("utf-8"), hashlib.sha256).hexdigest()


def hash_password(password: str, pepper: str = "") -> str:
    return _argon.hash(_pepperize(password, pepper))


def verify_password(password: str, password_hash: str, pepper: str = "") -> bool:
    try:
        return _argon.verify(_pepperize(password, pepper), password_hash)
    except ValueError:
        # malformed or foreign hash stored for this user
        return False


__all__ = ["hash_password", "verify_password"]
