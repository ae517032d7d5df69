"""Password hashing and signed access tokens."""

from datetime import timedelta
from typing import Any, Dict

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from acadigo.config import Settings
from acadigo.errors import TokenExpired, TokenInvalid
from acadigo.utils.clock import utcnow


def hash_password(password: str) -> str:
    """Salted one-way hash."""
    return generate_password_hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time comparison against the stored hash."""
    return check_password_hash(hashed_password, plain_password)


# Compared against when the account does not exist, so failed logins cost the same
DUMMY_PASSWORD_HASH = generate_password_hash("acadigo-dummy-password")


def create_token(settings: Settings, user_id: int, role: str) -> str:
    now = utcnow()
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(days=settings.token_expire_days),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.token_algorithm)


def decode_token(settings: Settings, token: str) -> Dict[str, Any]:
    """Check signature and expiry, returning the claims."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.token_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except jwt.InvalidTokenError as exc:
        raise TokenInvalid() from exc

    try:
        payload["sub"] = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenInvalid() from exc
    return payload
