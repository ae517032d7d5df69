"""Credential checks and token verification."""

import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from acadigo.config import Settings
from acadigo.errors import AccountInactive, InvalidCredentials, UserNotFound
from acadigo.models import ResourceType, User
from acadigo.security import DUMMY_PASSWORD_HASH, create_token, decode_token, verify_password
from acadigo.services.activity import log_activity
from acadigo.utils.clock import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def login(
    db: Session,
    settings: Settings,
    email: str,
    password: str,
    meta: Optional[Dict[str, Optional[str]]] = None,
) -> Tuple[User, str]:
    """Check the credentials and issue a token.

    The hash comparison runs even for unknown emails so both failure paths
    take the same time.
    """
    user = get_user_by_email(db, email)
    password_ok = verify_password(password, user.password_hash if user else DUMMY_PASSWORD_HASH)

    if user is None or not password_ok:
        logger.info("Failed login for %s", normalize_email(email))
        raise InvalidCredentials()
    if not user.active:
        raise AccountInactive("Your account has been deactivated")

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    token = create_token(settings, user.id, user.role.value)
    log_activity(db, user.id, "login", ResourceType.AUTH, meta=meta)
    return user, token


def verify(db: Session, settings: Settings, token: str) -> User:
    """Resolve a bearer token to an active user."""
    payload = decode_token(settings, token)
    user = db.get(User, payload["sub"])
    if user is None:
        raise UserNotFound()
    if not user.active:
        raise AccountInactive()
    return user
