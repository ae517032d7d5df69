"""Shared FastAPI dependencies: current user, role guards, adapters."""

from functools import lru_cache
from typing import Callable, Dict, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from acadigo.config import Settings, get_settings
from acadigo.db import get_db
from acadigo.errors import RateLimited, Unauthenticated
from acadigo.models import User, UserRole
from acadigo.services import auth as auth_service
from acadigo.services.access import authorize
from acadigo.services.notifications import Notifier
from acadigo.services.storage import StorageBackend, build_storage
from acadigo.utils.rate_limit import SlidingWindowLimiter


@lru_cache(maxsize=1)
def get_storage() -> StorageBackend:
    return build_storage(get_settings())


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    return Notifier(get_settings())


@lru_cache(maxsize=1)
def get_limiter() -> SlidingWindowLimiter:
    return SlidingWindowLimiter(get_settings().rate_limit_window_seconds)


def client_ip(request: Request, settings: Optional[Settings] = None) -> Optional[str]:
    """Peer address; ``X-Forwarded-For`` only counts when the peer is a trusted proxy."""
    settings = settings or get_settings()
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.trusted_proxies:
        return forwarded.split(",")[0].strip() or peer
    return peer


def client_meta(request: Request) -> Dict[str, Optional[str]]:
    """IP address and user agent recorded with audit entries."""
    return {"ip_address": client_ip(request), "user_agent": request.headers.get("user-agent")}


def _role_limit(settings: Settings, role: UserRole) -> int:
    return {
        UserRole.ADMIN: settings.rate_limit_admin,
        UserRole.TRAINER: settings.rate_limit_trainer,
        UserRole.STUDENT: settings.rate_limit_student,
    }[role]


def limit_by_client(
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: SlidingWindowLimiter = Depends(get_limiter),
) -> None:
    """Throttle unauthenticated endpoints per client address."""
    if not settings.rate_limit_enabled:
        return
    key = f"ip:{client_ip(request, settings) or 'unknown'}"
    if not limiter.hit(key, settings.rate_limit_auth):
        raise RateLimited("Too many login attempts, please try again later.")


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    limiter: SlidingWindowLimiter = Depends(get_limiter),
) -> User:
    """Resolve the bearer token, then apply the per-user rate limit."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated("Not authorized to access this route")

    user = auth_service.verify(db, settings, authorization[7:].strip())

    if settings.rate_limit_enabled and not limiter.hit(f"user:{user.id}", _role_limit(settings, user.role)):
        raise RateLimited()
    return user


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """Dependency factory: the current user must hold one of ``roles`` (admins always pass)."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        authorize(current_user, roles)
        return current_user

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.TRAINER)
require_student = require_roles(UserRole.STUDENT)
