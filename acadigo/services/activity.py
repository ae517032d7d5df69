"""Audit logging. Writes are best-effort and never fail the request."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from acadigo.models import AccessAction, AccessLog, ActivityLog, ResourceType

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    user_id: Optional[int],
    action: str,
    resource_type: ResourceType,
    resource_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Optional[str]]] = None,
) -> Optional[ActivityLog]:
    """Append an activity entry; must be called after the primary commit."""
    meta = meta or {}
    try:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            ip_address=meta.get("ip_address"),
            user_agent=meta.get("user_agent"),
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as exc:  # noqa: BLE001 - logging must not disrupt the main flow
        db.rollback()
        logger.warning("Error logging activity %s: %s", action, exc)
        return None


def record_access(
    db: Session,
    user_id: int,
    resource_type: ResourceType,
    resource_id: int,
    action: AccessAction,
    meta: Optional[Dict[str, Optional[str]]] = None,
) -> Optional[AccessLog]:
    meta = meta or {}
    try:
        entry = AccessLog(
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            ip_address=meta.get("ip_address"),
            user_agent=meta.get("user_agent"),
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        logger.warning("Error logging %s access to %s %s: %s", action.value, resource_type.value, resource_id, exc)
        return None


def list_activity(
    db: Session,
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> list[ActivityLog]:
    query = db.query(ActivityLog)
    if user_id is not None:
        query = query.filter(ActivityLog.user_id == user_id)
    if action:
        query = query.filter(ActivityLog.action == action)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
