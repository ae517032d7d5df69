"""Audit log API."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from acadigo.api.deps import client_meta, get_current_user, require_admin
from acadigo.db import get_db
from acadigo.models import AccessAction, ResourceType, User
from acadigo.schemas.common import MessageResponse
from acadigo.services.activity import list_activity, record_access

router = APIRouter()


# === Schemas ===

class ActivityLogResponse(BaseModel):
    id: int
    user_id: Optional[int]
    action: str
    resource_type: ResourceType
    resource_id: Optional[int]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


# === API endpoints ===

@router.get("/activity", response_model=List[ActivityLogResponse])
def recent_activity(
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_activity(db, user_id, action, limit)


@router.post("/{resource_type}/{resource_id}/{action}", response_model=MessageResponse)
def log_access(
    resource_type: Literal["ppt", "assignment"],
    resource_id: int,
    action: Literal["view", "download"],
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record a view or download. Always succeeds from the client's point of view."""
    record_access(
        db, current_user.id, ResourceType(resource_type), resource_id, AccessAction(action),
        meta=client_meta(request),
    )
    return MessageResponse(message="Access logged")
