"""User management API."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from acadigo.api.deps import client_meta, get_current_user, get_storage, require_admin, require_staff
from acadigo.db import get_db
from acadigo.errors import ValidationError
from acadigo.models import ResourceType, User, UserRole
from acadigo.schemas.common import MessageResponse, UserResponse
from acadigo.services import users as user_service
from acadigo.services.activity import log_activity
from acadigo.services.storage import StorageBackend

router = APIRouter()


# === Schemas ===

class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    role: UserRole = UserRole.STUDENT
    batch_id: Optional[int] = None
    active: bool = True


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[UserRole] = None
    batch_id: Optional[int] = None
    active: Optional[bool] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(default=None, min_length=6)


# === API endpoints ===

@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    unassigned: bool = False,
    exclude_batch: Optional[int] = Query(None, description="Also include students outside this batch"),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """Admins see everyone; trainers only see students."""
    return user_service.list_users(db, current_user, role, unassigned, exclude_batch)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_service.create_user(db, **payload.model_dump())
    log_activity(
        db, current_user.id, "create_user", ResourceType.USER, user.id,
        details={"role": user.role.value}, meta=client_meta(request),
    )
    return user


@router.put("/profile", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_service.update_profile(
        db, current_user, payload.name, payload.current_password, payload.new_password
    )


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_service.get_user_for(db, current_user, user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = user_service.update_user(db, current_user, user_id, payload.model_dump(exclude_unset=True))
    log_activity(
        db, current_user.id, "update_user", ResourceType.USER, user.id,
        details={"fields": sorted(payload.model_dump(exclude_unset=True, exclude={"password"}))},
        meta=client_meta(request),
    )
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    if user_id == current_user.id:
        raise ValidationError("You cannot delete your own account")
    user_service.delete_user(db, storage, user_id)
    log_activity(db, current_user.id, "delete_user", ResourceType.USER, user_id, meta=client_meta(request))
    return MessageResponse(message="User removed")
