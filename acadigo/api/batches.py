"""Batch API: CRUD plus the student roster."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from acadigo.api.deps import client_meta, get_current_user, get_storage, require_staff
from acadigo.db import get_db
from acadigo.models import Batch, ResourceType, User
from acadigo.schemas.common import MessageResponse, UserBrief, UserResponse
from acadigo.services import batches as batch_service
from acadigo.services.activity import log_activity
from acadigo.services.storage import StorageBackend

router = APIRouter()


# === Schemas ===

class BatchCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    trainer_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: bool = True


class BatchUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    trainer_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: Optional[bool] = None


class BatchResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    trainer_id: int
    trainer: Optional[UserBrief] = None
    start_date: datetime
    end_date: Optional[datetime]
    active: bool
    created_at: datetime
    student_count: int = 0

    model_config = {"from_attributes": True}


class StudentAssign(BaseModel):
    student_id: int


def to_response(batch: Batch, student_count: int = 0) -> BatchResponse:
    return BatchResponse.model_validate(batch).model_copy(update={"student_count": student_count})


# === API endpoints ===

@router.get("", response_model=List[BatchResponse])
def list_batches(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Admin: all batches; trainer: own batches; student: their batch."""
    return [to_response(b, n) for b, n in batch_service.list_batches(db, current_user)]


@router.post("", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
def create_batch(
    payload: BatchCreate,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    batch = batch_service.create_batch(db, current_user, **payload.model_dump())
    log_activity(
        db, current_user.id, "create_batch", ResourceType.BATCH, batch.id,
        details={"name": batch.name, "trainer_id": batch.trainer_id}, meta=client_meta(request),
    )
    return to_response(batch)


@router.get("/{batch_id}", response_model=BatchResponse)
def get_batch(batch_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    batch, count = batch_service.get_batch(db, current_user, batch_id)
    return to_response(batch, count)


@router.put("/{batch_id}", response_model=BatchResponse)
def update_batch(
    batch_id: int,
    payload: BatchUpdate,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    batch = batch_service.update_batch(db, current_user, batch_id, dict(changes))
    log_activity(
        db, current_user.id, "update_batch", ResourceType.BATCH, batch.id,
        details={"fields": sorted(changes)}, meta=client_meta(request),
    )
    return to_response(batch, batch_service.student_count(db, batch.id))


@router.delete("/{batch_id}", response_model=MessageResponse)
def delete_batch(
    batch_id: int,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    batch_service.delete_batch(db, storage, current_user, batch_id)
    log_activity(db, current_user.id, "delete_batch", ResourceType.BATCH, batch_id, meta=client_meta(request))
    return MessageResponse(message="Batch removed")


@router.get("/{batch_id}/students", response_model=List[UserResponse])
def list_students(batch_id: int, current_user: User = Depends(require_staff), db: Session = Depends(get_db)):
    return batch_service.list_students(db, current_user, batch_id)


@router.post("/{batch_id}/students", response_model=UserResponse)
def add_student(
    batch_id: int,
    payload: StudentAssign,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    student = batch_service.add_student(db, current_user, batch_id, payload.student_id)
    log_activity(
        db, current_user.id, "add_student", ResourceType.BATCH, batch_id,
        details={"student_id": student.id}, meta=client_meta(request),
    )
    return student


@router.delete("/{batch_id}/students/{student_id}", response_model=MessageResponse)
def remove_student(
    batch_id: int,
    student_id: int,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    batch_service.remove_student(db, current_user, batch_id, student_id)
    log_activity(
        db, current_user.id, "remove_student", ResourceType.BATCH, batch_id,
        details={"student_id": student_id}, meta=client_meta(request),
    )
    return MessageResponse(message="Student removed from batch")
