"""PPT API."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from acadigo.api.deps import client_meta, get_current_user, get_notifier, get_storage, require_staff
from acadigo.db import get_db
from acadigo.models import PPT, User
from acadigo.schemas.common import BatchBrief, FileDescriptor, MessageResponse, UserBrief
from acadigo.services import content as content_service
from acadigo.services.batches import student_emails
from acadigo.services.notifications import Notifier
from acadigo.services.storage import StorageBackend

router = APIRouter()


# === Schemas ===

class PPTResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    batch_id: int
    batch: Optional[BatchBrief] = None
    uploaded_by: Optional[UserBrief] = None
    file: Optional[FileDescriptor] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# === API endpoints ===

@router.get("", response_model=List[PPTResponse])
def list_ppts(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return content_service.list_content(db, current_user, PPT)


@router.get("/batch/{batch_id}", response_model=List[PPTResponse])
def list_batch_ppts(batch_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return content_service.list_for_batch(db, current_user, PPT, batch_id)


@router.get("/{ppt_id}", response_model=PPTResponse)
def get_ppt(ppt_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return content_service.get_content(db, current_user, PPT, ppt_id)


@router.post("", response_model=PPTResponse, status_code=status.HTTP_201_CREATED)
async def create_ppt(
    request: Request,
    background_tasks: BackgroundTasks,
    title: str = Form(...),
    batch_id: int = Form(...),
    description: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
):
    """Upload a PPT to a batch and notify its students."""
    ppt = await content_service.create_content(
        db, storage, current_user, PPT,
        {"title": title, "description": description, "batch_id": batch_id},
        file, client_meta(request),
    )
    background_tasks.add_task(
        notifier.new_content,
        "ppt",
        student_emails(db, ppt.batch_id),
        {"title": ppt.title, "description": ppt.description},
    )
    return ppt


@router.put("/{ppt_id}", response_model=PPTResponse)
async def update_ppt(
    ppt_id: int,
    request: Request,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    batch_id: Optional[int] = Form(None),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    return await content_service.update_content(
        db, storage, current_user, PPT, ppt_id,
        {"title": title, "description": description, "batch_id": batch_id},
        file, client_meta(request),
    )


@router.delete("/{ppt_id}", response_model=MessageResponse)
def delete_ppt(
    ppt_id: int,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    content_service.delete_content(db, storage, current_user, PPT, ppt_id, client_meta(request))
    return MessageResponse(message="PPT removed")
