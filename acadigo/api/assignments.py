"""Assignment API, including submitting to an assignment."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from acadigo.api.deps import (
    client_meta,
    get_current_user,
    get_notifier,
    get_storage,
    require_staff,
    require_student,
)
from acadigo.api.submissions import SubmissionResponse
from acadigo.db import get_db
from acadigo.models import Assignment, User
from acadigo.schemas.common import BatchBrief, FileDescriptor, MessageResponse, UserBrief
from acadigo.services import content as content_service
from acadigo.services import submissions as submission_service
from acadigo.services.batches import student_emails
from acadigo.services.notifications import Notifier
from acadigo.services.storage import StorageBackend

router = APIRouter()


# === Schemas ===

class AssignmentResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    batch_id: int
    batch: Optional[BatchBrief] = None
    uploaded_by: Optional[UserBrief] = None
    file: Optional[FileDescriptor] = None
    deadline: datetime
    allow_resubmission: bool
    max_marks: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# === API endpoints ===

@router.get("", response_model=List[AssignmentResponse])
def list_assignments(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return content_service.list_content(db, current_user, Assignment)


@router.get("/batch/{batch_id}", response_model=List[AssignmentResponse])
def list_batch_assignments(
    batch_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return content_service.list_for_batch(db, current_user, Assignment, batch_id)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
def get_assignment(
    assignment_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return content_service.get_content(db, current_user, Assignment, assignment_id)


@router.post("", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    request: Request,
    background_tasks: BackgroundTasks,
    title: str = Form(...),
    batch_id: int = Form(...),
    deadline: datetime = Form(...),
    description: Optional[str] = Form(None),
    max_marks: int = Form(100),
    allow_resubmission: bool = Form(True),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
):
    """Post an assignment (the brief file is optional) and notify the batch."""
    assignment = await content_service.create_content(
        db, storage, current_user, Assignment,
        {
            "title": title,
            "description": description,
            "batch_id": batch_id,
            "deadline": deadline,
            "max_marks": max_marks,
            "allow_resubmission": allow_resubmission,
        },
        file, client_meta(request),
    )
    background_tasks.add_task(
        notifier.new_content,
        "assignment",
        student_emails(db, assignment.batch_id),
        {"title": assignment.title, "description": assignment.description, "deadline": assignment.deadline},
    )
    return assignment


@router.put("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: int,
    request: Request,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    batch_id: Optional[int] = Form(None),
    deadline: Optional[datetime] = Form(None),
    max_marks: Optional[int] = Form(None),
    allow_resubmission: Optional[bool] = Form(None),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    return await content_service.update_content(
        db, storage, current_user, Assignment, assignment_id,
        {
            "title": title,
            "description": description,
            "batch_id": batch_id,
            "deadline": deadline,
            "max_marks": max_marks,
            "allow_resubmission": allow_resubmission,
        },
        file, client_meta(request),
    )


@router.delete("/{assignment_id}", response_model=MessageResponse)
def delete_assignment(
    assignment_id: int,
    request: Request,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    """Deletes the assignment together with every submission and stored file."""
    content_service.delete_content(db, storage, current_user, Assignment, assignment_id, client_meta(request))
    return MessageResponse(message="Assignment removed")


@router.post("/{assignment_id}/submit", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_assignment(
    assignment_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    files: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
):
    submission, is_late = await submission_service.submit(
        db, storage, current_user, assignment_id, files, client_meta(request)
    )

    assignment = submission.assignment
    trainer = assignment.batch.trainer if assignment.batch else None
    background_tasks.add_task(
        notifier.submission_received,
        trainer.email if trainer else None,
        {"title": assignment.title, "student_name": current_user.name, "late": is_late},
    )
    return submission


@router.get("/{assignment_id}/submissions", response_model=List[SubmissionResponse])
def list_submissions(
    assignment_id: int, current_user: User = Depends(require_staff), db: Session = Depends(get_db)
):
    return submission_service.list_for_assignment(db, current_user, assignment_id)


@router.get("/{assignment_id}/submission", response_model=Optional[SubmissionResponse])
def get_submission_for_student(
    assignment_id: int,
    student_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The caller's own submission, or a named student's for trainers and admins."""
    return submission_service.get_for_student(db, current_user, assignment_id, student_id)
