"""Submission API: reads and grading."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from acadigo.api.deps import (
    client_meta,
    get_current_user,
    get_notifier,
    get_storage,
    require_staff,
    require_student,
)
from acadigo.db import get_db
from acadigo.models import SubmissionStatus, User
from acadigo.schemas.common import FileDescriptor, UserBrief
from acadigo.services import submissions as submission_service
from acadigo.services.notifications import Notifier
from acadigo.services.storage import StorageBackend

router = APIRouter()


# === Schemas ===

class AssignmentBrief(BaseModel):
    id: int
    title: str
    deadline: datetime
    max_marks: int

    model_config = {"from_attributes": True}


class SubmissionResponse(BaseModel):
    id: int
    assignment_id: int
    assignment: Optional[AssignmentBrief] = None
    student_id: int
    student: Optional[UserBrief] = None
    files: List[FileDescriptor] = Field(default_factory=list)
    submitted_at: datetime
    status: SubmissionStatus
    marks: Optional[float] = None
    feedback: Optional[str] = None
    feedback_image: Optional[FileDescriptor] = None
    graded_by: Optional[UserBrief] = None
    graded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# === API endpoints ===

@router.get("/my", response_model=List[SubmissionResponse])
def my_submissions(current_user: User = Depends(require_student), db: Session = Depends(get_db)):
    return submission_service.list_mine(db, current_user)


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return submission_service.get_submission(db, current_user, submission_id)


@router.put("/{submission_id}/grade", response_model=SubmissionResponse)
async def grade_submission(
    submission_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    marks: Optional[float] = Form(None),
    feedback: Optional[str] = Form(None),
    feedback_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
):
    """Grade or re-grade; the student is emailed once the grade is stored."""
    submission = await submission_service.grade(
        db, storage, current_user, submission_id, marks, feedback, feedback_image, client_meta(request)
    )

    student = submission.student
    if student is not None:
        background_tasks.add_task(
            notifier.assignment_graded,
            student.email,
            {
                "title": submission.assignment.title,
                "marks": submission.marks,
                "max_marks": submission.assignment.max_marks,
                "feedback": submission.feedback,
            },
        )
    return submission
