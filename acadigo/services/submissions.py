"""Submission lifecycle: submit, resubmit, grade.

A student holds at most one submission per assignment. Resubmitting swaps
the file list in place and clears any previous grade; grading moves the row
to ``graded`` and may be repeated.
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from acadigo.errors import (
    Forbidden,
    InvalidScore,
    NoFilesProvided,
    NotFound,
    ResubmissionNotAllowed,
    ValidationError,
)
from acadigo.models import (
    AccessAction,
    Assignment,
    ResourceType,
    Submission,
    SubmissionStatus,
    User,
    UserRole,
)
from acadigo.services.access import (
    ensure_can_submit,
    ensure_content_access,
    ensure_grading_authority,
    ensure_submission_list_access,
    ensure_submission_read,
)
from acadigo.services.activity import log_activity, record_access
from acadigo.services.storage import StorageBackend, build_key, discard_files
from acadigo.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

Meta = Optional[Dict[str, Optional[str]]]


def get_assignment_or_404(db: Session, assignment_id: int) -> Assignment:
    assignment = db.get(Assignment, assignment_id)
    if not assignment:
        raise NotFound("Assignment not found")
    return assignment


def get_submission_or_404(db: Session, submission_id: int) -> Submission:
    submission = db.get(Submission, submission_id)
    if not submission:
        raise NotFound("Submission not found")
    return submission


def find_submission(db: Session, assignment_id: int, student_id: int) -> Optional[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
        .first()
    )


def is_past_deadline(assignment: Assignment, now=None) -> bool:
    return (now or utcnow()) > as_utc(assignment.deadline)


def _replace_files(submission: Submission, files: List[dict], now, status: SubmissionStatus) -> None:
    submission.files = files
    submission.submitted_at = now
    submission.status = status
    submission.marks = None
    submission.feedback = None
    submission.feedback_image = None
    submission.graded_by_id = None
    submission.graded_at = None


async def _upload_all(
    storage: StorageBackend, student: User, uploads: List[UploadFile]
) -> List[dict]:
    descriptors: List[dict] = []
    try:
        for upload in uploads:
            key = build_key("submissions", upload.filename, student.id)
            descriptor = await storage.upload(upload, key, acting_user=student)
            descriptors.append(descriptor.model_dump())
    except Exception:
        discard_files(storage, [d["file_path"] for d in descriptors])
        raise
    return descriptors


async def submit(
    db: Session,
    storage: StorageBackend,
    student: User,
    assignment_id: int,
    uploads: List[UploadFile],
    meta: Meta = None,
) -> Tuple[Submission, bool]:
    """Create or replace the caller's submission. Returns ``(submission, is_late)``.

    Every rejection happens before a file is uploaded or deleted, so a
    refused resubmission leaves the stored files untouched.
    """
    assignment = get_assignment_or_404(db, assignment_id)
    ensure_can_submit(student, assignment)

    uploads = [u for u in uploads or [] if u is not None and u.filename]
    if not uploads:
        raise NoFilesProvided()

    now = utcnow()
    is_late = is_past_deadline(assignment, now)
    status = SubmissionStatus.LATE if is_late else SubmissionStatus.SUBMITTED

    submission = find_submission(db, assignment.id, student.id)
    if submission is not None and is_late and not assignment.allow_resubmission:
        raise ResubmissionNotAllowed()

    descriptors = await _upload_all(storage, student, uploads)

    created = False
    if submission is None:
        submission = Submission(
            assignment_id=assignment.id,
            student_id=student.id,
            files=descriptors,
            submitted_at=now,
            status=status,
        )
        db.add(submission)
        try:
            db.commit()
            created = True
        except IntegrityError:
            # A concurrent submit inserted the row first
            db.rollback()
            submission = find_submission(db, assignment.id, student.id)
            if submission is None or (is_late and not assignment.allow_resubmission):
                discard_files(storage, [d["file_path"] for d in descriptors])
                if submission is None:
                    raise
                raise ResubmissionNotAllowed()
            logger.info(
                "Concurrent submission for assignment %s by student %s; replacing",
                assignment.id, student.id,
            )

    if not created:
        old_paths = submission.stored_paths()
        _replace_files(submission, descriptors, now, status)
        db.commit()
        discard_files(storage, old_paths)

    db.refresh(submission)

    log_activity(
        db, student.id, "submit_assignment", ResourceType.SUBMISSION, submission.id,
        details={
            "assignment_id": assignment.id,
            "is_late": is_late,
            "file_count": len(descriptors),
            "resubmission": not created,
        },
        meta=meta,
    )
    record_access(db, student.id, ResourceType.ASSIGNMENT, assignment.id, AccessAction.SUBMIT, meta=meta)
    return submission, is_late


def _validate_marks(marks: Optional[float], max_marks: int) -> float:
    if marks is None:
        raise InvalidScore("Marks are required")
    if math.isnan(marks) or marks < 0 or marks > max_marks:
        raise InvalidScore(f"Marks should be between 0 and {max_marks}")
    return float(marks)


async def grade(
    db: Session,
    storage: StorageBackend,
    grader: User,
    submission_id: int,
    marks: Optional[float],
    feedback: Optional[str] = None,
    feedback_image: Optional[UploadFile] = None,
    meta: Meta = None,
) -> Submission:
    """Grade or re-grade a submission.

    Invalid marks are rejected before anything changes. A new feedback image
    replaces the previous one, which is deleted after the commit.
    """
    if grader.role == UserRole.STUDENT:
        raise Forbidden("Not authorized to grade submissions")
    if marks is None:
        raise InvalidScore("Marks are required")

    submission = get_submission_or_404(db, submission_id)
    assignment = submission.assignment
    if assignment is None:
        raise NotFound("Associated assignment not found")
    ensure_grading_authority(db, grader, assignment)
    marks = _validate_marks(marks, assignment.max_marks)

    old_image_path = None
    if feedback_image is not None and feedback_image.filename:
        if not (feedback_image.content_type or "").startswith("image/"):
            raise ValidationError("Only image files are allowed for feedback")
        descriptor = await storage.upload(
            feedback_image, build_key("feedback", feedback_image.filename, submission.id)
        )
        if submission.feedback_image:
            old_image_path = submission.feedback_image.get("file_path")
        submission.feedback_image = descriptor.model_dump()

    submission.marks = marks
    submission.feedback = feedback
    submission.status = SubmissionStatus.GRADED
    submission.graded_by_id = grader.id
    submission.graded_at = utcnow()
    db.commit()
    db.refresh(submission)

    if old_image_path:
        discard_files(storage, [old_image_path])

    log_activity(
        db, grader.id, "grade_submission", ResourceType.SUBMISSION, submission.id,
        details={"assignment_id": assignment.id, "student_id": submission.student_id, "marks": marks},
        meta=meta,
    )
    record_access(db, grader.id, ResourceType.ASSIGNMENT, assignment.id, AccessAction.GRADE, meta=meta)
    return submission


def list_for_assignment(db: Session, actor: User, assignment_id: int) -> List[Submission]:
    assignment = get_assignment_or_404(db, assignment_id)
    ensure_submission_list_access(db, actor, assignment)
    return (
        db.query(Submission)
        .filter(Submission.assignment_id == assignment.id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )


def get_for_student(
    db: Session, actor: User, assignment_id: int, student_id: Optional[int] = None
) -> Optional[Submission]:
    """Students read their own; trainers and admins name the student."""
    assignment = get_assignment_or_404(db, assignment_id)
    if actor.role == UserRole.STUDENT:
        ensure_content_access(db, actor, assignment.batch_id, kind="assignment")
        return find_submission(db, assignment.id, actor.id)

    ensure_submission_list_access(db, actor, assignment)
    if student_id is None:
        raise ValidationError("Student ID is required")
    return find_submission(db, assignment.id, student_id)


def list_mine(db: Session, student: User) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.student_id == student.id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )


def get_submission(db: Session, actor: User, submission_id: int) -> Submission:
    submission = get_submission_or_404(db, submission_id)
    ensure_submission_read(db, actor, submission)
    return submission
