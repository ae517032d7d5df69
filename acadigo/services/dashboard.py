"""Role-scoped dashboard aggregates."""

from typing import Any, Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from acadigo.errors import ValidationError
from acadigo.models import (
    PPT,
    AccessAction,
    AccessLog,
    ActivityLog,
    Assignment,
    Batch,
    Submission,
    SubmissionStatus,
    User,
    UserRole,
)
from acadigo.utils.clock import start_of_day, utcnow

RECENT_USERS = 5
PENDING_SUBMISSIONS = 5
RECENT_PPTS = 3


def _count(db: Session, column, *criteria) -> int:
    return db.query(func.count(column)).filter(*criteria).scalar() or 0


def admin_dashboard(db: Session) -> Dict[str, Any]:
    today = start_of_day(utcnow())
    stats = {
        "total_users": _count(db, User.id),
        "trainers": _count(db, User.id, User.role == UserRole.TRAINER),
        "students": _count(db, User.id, User.role == UserRole.STUDENT),
        "total_batches": _count(db, Batch.id),
        "active_batches": _count(db, Batch.id, Batch.active.is_(True)),
        "total_ppts": _count(db, PPT.id),
        "total_assignments": _count(db, Assignment.id),
        "today_views": _count(
            db, AccessLog.id, AccessLog.action == AccessAction.VIEW, AccessLog.timestamp >= today
        ),
        "today_submissions": _count(db, Submission.id, Submission.submitted_at >= today),
        "today_activity": _count(db, ActivityLog.id, ActivityLog.created_at >= today),
    }
    recent_users = (
        db.query(User).order_by(User.created_at.desc(), User.id.desc()).limit(RECENT_USERS).all()
    )
    return {"stats": stats, "recent_users": recent_users}


def trainer_dashboard(db: Session, trainer: User) -> Dict[str, Any]:
    batches = (
        db.query(Batch)
        .filter(Batch.trainer_id == trainer.id)
        .order_by(Batch.created_at.desc(), Batch.id.desc())
        .all()
    )
    batch_ids = [b.id for b in batches]

    pending_query = (
        db.query(Submission)
        .join(Assignment, Assignment.id == Submission.assignment_id)
        .filter(Assignment.batch_id.in_(batch_ids), Submission.status != SubmissionStatus.GRADED)
    )
    pending_total = pending_query.count() if batch_ids else 0
    pending = (
        pending_query.order_by(Submission.submitted_at.desc()).limit(PENDING_SUBMISSIONS).all()
        if batch_ids
        else []
    )

    stats = {
        "total_students": (
            _count(db, User.id, User.batch_id.in_(batch_ids), User.role == UserRole.STUDENT)
            if batch_ids
            else 0
        ),
        "batch_count": len(batches),
        "ppt_count": _count(db, PPT.id, PPT.uploaded_by_id == trainer.id),
        "assignment_count": _count(db, Assignment.id, Assignment.uploaded_by_id == trainer.id),
        "pending_submissions": pending_total,
    }
    return {"stats": stats, "batches": batches, "pending_submissions": pending}


def student_dashboard(db: Session, student: User) -> Dict[str, Any]:
    batch = db.get(Batch, student.batch_id) if student.batch_id is not None else None
    if batch is None:
        raise ValidationError("Student not assigned to any batch")

    ppts = (
        db.query(PPT)
        .filter(PPT.batch_id == batch.id)
        .order_by(PPT.created_at.desc(), PPT.id.desc())
        .limit(RECENT_PPTS)
        .all()
    )
    assignments = (
        db.query(Assignment)
        .filter(Assignment.batch_id == batch.id)
        .order_by(Assignment.deadline.asc(), Assignment.id.asc())
        .all()
    )
    submissions = (
        db.query(Submission)
        .filter(Submission.student_id == student.id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )

    submitted = {s.assignment_id for s in submissions}
    stats = {
        "batch": {
            "id": batch.id,
            "name": batch.name,
            "description": batch.description,
            "start_date": batch.start_date,
            "end_date": batch.end_date,
            "trainer_name": batch.trainer.name if batch.trainer else "Unassigned",
        },
        "available_ppts": len(ppts),
        "pending_assignments": sum(1 for a in assignments if a.id not in submitted),
        "completed_assignments": len(submissions),
    }
    return {"stats": stats, "ppts": ppts, "assignments": assignments, "submissions": submissions}


def build_dashboard(db: Session, user: User) -> Dict[str, Any]:
    if user.role == UserRole.ADMIN:
        return admin_dashboard(db)
    if user.role == UserRole.TRAINER:
        return trainer_dashboard(db, user)
    return student_dashboard(db, user)
