"""Batch registry and rosters.

Rosters are always queried through ``User.batch_id``; a batch never caches
its students.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from acadigo.errors import BatchHasStudents, Forbidden, NotFound, ValidationError
from acadigo.models import PPT, Assignment, Batch, User, UserRole
from acadigo.services import content as content_service
from acadigo.services.access import ensure_batch_access, get_batch_or_404
from acadigo.services.storage import StorageBackend, discard_files
from acadigo.services.users import assign_to_batch

logger = logging.getLogger(__name__)


def student_count(db: Session, batch_id: int) -> int:
    return (
        db.query(func.count(User.id))
        .filter(User.batch_id == batch_id, User.role == UserRole.STUDENT)
        .scalar()
    )


def roster(db: Session, batch_id: int) -> list[User]:
    return (
        db.query(User)
        .filter(User.batch_id == batch_id, User.role == UserRole.STUDENT)
        .order_by(User.name.asc())
        .all()
    )


def student_emails(db: Session, batch_id: int) -> list[str]:
    """Active students of a batch, used as notification recipients."""
    rows = (
        db.query(User.email)
        .filter(User.batch_id == batch_id, User.role == UserRole.STUDENT, User.active.is_(True))
        .all()
    )
    return [row[0] for row in rows]


def _require_trainer(db: Session, trainer_id: int) -> User:
    trainer = db.get(User, trainer_id)
    if not trainer:
        raise NotFound("Trainer not found")
    if trainer.role != UserRole.TRAINER:
        raise ValidationError("Selected user is not a trainer")
    return trainer


def list_batches(db: Session, actor: User) -> list[Tuple[Batch, int]]:
    query = db.query(Batch)
    if actor.role == UserRole.TRAINER:
        query = query.filter(Batch.trainer_id == actor.id)
    elif actor.role == UserRole.STUDENT:
        query = query.filter(Batch.id == actor.batch_id)
    batches = query.order_by(Batch.created_at.desc(), Batch.id.desc()).all()
    return [(batch, student_count(db, batch.id)) for batch in batches]


def get_batch(db: Session, actor: User, batch_id: int) -> Tuple[Batch, int]:
    batch = get_batch_or_404(db, batch_id)
    ensure_batch_access(actor, batch, action="view")
    return batch, student_count(db, batch.id)


def create_batch(
    db: Session,
    actor: User,
    name: str,
    trainer_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    description: Optional[str] = None,
    active: bool = True,
) -> Batch:
    """Trainers always own what they create; admins must name a trainer."""
    if actor.role == UserRole.TRAINER:
        if trainer_id is not None and trainer_id != actor.id:
            raise Forbidden("Trainers can only create batches they own")
        trainer_id = actor.id
    if trainer_id is None:
        raise ValidationError("Please provide name, trainer, and start date")
    _require_trainer(db, trainer_id)
    if db.query(Batch).filter(Batch.name == name).first():
        raise ValidationError("A batch with this name already exists")

    batch = Batch(
        name=name,
        description=description,
        trainer_id=trainer_id,
        end_date=end_date,
        active=active,
    )
    if start_date is not None:
        batch.start_date = start_date
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


def update_batch(db: Session, actor: User, batch_id: int, changes: Dict[str, Any]) -> Batch:
    batch = get_batch_or_404(db, batch_id)
    ensure_batch_access(actor, batch, write=True, action="update")

    trainer_id = changes.pop("trainer_id", None)
    if trainer_id is not None and trainer_id != batch.trainer_id:
        if actor.role != UserRole.ADMIN:
            raise Forbidden("Only admin can change batch trainer")
        _require_trainer(db, trainer_id)
        batch.trainer_id = trainer_id

    name = changes.get("name")
    if name and name != batch.name:
        if db.query(Batch).filter(Batch.name == name, Batch.id != batch.id).first():
            raise ValidationError("A batch with this name already exists")
    for key, value in changes.items():
        if value is not None:
            setattr(batch, key, value)

    db.commit()
    db.refresh(batch)
    return batch


def delete_batch(db: Session, storage: StorageBackend, actor: User, batch_id: int) -> None:
    """Refuse while students reference the batch, else remove it with its content."""
    batch = get_batch_or_404(db, batch_id)
    ensure_batch_access(actor, batch, write=True, action="delete")

    if student_count(db, batch.id) > 0:
        raise BatchHasStudents()

    paths = []
    for assignment in db.query(Assignment).filter(Assignment.batch_id == batch.id).all():
        paths.extend(content_service.remove_assignment(db, assignment))
    for ppt in db.query(PPT).filter(PPT.batch_id == batch.id).all():
        paths.extend(content_service.remove_ppt(db, ppt))
    db.flush()

    db.delete(batch)
    db.commit()
    discard_files(storage, paths)
    logger.info("Batch %s deleted by user %s", batch_id, actor.id)


def list_students(db: Session, actor: User, batch_id: int) -> list[User]:
    batch = get_batch_or_404(db, batch_id)
    ensure_batch_access(actor, batch, write=True, action="view students in")
    return roster(db, batch.id)


def add_student(db: Session, actor: User, batch_id: int, student_id: int) -> User:
    batch = get_batch_or_404(db, batch_id)
    ensure_batch_access(actor, batch, write=True, action="add students to")
    return assign_to_batch(db, student_id, batch.id)


def remove_student(db: Session, actor: User, batch_id: int, student_id: int) -> User:
    batch = get_batch_or_404(db, batch_id)
    ensure_batch_access(actor, batch, write=True, action="remove students from")

    student = (
        db.query(User)
        .filter(User.id == student_id, User.role == UserRole.STUDENT, User.batch_id == batch.id)
        .first()
    )
    if not student:
        raise NotFound("Student not found in this batch")
    student.batch_id = None
    db.commit()
    db.refresh(student)
    return student
