"""Account management."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from acadigo.errors import (
    EmailTaken,
    Forbidden,
    NotFound,
    TrainerOwnsBatches,
    Unauthenticated,
    ValidationError,
)
from acadigo.models import PPT, Assignment, Batch, Submission, User, UserRole
from acadigo.security import hash_password, verify_password
from acadigo.services.access import get_batch_or_404
from acadigo.services.auth import get_user_by_email, normalize_email
from acadigo.services.storage import StorageBackend, discard_files

logger = logging.getLogger(__name__)

SELF_EDITABLE_FIELDS = {"name", "password"}


def _require_student_batch(db: Session, role: UserRole, batch_id: Optional[int]) -> Optional[int]:
    if role != UserRole.STUDENT:
        return None
    if batch_id is None:
        raise ValidationError("Students must be assigned to a batch")
    if not db.get(Batch, batch_id):
        raise ValidationError("Batch not found")
    return batch_id


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    batch_id: Optional[int] = None,
    active: bool = True,
) -> User:
    if get_user_by_email(db, email):
        raise EmailTaken()

    user = User(
        name=name.strip(),
        email=normalize_email(email),
        password_hash=hash_password(password),
        role=role,
        batch_id=_require_student_batch(db, role, batch_id),
        active=active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s", role.value, user.email)
    return user


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def list_users(
    db: Session,
    actor: User,
    role: Optional[UserRole] = None,
    unassigned: bool = False,
    exclude_batch: Optional[int] = None,
) -> list[User]:
    query = db.query(User)
    if actor.role == UserRole.TRAINER:
        # Trainers only ever browse students, e.g. to fill a batch
        role = UserRole.STUDENT
    if role is not None:
        query = query.filter(User.role == role)
    if unassigned and role == UserRole.STUDENT:
        conditions = [User.batch_id.is_(None)]
        if exclude_batch is not None:
            conditions.append(User.batch_id != exclude_batch)
        query = query.filter(or_(*conditions))
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def get_user_for(db: Session, actor: User, user_id: int) -> User:
    user = get_user_or_404(db, user_id)
    if actor.role == UserRole.ADMIN or actor.id == user.id:
        return user
    if actor.role == UserRole.TRAINER and user.role == UserRole.STUDENT:
        if user.batch_id is None:
            return user
        batch = db.get(Batch, user.batch_id)
        if batch is not None and batch.trainer_id == actor.id:
            return user
        raise Forbidden("Not authorized to access this student")
    raise Forbidden("Not authorized to access this user")


def update_user(db: Session, actor: User, user_id: int, changes: Dict[str, Any]) -> User:
    """Admins may change any field; everyone else only their own name and password."""
    user = get_user_or_404(db, user_id)
    is_admin = actor.role == UserRole.ADMIN
    if not is_admin and actor.id != user.id:
        raise Forbidden("Not authorized to update this user")
    if not is_admin:
        changes = {k: v for k, v in changes.items() if k in SELF_EDITABLE_FIELDS}

    if "email" in changes and changes["email"] is not None:
        email = normalize_email(changes["email"])
        existing = get_user_by_email(db, email)
        if existing and existing.id != user.id:
            raise EmailTaken()
        user.email = email

    if "role" in changes or "batch_id" in changes:
        role = UserRole(changes.get("role") or user.role)
        batch_id = changes["batch_id"] if "batch_id" in changes else user.batch_id
        if user.role == UserRole.TRAINER and role != UserRole.TRAINER:
            if db.query(Batch).filter(Batch.trainer_id == user.id).count():
                raise TrainerOwnsBatches()
        user.batch_id = _require_student_batch(db, role, batch_id)
        user.role = role

    if changes.get("name"):
        user.name = changes["name"].strip()
    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])
    if "active" in changes and changes["active"] is not None:
        user.active = bool(changes["active"])

    db.commit()
    db.refresh(user)
    return user


def update_profile(
    db: Session,
    user: User,
    name: Optional[str] = None,
    current_password: Optional[str] = None,
    new_password: Optional[str] = None,
) -> User:
    if name:
        user.name = name.strip()
    if new_password:
        if not current_password or not verify_password(current_password, user.password_hash):
            raise Unauthenticated("Current password is incorrect")
        user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, storage: StorageBackend, user_id: int) -> None:
    """Hard delete. A student's submissions and their files go with the account.

    Content the user uploaded stays, with ``uploaded_by`` cleared.
    """
    user = get_user_or_404(db, user_id)
    if user.role == UserRole.TRAINER and db.query(Batch).filter(Batch.trainer_id == user.id).count():
        raise TrainerOwnsBatches()

    submissions = db.query(Submission).filter(Submission.student_id == user.id).all()
    paths = [p for s in submissions for p in s.stored_paths()]
    for submission in submissions:
        db.delete(submission)
    db.query(Submission).filter(Submission.graded_by_id == user.id).update(
        {Submission.graded_by_id: None}, synchronize_session=False
    )
    for model in (PPT, Assignment):
        db.query(model).filter(model.uploaded_by_id == user.id).update(
            {model.uploaded_by_id: None}, synchronize_session=False
        )
    db.delete(user)
    db.commit()
    discard_files(storage, paths)


def assign_to_batch(db: Session, student_id: int, batch_id: int) -> User:
    get_batch_or_404(db, batch_id)
    student = get_user_or_404(db, student_id)
    if student.role != UserRole.STUDENT:
        raise ValidationError("Selected user is not a student")
    student.batch_id = batch_id
    db.commit()
    db.refresh(student)
    return student
