"""Role guard and per-resource ownership rules.

``authorize`` only looks at roles. Ownership is resource specific and every
service calls the matching ``ensure_*`` helper after the role check passes.
Trainer ownership is always read from the batch row, never from a field
cached on the content.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from acadigo.errors import Forbidden, NotFound
from acadigo.models import Assignment, Batch, Submission, User, UserRole

logger = logging.getLogger(__name__)


def authorize(user: User, allowed_roles: Iterable[UserRole]) -> None:
    """Pass if ``user`` holds one of ``allowed_roles``; admins always pass."""
    if user.role == UserRole.ADMIN:
        return

    allowed = {UserRole(r) for r in allowed_roles}
    if user.role not in allowed:
        logger.info("User %s with role %s denied; requires %s", user.id, user.role.value, allowed)
        raise Forbidden.for_roles(user.role.value, (r.value for r in allowed))


def get_batch_or_404(db: Session, batch_id: int) -> Batch:
    batch = db.get(Batch, batch_id)
    if not batch:
        raise NotFound("Batch not found")
    return batch


def owns_batch(user: User, batch: Optional[Batch]) -> bool:
    return batch is not None and batch.trainer_id == user.id


def in_batch(user: User, batch_id: Optional[int]) -> bool:
    return user.batch_id is not None and user.batch_id == batch_id


def ensure_batch_access(user: User, batch: Batch, write: bool = False, action: str = "access") -> None:
    """Trainer must own the batch; a student may only read their own batch."""
    if user.role == UserRole.ADMIN:
        return
    if user.role == UserRole.TRAINER and owns_batch(user, batch):
        return
    if user.role == UserRole.STUDENT and not write and in_batch(user, batch.id):
        return
    raise Forbidden(f"Not authorized to {action} this batch")


def ensure_content_access(
    db: Session, user: User, batch_id: int, write: bool = False, kind: str = "content"
) -> None:
    """Ownership for PPTs and assignments, resolved through their batch."""
    if user.role == UserRole.ADMIN:
        return
    if user.role == UserRole.STUDENT:
        if write or not in_batch(user, batch_id):
            raise Forbidden(f"Not authorized to {'modify' if write else 'view'} this {kind}")
        return
    if not owns_batch(user, db.get(Batch, batch_id)):
        raise Forbidden(f"Not authorized to {'modify' if write else 'view'} this {kind}")


def ensure_can_submit(user: User, assignment: Assignment) -> None:
    if user.role != UserRole.STUDENT:
        raise Forbidden("Only students can submit assignments")
    if not in_batch(user, assignment.batch_id):
        raise Forbidden("You are not authorized to submit to this assignment")


def ensure_grading_authority(db: Session, user: User, assignment: Assignment) -> None:
    """Admin, or the trainer owning the assignment's batch. Never a student."""
    if user.role == UserRole.STUDENT:
        raise Forbidden("Not authorized to grade submissions")
    if user.role == UserRole.TRAINER and not owns_batch(user, db.get(Batch, assignment.batch_id)):
        raise Forbidden("Not authorized to grade submissions for this batch")


def ensure_submission_list_access(db: Session, user: User, assignment: Assignment) -> None:
    if user.role == UserRole.STUDENT:
        raise Forbidden("Not authorized to view all submissions")
    if user.role == UserRole.TRAINER and not owns_batch(user, db.get(Batch, assignment.batch_id)):
        raise Forbidden("Not authorized to view submissions for this batch")


def ensure_submission_read(db: Session, user: User, submission: Submission) -> None:
    if user.role == UserRole.STUDENT:
        if submission.student_id != user.id:
            raise Forbidden("Not authorized to view this submission")
        return
    ensure_submission_list_access(db, user, submission.assignment)
