"""PPT and assignment stores.

Both content kinds share one lifecycle, so the functions here take the model
class and look up the per-kind names in ``KINDS``.
"""

import logging
from typing import Any, Dict, List, Optional, Type, Union

from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from acadigo.errors import NotFound, ValidationError
from acadigo.models import PPT, Assignment, Batch, ResourceType, Submission, User, UserRole
from acadigo.services.access import ensure_content_access, get_batch_or_404
from acadigo.services.activity import log_activity
from acadigo.services.storage import StorageBackend, build_key, discard_files
from acadigo.utils.clock import as_utc

logger = logging.getLogger(__name__)

Content = Union[PPT, Assignment]
ContentModel = Type[Content]

# model -> (label, storage folder, audit resource type)
KINDS = {
    PPT: ("PPT", "ppts", ResourceType.PPT),
    Assignment: ("assignment", "assignments", ResourceType.ASSIGNMENT),
}


def _label(model: ContentModel) -> str:
    return KINDS[model][0]


def list_content(db: Session, actor: User, model: ContentModel) -> List[Content]:
    query = db.query(model)
    if actor.role == UserRole.STUDENT:
        if actor.batch_id is None:
            raise ValidationError("You are not assigned to any batch")
        query = query.filter(model.batch_id == actor.batch_id)
    elif actor.role == UserRole.TRAINER:
        query = query.join(Batch, Batch.id == model.batch_id).filter(
            or_(model.uploaded_by_id == actor.id, Batch.trainer_id == actor.id)
        )
    if model is Assignment:
        return query.order_by(Assignment.deadline.asc(), Assignment.id.asc()).all()
    return query.order_by(model.created_at.desc(), model.id.desc()).all()


def list_for_batch(db: Session, actor: User, model: ContentModel, batch_id: int) -> List[Content]:
    get_batch_or_404(db, batch_id)
    ensure_content_access(db, actor, batch_id, kind=f"{_label(model)}s of this batch")
    query = db.query(model).filter(model.batch_id == batch_id)
    if model is Assignment:
        return query.order_by(Assignment.deadline.asc(), Assignment.id.asc()).all()
    return query.order_by(model.created_at.desc(), model.id.desc()).all()


def _check_fields(fields: Dict[str, Any]) -> None:
    if fields.get("deadline") is not None:
        fields["deadline"] = as_utc(fields["deadline"])
    if fields.get("max_marks") is not None and fields["max_marks"] <= 0:
        raise ValidationError("Max marks must be a positive number")
    if "title" in fields and fields["title"] is not None and not fields["title"].strip():
        raise ValidationError("Title is required")


def get_content_or_404(db: Session, model: ContentModel, item_id: int) -> Content:
    item = db.get(model, item_id)
    if not item:
        raise NotFound(f"{_label(model)} not found")
    return item


def get_content(db: Session, actor: User, model: ContentModel, item_id: int) -> Content:
    item = get_content_or_404(db, model, item_id)
    ensure_content_access(db, actor, item.batch_id, kind=_label(model))
    return item


async def create_content(
    db: Session,
    storage: StorageBackend,
    actor: User,
    model: ContentModel,
    fields: Dict[str, Any],
    upload: Optional[UploadFile] = None,
    meta: Optional[Dict[str, Optional[str]]] = None,
) -> Content:
    """Create a PPT (file required) or an assignment (file optional)."""
    label, folder, resource_type = KINDS[model]
    get_batch_or_404(db, fields["batch_id"])
    _check_fields(fields)
    ensure_content_access(db, actor, fields["batch_id"], write=True, kind=f"{label}s of this batch")
    if model is PPT and upload is None:
        raise ValidationError("Please upload a file")

    item = model(uploaded_by_id=actor.id, **fields)
    if upload is not None:
        descriptor = await storage.upload(upload, build_key(folder, upload.filename))
        item.attach_file(descriptor.model_dump())

    try:
        db.add(item)
        db.commit()
    except Exception:
        db.rollback()
        discard_files(storage, [item.file_path])
        raise
    db.refresh(item)

    log_activity(
        db, actor.id, f"create_{resource_type.value}", resource_type, item.id,
        details={"title": item.title, "batch_id": item.batch_id}, meta=meta,
    )
    return item


async def update_content(
    db: Session,
    storage: StorageBackend,
    actor: User,
    model: ContentModel,
    item_id: int,
    changes: Dict[str, Any],
    upload: Optional[UploadFile] = None,
    meta: Optional[Dict[str, Optional[str]]] = None,
) -> Content:
    """Update metadata and optionally replace the file.

    A replacement deletes the old object first and only touches the row once
    the new upload succeeded. Without an upload the descriptor is left as is.
    """
    label, folder, resource_type = KINDS[model]
    item = get_content_or_404(db, model, item_id)
    ensure_content_access(db, actor, item.batch_id, write=True, kind=label)
    _check_fields(changes)

    new_batch_id = changes.get("batch_id")
    if new_batch_id is not None and new_batch_id != item.batch_id:
        get_batch_or_404(db, new_batch_id)
        ensure_content_access(db, actor, new_batch_id, write=True, kind=f"{label}s of the target batch")

    descriptor = None
    if upload is not None:
        if item.file_path:
            discard_files(storage, [item.file_path])
        descriptor = await storage.upload(upload, build_key(folder, upload.filename))

    for key, value in changes.items():
        if value is not None:
            setattr(item, key, value)
    if descriptor is not None:
        item.attach_file(descriptor.model_dump())

    db.commit()
    db.refresh(item)

    log_activity(
        db, actor.id, f"update_{resource_type.value}", resource_type, item.id,
        details={"title": item.title, "file_replaced": descriptor is not None}, meta=meta,
    )
    return item


def remove_ppt(db: Session, ppt: PPT) -> List[str]:
    """Stage the row for deletion; returns the storage paths to discard after commit."""
    paths = [ppt.file_path] if ppt.file_path else []
    db.delete(ppt)
    return paths


def remove_assignment(db: Session, assignment: Assignment) -> List[str]:
    """Stage the assignment and its submissions; returns every storage path they held."""
    paths: List[str] = []
    submissions = db.query(Submission).filter(Submission.assignment_id == assignment.id).all()
    for submission in submissions:
        paths.extend(submission.stored_paths())
        db.delete(submission)
    if assignment.file_path:
        paths.append(assignment.file_path)
    db.delete(assignment)
    return paths


def delete_content(
    db: Session,
    storage: StorageBackend,
    actor: User,
    model: ContentModel,
    item_id: int,
    meta: Optional[Dict[str, Optional[str]]] = None,
) -> None:
    label, _, resource_type = KINDS[model]
    item = get_content_or_404(db, model, item_id)
    ensure_content_access(db, actor, item.batch_id, write=True, kind=label)

    title = item.title
    if model is Assignment:
        paths = remove_assignment(db, item)
    else:
        paths = remove_ppt(db, item)
    db.commit()

    failures = discard_files(storage, paths)
    if failures:
        logger.warning("%s %s deleted with %d orphaned file(s)", label, item_id, failures)

    log_activity(
        db, actor.id, f"delete_{resource_type.value}", resource_type, item_id,
        details={"title": title}, meta=meta,
    )
