"""Dashboard API."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from acadigo.api.assignments import AssignmentResponse
from acadigo.api.batches import BatchResponse, to_response
from acadigo.api.deps import get_current_user
from acadigo.api.ppts import PPTResponse
from acadigo.api.submissions import SubmissionResponse
from acadigo.db import get_db
from acadigo.models import User
from acadigo.schemas.common import UserResponse
from acadigo.services.batches import student_count
from acadigo.services.dashboard import build_dashboard

router = APIRouter()


class DashboardResponse(BaseModel):
    """Sections a role does not use stay empty."""

    stats: Dict[str, Any] = Field(default_factory=dict)
    recent_users: List[UserResponse] = Field(default_factory=list)
    batches: List[BatchResponse] = Field(default_factory=list)
    pending_submissions: List[SubmissionResponse] = Field(default_factory=list)
    ppts: List[PPTResponse] = Field(default_factory=list)
    assignments: List[AssignmentResponse] = Field(default_factory=list)
    submissions: List[SubmissionResponse] = Field(default_factory=list)


@router.get("", response_model=DashboardResponse)
def get_dashboard(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = build_dashboard(db, current_user)
    batches = [to_response(b, student_count(db, b.id)) for b in data.pop("batches", [])]
    return DashboardResponse.model_validate({**data, "batches": batches}, from_attributes=True)
