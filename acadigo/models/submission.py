"""Submission model."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from acadigo.db import Base
from acadigo.models.enums import SubmissionStatus


class Submission(Base):
    """A student's current submission for one assignment.

    Resubmitting replaces ``files`` in place; the unique constraint keeps at
    most one row per (assignment, student).
    """

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # [{"file_name": "...", "file_url": "...", "file_path": "...", "file_size": 1024}]
    files: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), default=SubmissionStatus.SUBMITTED, nullable=False
    )

    # Grading
    marks: Mapped[Optional[float]] = mapped_column(Float)
    feedback: Mapped[Optional[str]] = mapped_column(Text)
    feedback_image: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    graded_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("User", foreign_keys=[student_id])
    graded_by = relationship("User", foreign_keys=[graded_by_id])

    def stored_paths(self) -> List[str]:
        """Every storage path owned by this submission."""
        paths = [f["file_path"] for f in (self.files or []) if f.get("file_path")]
        if self.feedback_image and self.feedback_image.get("file_path"):
            paths.append(self.feedback_image["file_path"])
        return paths

    def __repr__(self) -> str:
        return (
            f"<Submission(id={self.id}, assignment_id={self.assignment_id}, "
            f"student_id={self.student_id}, status={self.status.value})>"
        )
