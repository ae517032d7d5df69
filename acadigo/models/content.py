"""Batch-scoped content: PPTs and assignments."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from acadigo.db import Base


class StoredFileMixin:
    """Columns describing one file held by the storage backend."""

    file_name: Mapped[Optional[str]] = mapped_column(String(255))
    file_url: Mapped[Optional[str]] = mapped_column(String(1024))
    file_path: Mapped[Optional[str]] = mapped_column(String(1024))
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger)

    @property
    def file(self) -> Optional[Dict[str, Any]]:
        if not self.file_path:
            return None
        return {
            "file_name": self.file_name,
            "file_url": self.file_url,
            "file_path": self.file_path,
            "file_size": self.file_size,
        }

    def attach_file(self, descriptor: Dict[str, Any]) -> None:
        self.file_name = descriptor["file_name"]
        self.file_url = descriptor["file_url"]
        self.file_path = descriptor["file_path"]
        self.file_size = descriptor["file_size"]


class PPT(StoredFileMixin, Base):
    """Presentation uploaded to a batch."""

    __tablename__ = "ppts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    batch_id: Mapped[int] = mapped_column(
        ForeignKey("batches.id"), nullable=False, index=True
    )
    uploaded_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    batch = relationship("Batch")
    uploaded_by = relationship("User", foreign_keys=[uploaded_by_id])

    def __repr__(self) -> str:
        return f"<PPT(id={self.id}, title={self.title}, batch_id={self.batch_id})>"


class Assignment(StoredFileMixin, Base):
    """Assignment with a deadline; the attached brief file is optional."""

    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    batch_id: Mapped[int] = mapped_column(
        ForeignKey("batches.id"), nullable=False, index=True
    )
    uploaded_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    allow_resubmission: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_marks: Mapped[int] = mapped_column(Integer, default=100, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    batch = relationship("Batch")
    uploaded_by = relationship("User", foreign_keys=[uploaded_by_id])
    submissions = relationship("Submission", back_populates="assignment")

    def __repr__(self) -> str:
        return f"<Assignment(id={self.id}, title={self.title}, batch_id={self.batch_id})>"
