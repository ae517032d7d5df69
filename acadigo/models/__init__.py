"""SQLAlchemy models."""

from acadigo.models.batch import Batch
from acadigo.models.content import PPT, Assignment
from acadigo.models.enums import AccessAction, ResourceType, SubmissionStatus, UserRole
from acadigo.models.logs import AccessLog, ActivityLog
from acadigo.models.submission import Submission
from acadigo.models.user import User

__all__ = [
    "AccessAction",
    "AccessLog",
    "ActivityLog",
    "Assignment",
    "Batch",
    "PPT",
    "ResourceType",
    "Submission",
    "SubmissionStatus",
    "User",
    "UserRole",
]
