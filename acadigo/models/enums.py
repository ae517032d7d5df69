"""Enumerations shared by the models."""

import enum


class UserRole(str, enum.Enum):
    """User roles."""
    ADMIN = "admin"
    TRAINER = "trainer"
    STUDENT = "student"


class SubmissionStatus(str, enum.Enum):
    """Submission state.

    ``submitted`` and ``late`` are the two entry states, chosen against the
    assignment deadline; ``graded`` is reached only through grading.
    """
    SUBMITTED = "submitted"
    LATE = "late"
    GRADED = "graded"


class ResourceType(str, enum.Enum):
    PPT = "ppt"
    ASSIGNMENT = "assignment"
    SUBMISSION = "submission"
    USER = "user"
    BATCH = "batch"
    AUTH = "auth"


class AccessAction(str, enum.Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    SUBMIT = "submit"
    GRADE = "grade"
