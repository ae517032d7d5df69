"""Error taxonomy shared by services and the HTTP boundary.

Services raise these; ``acadigo.main`` maps them to a status code and a
``{"message": ...}`` body.
"""

from typing import Iterable


class AppError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class NoFilesProvided(ValidationError):
    default_message = "Please upload at least one file"


class InvalidScore(ValidationError):
    default_message = "Marks are required"


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Not authorized to access this route"


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid credentials"


class TokenInvalid(Unauthenticated):
    default_message = "Invalid token"


class TokenExpired(Unauthenticated):
    default_message = "Token has expired"


class UserNotFound(Unauthenticated):
    default_message = "User not found"


class AccountInactive(Unauthenticated):
    default_message = "User account is inactive"


class Forbidden(AppError):
    status_code = 403
    default_message = "Not authorized to access this resource"

    @classmethod
    def for_roles(cls, role: str, allowed: Iterable[str]) -> "Forbidden":
        required = ", ".join(sorted(allowed))
        return cls(f"Role {role} is not authorized to access this resource (requires: {required})")


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 400
    default_message = "Request conflicts with the current state"


class BatchHasStudents(Conflict):
    default_message = "Cannot delete batch with assigned students"


class DeadlinePassed(Conflict):
    default_message = "The deadline for this assignment has passed"


class ResubmissionNotAllowed(DeadlinePassed):
    default_message = "Resubmission is not allowed after the deadline"


class EmailTaken(Conflict):
    default_message = "User with this email already exists"


class TrainerOwnsBatches(Conflict):
    default_message = "Reassign this trainer's batches before deleting the account"


class RateLimited(AppError):
    status_code = 429
    default_message = "Too many requests, please try again later."


class UpstreamFailure(AppError):
    status_code = 500
    default_message = "Upstream service failure"
