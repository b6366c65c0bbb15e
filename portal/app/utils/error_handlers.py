"""
Centralized error handling and user-friendly error messages.
"""
from typing import Any

from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Validation error."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class ForbiddenError(AppError):
    """Forbidden access error."""
    def __init__(self, message: str = "Access forbidden", details: dict | None = None):
        super().__init__(message, status_code=403, details=details)


class InvalidTransitionError(AppError):
    """Requested edge is absent from the transition table. Not retryable without a new target."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=422, details=details)


class MissingMetadataError(AppError):
    """Transition needs fields the caller did not supply."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class ConflictError(AppError):
    """Stored state no longer matches what the caller observed."""
    def __init__(self, message: str = "The record was changed by someone else", details: dict | None = None):
        super().__init__(message, status_code=409, details=details)


class EmptyPoolError(AppError):
    """No eligible applications. Callers treat this as a successful no-op."""
    def __init__(self, message: str = "No eligible applications", details: dict | None = None):
        super().__init__(message, status_code=200, details=details)


class ExhaustedReroutesError(AppError):
    """Application hit the re-routing limit. Only ever surfaced as a cascade skip."""
    def __init__(self, message: str = "Maximum re-routes reached", details: dict | None = None):
        super().__init__(message, status_code=409, details=details)


class DatabaseError(AppError):
    """Database error."""
    def __init__(self, message: str = "Database operation failed", details: dict | None = None):
        super().__init__(message, status_code=500, details=details)


# User-friendly error messages
ERROR_MESSAGES = {
    # Jobs
    "job_not_found": "Job posting not found or has been removed.",
    "job_closed": "This job posting is no longer accepting applications.",
    "already_applied": "You have already applied to this position.",

    # Training
    "program_not_found": "Training program not found.",
    "program_closed": "This training program is not accepting applications.",

    # Applications
    "application_not_found": "Application not found. It may have been removed.",
    "profile_required": "Please complete your applicant profile before applying.",

    # General
    "unauthorized": "Please login to access this feature.",
    "forbidden": "You don't have permission to access this resource.",
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def create_error_response(
    status_code: int,
    message: str,
    details: dict | None = None
) -> JSONResponse:
    """Create a standardized error response."""
    content: dict[str, Any] = {
        "success": False,
        "error": message,
        "status_code": status_code,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
