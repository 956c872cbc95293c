# app/errors.py

from typing import List, Optional


class AppError(Exception):
    """
    Base class for errors that map onto an HTTP status.
    The message is safe to show to API clients.
    """
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[List[dict]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class UnauthorizedError(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str = "Validation error", details: Optional[List[dict]] = None):
        super().__init__(message, details=details)


class ConflictError(AppError):
    status_code = 400

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message)


class InternalError(AppError):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class ServiceUnavailableError(InternalError):
    """An external workflow, storage or mail call failed."""
