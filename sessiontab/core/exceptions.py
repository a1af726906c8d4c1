"""
sessiontab/core/exceptions.py

Purpose: Domain exception hierarchy

- Every error carries a machine-readable code and an HTTP status
- The dispatcher turns them into chat replies, the API into JSON errors
"""

from typing import Optional, Any


class SessionTabError(Exception):
    """
    Base exception for SessionTab application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundError(SessionTabError):
    """
    Raised when a person, group, membership or attendance batch does not exist.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(SessionTabError):
    """
    Raised when the webhook caller cannot be authenticated.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class AuthorizationError(SessionTabError):
    """
    Raised when a non-admin attempts an admin-only operation.
    """
    def __init__(self, message: str = "Admin privileges required", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)


class ValidationError(SessionTabError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class AlreadyRevertedError(SessionTabError):
    """
    Raised when an attendance batch that was already reverted is reverted again.
    """
    def __init__(self, message: str = "Attendance batch already reverted", details: Optional[Any] = None):
        super().__init__(message, code="ALREADY_REVERTED", status_code=409, details=details)


class PersistenceError(SessionTabError):
    """
    Raised when the store is unreachable or rejects a write.
    """
    def __init__(self, message: str = "Persistence error", details: Optional[Any] = None):
        super().__init__(message, code="PERSISTENCE_ERROR", status_code=503, details=details)
