"""
Custom exceptions for the rating engine with user-friendly error messages.

Every exception carries a machine-readable ``code`` and HTTP ``status_code``
so the API layer can translate it without inspecting the message.
"""

from typing import Any, Dict, Optional


class LexiRankException(Exception):
    """Base exception for engine errors."""
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, user_message: str = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.user_message = user_message or message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.user_message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LexiRankException):
    """Raised when input is malformed or out of range. Nothing is written."""
    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthorizedError(LexiRankException):
    """Raised when the request carries no valid identity."""
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, reason: str = "missing or invalid token"):
        super().__init__(f"Unauthorized: {reason}", "Authentication required")


class ForbiddenError(LexiRankException):
    """Raised when the caller is authenticated but does not own the resource."""
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, "You do not have access to this resource")


class NotFoundError(LexiRankException):
    """Raised when a referenced entity does not exist."""
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"{resource} '{identifier}' not found" if identifier is not None else f"{resource} not found",
            f"{resource} not found",
            details
        )


class ConflictError(LexiRankException):
    """Raised on uniqueness or state conflicts."""
    code = "CONFLICT"
    status_code = 409


class DatabaseError(LexiRankException):
    """Raised when database operations fail."""
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            "Database error occurred. Please try again later."
        )


class TransactionError(LexiRankException):
    """Raised when a retried transaction keeps failing."""
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"Transaction failed for {operation} after {attempts} attempts",
            "Failed to save your progress. Please try again."
        )
