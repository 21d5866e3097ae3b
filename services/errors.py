"""Domain error codes for the registration services."""

from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
    INTEGRATION_FAILED = "INTEGRATION_FAILED"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code = ErrorCode.VALIDATION_FAILED
    status_code = 400

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_response(self) -> dict:
        body = {"error": self.message, "code": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    """Raised when request input is missing or malformed."""


class ConflictError(DomainError):
    """Raised when the request clashes with existing state."""

    code = ErrorCode.CONFLICT


class AuthenticationError(DomainError):
    """Raised when a token cannot be verified."""

    code = ErrorCode.UNAUTHENTICATED
    status_code = 401


class PermissionDeniedError(DomainError):
    """Raised when the caller lacks the required role."""

    code = ErrorCode.FORBIDDEN
    status_code = 403


class NotFoundError(DomainError):
    """Raised when a referenced record does not exist."""

    code = ErrorCode.NOT_FOUND
    status_code = 404


class PersistenceError(DomainError):
    """Raised when the store rejects a write."""

    code = ErrorCode.PERSISTENCE_FAILED
    status_code = 500


class IntegrationError(DomainError):
    """Raised by external collaborators (payments, email, SMS)."""

    code = ErrorCode.INTEGRATION_FAILED
    status_code = 502
