"""
Error types and the error response envelope for the Vara catalog backend.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every error response."""

    success: bool = False
    code: str
    error: str
    details: Dict[str, Any] = {}


class CatalogError(Exception):
    """Base exception rendered as an ``ErrorResponse``."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.code, error=self.message, details=self.details)


class _KnownError(CatalogError):
    """CatalogError whose code and status are fixed by the subclass."""

    error_code = "ERROR"
    default_message = "Error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(self.error_code, message or self.default_message, details)


class ValidationError(_KnownError):
    """Missing or malformed input."""
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class AuthenticationError(_KnownError):
    """Missing, invalid or expired credentials."""
    status_code = 401
    error_code = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"


class AuthorizationError(_KnownError):
    """Authenticated but not allowed."""
    status_code = 403
    error_code = "AUTHORIZATION_ERROR"
    default_message = "Authorization failed"


class NotFoundError(_KnownError):
    """Missing documents."""
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Not found"


class ConflictError(_KnownError):
    """Uniqueness violations."""
    status_code = 409
    error_code = "CONFLICT"
    default_message = "Conflict"


class ServiceError(_KnownError):
    """Internal failures with a message worth returning."""
    status_code = 500
    error_code = "SERVICE_ERROR"
    default_message = "Service error"


class ExternalServiceError(CatalogError):
    """Document store or object store failures."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error",
                 details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
