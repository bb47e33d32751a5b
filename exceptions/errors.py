"""
Custom exception classes for the application.

Every error carries a stable code so the operator API and the activity
log can report it consistently.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SHOPIFY_FETCH_ERROR")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# CATALOG ERRORS
# ===================

class SourceFetchError(ExternalServiceError):
    """Source feed snapshot could not be fetched. Fatal for the run."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="apify",
            code="SOURCE_FETCH_ERROR",
            message=f"Source feed fetch failed: {message}",
            details=details
        )


class DestinationFetchError(ExternalServiceError):
    """Destination snapshot could not be fetched. Fatal for the run."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="shopify",
            code="DESTINATION_FETCH_ERROR",
            message=f"Store fetch failed: {message}",
            details=details
        )


class DestinationWriteError(ExternalServiceError):
    """A single remote mutation failed."""

    def __init__(
        self,
        operation: str,
        message: str,
        status: Optional[int] = None,
        details: Optional[dict] = None
    ):
        self.operation = operation
        self.status = status
        super().__init__(
            service="shopify",
            code="DESTINATION_WRITE_ERROR",
            message=f"Store {operation} failed: {message}",
            details={"operation": operation, "status": status, **(details or {})}
        )


# ===================
# JOB ERRORS
# ===================

class UnknownJobKindError(ValidationError):
    """Requested job kind does not exist."""

    def __init__(self, kind: str, valid: list[str]):
        super().__init__(
            code="UNKNOWN_JOB_KIND",
            message=f"Unknown job kind: {kind}",
            details={"provided": kind, "valid": valid}
        )
