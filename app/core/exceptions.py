"""
Application exception hierarchy.

Exceptions carry a machine-readable ``error_code`` alongside the message so
they can be rendered in the same ``{"error", "error_code"}`` shape that the
service layer produces through ServiceResult.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input (bad ids, invalid payloads)
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    └── ConflictError - State conflicts (duplicates)

Usage:
    from core.exceptions import ValidationError

    raise ValidationError("Invalid chat ID", error_code="INVALID_ID")

Note:
    Server-side services prefer ServiceResult.failure() for expected
    failures. These exceptions are used where raising is the natural seam,
    such as validating realtime payloads at the client boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, payload, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to an API-style error body.

        Example:
            {
                "error": "Chat not found",
                "error_code": "CHAT_NOT_FOUND",
                "details": {"chat_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed identifiers, missing fields and payloads that do not
    match the expected shape.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource does not exist."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Authentication failures (missing/invalid token) are handled by DRF and
    SimpleJWT; this is for authorization, e.g. a non-participant opening a
    chat.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """Raised when an operation conflicts with current state (duplicates)."""

    default_error_code: str = "CONFLICT"
