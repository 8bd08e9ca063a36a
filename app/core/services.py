"""
Service layer primitives shared by the domain apps.

Services encapsulate business rules between views (HTTP concerns) and
models (persistence). Every public service method is a classmethod that
returns a ServiceResult so expected failures travel as data rather than
exceptions:

    - ServiceResult.success(data) for the happy path
    - ServiceResult.failure(message, error_code) for rule violations
    - Exceptions only for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class ChatService(BaseService):
        @classmethod
        def delete_chat(cls, chat, user) -> ServiceResult[None]:
            if not chat.is_group_admin(user):
                return ServiceResult.failure(
                    "Only admins can delete group chats",
                    error_code="ADMIN_REQUIRED",
                )
            with cls.atomic():
                chat.deactivate()
            cls.get_logger().info(f"Chat {chat.id} deleted by user {user.id}")
            return ServiceResult.success(None)

    # In a view
    result = ChatService.delete_chat(chat, request.user)
    if not result:
        return failure_response(result)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Human-readable error message if failed
        error_code: Machine-readable code, mapped to an HTTP status by views
        errors: Field-level errors for validation failures

    Usage:
        result = MessageService.send_message(chat, user, "hello")
        if result.success:
            message = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code; anything else falls
        back to the exception class name.
        """
        code = error_code or getattr(exc, "error_code", None)
        message = getattr(exc, "message", None) or str(exc)
        return cls(
            success=False,
            error=message,
            error_code=code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to the API error/success body.

        Failures render as ``{"error": ..., "error_code": ...}`` which is the
        shape every chat endpoint returns on 4xx.
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func: Callable[[T], Any]) -> ServiceResult:
        """Transform the data if successful, otherwise return self unchanged."""
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides a per-service logger and an explicit transaction boundary.
    Services hold no instance state; use classmethods.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get the logger for this service.

        The logger is named ``<module>.<ClassName>`` so log lines can be
        filtered per service (e.g. ``chat.services.MessageService``).
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute the enclosed block in a database transaction.

        Thin wrapper around ``transaction.atomic()`` that keeps transaction
        boundaries visible in service code.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log an exception and convert it to a failed ServiceResult.

        Args:
            exc: The caught exception
            context: Short description of the operation for the log line
            log_level: Logging level (default ERROR)
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs: Any) -> ServiceResult | None:
        """
        Validate that required fields are present and non-blank.

        Returns a VALIDATION_ERROR failure listing the missing fields, or
        None when everything is present.

        Example:
            missing = cls.validate_required(content=content)
            if missing:
                return missing
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
