"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ErrorCode: The closed set of machine-readable failure codes
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views, consumers and
    models. Views and WebSocket consumers handle transport concerns, models
    handle data, services handle logic. Services never talk to the channel
    layer; they return outcomes that the delivery layer fans out.

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, business rules)
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ErrorCode, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def rename(cls, conversation, requester, title) -> ServiceResult:
            if not 3 <= len(title) <= 30:
                return ServiceResult.failure(
                    "Group name must be 3-30 characters",
                    error_code=ErrorCode.INVALID_ARGUMENT,
                )

            with cls.atomic():
                ...

            cls.get_logger().info(f"Renamed conversation {conversation.id}")
            return ServiceResult.success(conversation)

    # In a view
    result = ConversationService.rename(conversation, request.user, title)
    if not result.success:
        raise result.to_exception()

Related:
    - core.exceptions: Exception classes and the DRF exception handler
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

# Generic type for ServiceResult data
T = TypeVar("T")


class ErrorCode:
    """
    Machine-readable error codes shared by REST and WebSocket surfaces.

    Every failure produced by a service uses exactly one of these codes,
    so clients can branch on them regardless of transport.
    """

    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: One of the ErrorCode values
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(outcome)

        # Failure case
        return ServiceResult.failure("Not a member", ErrorCode.FORBIDDEN)

        # Check result
        result = MessageService.send_message(conversation, user, "hi")
        if result.success:
            message = result.data.message
        else:
            logger.info(f"Rejected: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T = None) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
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

        Returns:
            ServiceResult with success=False and error details

        Example:
            return ServiceResult.failure(
                "Only admins can change permissions",
                error_code=ErrorCode.FORBIDDEN,
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code or ErrorCode.INTERNAL,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """
        Create a failed result from an application exception.

        Example:
            try:
                ContactService.require_contacts(requester, user_ids)
            except BaseApplicationError as e:
                return ServiceResult.from_exception(e)
        """
        return cls(
            success=False,
            error=exc.message,
            error_code=exc.error_code,
            errors=exc.details or None,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert a failed result to the error payload shape.

        Returns:
            Dict with error, error_code and (if present) details keys
        """
        response: dict[str, Any] = {
            "error": self.error,
            "error_code": self.error_code,
        }
        if self.errors:
            response["details"] = self.errors
        return response

    def to_exception(self) -> BaseApplicationError:
        """
        Convert a failed result into the matching application exception.

        Views raise the returned exception and let the DRF exception
        handler render it with the right HTTP status.

        Example:
            result = ParticipantService.leave(conversation, request.user)
            if not result:
                raise result.to_exception()
        """
        from core.exceptions import exception_for_code

        return exception_for_code(self.error_code)(
            self.error or "",
            error_code=self.error_code,
            details=self.errors,
        )

    def __bool__(self) -> bool:
        """
        Allow using result in boolean context.

        Example:
            result = MessageService.mark_read(conversation, user, message_id)
            if result:  # Same as: if result.success
                ...
        """
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                conversation = Conversation.objects.select_for_update().get(pk=pk)
                ...
        """
        with transaction.atomic():
            yield
