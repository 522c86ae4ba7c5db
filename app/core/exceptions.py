"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across REST and WebSocket surfaces
- Machine-readable error codes for client handling
- A DRF exception handler that hides internals from clients

Exception Hierarchy:
    BaseApplicationError (base)
    ├── AuthenticationFailedError - Missing/invalid/expired credential (401)
    ├── PermissionDeniedError - Authenticated but not allowed (403)
    ├── NotFoundError - Resource not found (404)
    ├── ValidationError - Input validation failures (400)
    ├── ConflictError - State conflicts (409)
    └── InternalError - Store or codec failure (500)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise NotFoundError("Conversation not found")

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.status_code)

Note:
    The handler is wired in settings as
    REST_FRAMEWORK["EXCEPTION_HANDLER"] = "core.exceptions.application_exception_handler".
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.services import ErrorCode

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        status_code: HTTP status used when rendered by the REST surface
    """

    default_error_code: str = ErrorCode.INTERNAL
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

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
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Conversation not found",
                "error_code": "NOT_FOUND",
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
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class AuthenticationFailedError(BaseApplicationError):
    """
    Raised when a credential is missing, invalid, or expired.

    On the WebSocket gateway this results in an error event followed by
    closing the connection.
    """

    default_error_code: str = ErrorCode.AUTHENTICATION_FAILED
    status_code: int = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller is authenticated but not allowed.

    Use for:
    - Acting on a conversation the caller is not a member of
    - Group mutations gated by an "admin" permission policy
    - Creating a conversation with someone who is not a contact
    """

    default_error_code: str = ErrorCode.FORBIDDEN
    status_code: int = status.HTTP_403_FORBIDDEN


class NotFoundError(BaseApplicationError):
    """Raised when a referenced conversation, message, or user does not exist."""

    default_error_code: str = ErrorCode.NOT_FOUND
    status_code: int = status.HTTP_404_NOT_FOUND


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Invalid field formats (group name length, empty content)
    - Structural violations (self-chat, too few members, non-group targets)
    - Empty effective inputs (every invited user already a member)
    """

    default_error_code: str = ErrorCode.INVALID_ARGUMENT
    status_code: int = status.HTTP_400_BAD_REQUEST


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current state.

    Example:
        promoting a member who is already an admin.
    """

    default_error_code: str = ErrorCode.CONFLICT
    status_code: int = status.HTTP_409_CONFLICT


class InternalError(BaseApplicationError):
    """Raised for store or codec failures. Details are never sent to clients."""

    default_error_code: str = ErrorCode.INTERNAL
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


_EXCEPTIONS_BY_CODE: dict[str, type[BaseApplicationError]] = {
    ErrorCode.AUTHENTICATION_FAILED: AuthenticationFailedError,
    ErrorCode.FORBIDDEN: PermissionDeniedError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.INVALID_ARGUMENT: ValidationError,
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.INTERNAL: InternalError,
}


def exception_for_code(error_code: str | None) -> type[BaseApplicationError]:
    """Return the exception class for an error code, InternalError if unknown."""
    return _EXCEPTIONS_BY_CODE.get(error_code, InternalError)


# DRF exceptions keep their own status codes; only the body is normalized.
_DRF_ERROR_CODES: dict[type[Exception], str] = {
    Http404: ErrorCode.NOT_FOUND,
    DjangoPermissionDenied: ErrorCode.FORBIDDEN,
    drf_exceptions.NotAuthenticated: ErrorCode.AUTHENTICATION_FAILED,
    drf_exceptions.AuthenticationFailed: ErrorCode.AUTHENTICATION_FAILED,
    drf_exceptions.PermissionDenied: ErrorCode.FORBIDDEN,
    drf_exceptions.NotFound: ErrorCode.NOT_FOUND,
    drf_exceptions.ValidationError: ErrorCode.INVALID_ARGUMENT,
    drf_exceptions.ParseError: ErrorCode.INVALID_ARGUMENT,
}


def application_exception_handler(exc, context):
    """
    DRF exception handler rendering every error as {error, error_code, details?}.

    Application exceptions map to their own status code. DRF's exceptions
    are normalized to the same body. Anything else is logged with its
    traceback and rendered as INTERNAL without leaking internals.
    """
    if isinstance(exc, BaseApplicationError):
        if isinstance(exc, InternalError):
            logger.error(f"Internal error in {context.get('view')}: {exc!r}")
            return Response(
                {"error": "Internal server error", "error_code": ErrorCode.INTERNAL},
                status=exc.status_code,
            )
        return Response(exc.to_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        logger.exception(f"Unhandled exception in {context.get('view')}", exc_info=exc)
        return Response(
            {"error": "Internal server error", "error_code": ErrorCode.INTERNAL},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    error_code = next(
        (
            code
            for exc_class, code in _DRF_ERROR_CODES.items()
            if isinstance(exc, exc_class)
        ),
        ErrorCode.INVALID_ARGUMENT if response.status_code < 500 else ErrorCode.INTERNAL,
    )
    body: dict[str, Any] = {"error_code": error_code}
    if isinstance(exc, drf_exceptions.ValidationError):
        body["error"] = "Invalid request"
        body["details"] = response.data
    else:
        body["error"] = str(getattr(exc, "detail", exc))
    response.data = body
    return response
