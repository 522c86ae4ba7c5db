"""
Tests for core exceptions, ServiceResult and the DRF exception handler.

Covers:
- Error code to exception class mapping
- ServiceResult success/failure helpers
- Rendering of application, DRF and unexpected exceptions
"""

import pytest
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status

from core.exceptions import (
    AuthenticationFailedError,
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    application_exception_handler,
    exception_for_code,
)
from core.services import ErrorCode, ServiceResult

CONTEXT = {"view": None}


class TestExceptionForCode:
    @pytest.mark.parametrize(
        "code, exc_class, http_status",
        [
            (ErrorCode.AUTHENTICATION_FAILED, AuthenticationFailedError, 401),
            (ErrorCode.FORBIDDEN, PermissionDeniedError, 403),
            (ErrorCode.NOT_FOUND, NotFoundError, 404),
            (ErrorCode.INVALID_ARGUMENT, ValidationError, 400),
            (ErrorCode.CONFLICT, ConflictError, 409),
            (ErrorCode.INTERNAL, InternalError, 500),
        ],
    )
    def test_every_code_has_an_exception(self, code, exc_class, http_status):
        assert exception_for_code(code) is exc_class
        assert exc_class.status_code == http_status
        assert exc_class("x").error_code == code

    def test_unknown_code_is_internal(self):
        assert exception_for_code("BOGUS") is InternalError


class TestServiceResult:
    def test_success_is_truthy(self):
        result = ServiceResult.success({"id": 1})

        assert result
        assert result.data == {"id": 1}
        assert result.error is None

    def test_failure_is_falsy(self):
        result = ServiceResult.failure("Nope", error_code=ErrorCode.FORBIDDEN)

        assert not result
        assert result.to_response() == {"error": "Nope", "error_code": "FORBIDDEN"}

    def test_failure_defaults_to_internal(self):
        assert ServiceResult.failure("Boom").error_code == ErrorCode.INTERNAL

    def test_to_exception_keeps_details(self):
        result = ServiceResult.failure(
            "Invalid permission policy",
            error_code=ErrorCode.INVALID_ARGUMENT,
            errors={"delete": ["Unknown action"]},
        )

        exc = result.to_exception()

        assert isinstance(exc, ValidationError)
        assert exc.details == {"delete": ["Unknown action"]}
        assert str(exc) == "[INVALID_ARGUMENT] Invalid permission policy"

    def test_from_exception(self):
        result = ServiceResult.from_exception(ConflictError("Already an admin"))

        assert result.error_code == ErrorCode.CONFLICT
        assert result.error == "Already an admin"


class TestApplicationExceptionHandler:
    def test_application_error(self):
        response = application_exception_handler(NotFoundError("Message not found"), CONTEXT)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == {"error": "Message not found", "error_code": "NOT_FOUND"}

    def test_application_error_with_details(self):
        exc = ValidationError("Invalid", details={"title": ["Too short"]})

        response = application_exception_handler(exc, CONTEXT)

        assert response.data["details"] == {"title": ["Too short"]}

    def test_internal_error_hides_message(self):
        response = application_exception_handler(InternalError("db exploded"), CONTEXT)

        assert response.status_code == 500
        assert response.data == {"error": "Internal server error", "error_code": "INTERNAL"}

    def test_drf_validation_error(self):
        exc = drf_exceptions.ValidationError({"content": ["This field is required."]})

        response = application_exception_handler(exc, CONTEXT)

        assert response.status_code == 400
        assert response.data["error_code"] == "INVALID_ARGUMENT"
        assert response.data["details"] == {"content": ["This field is required."]}

    def test_drf_not_authenticated(self):
        response = application_exception_handler(drf_exceptions.NotAuthenticated(), CONTEXT)

        assert response.status_code == 401
        assert response.data["error_code"] == "AUTHENTICATION_FAILED"

    def test_django_http404(self):
        response = application_exception_handler(Http404("gone"), CONTEXT)

        assert response.status_code == 404
        assert response.data["error_code"] == "NOT_FOUND"

    def test_unexpected_exception_is_internal(self):
        response = application_exception_handler(RuntimeError("secret stack"), CONTEXT)

        assert response.status_code == 500
        assert response.data == {"error": "Internal server error", "error_code": "INTERNAL"}
