"""
Tests for api_exception_handler.
"""

from types import SimpleNamespace

import pytest
from rest_framework.exceptions import NotFound

from core.exception_handler import api_exception_handler
from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
)


class TestApplicationErrors:
    @pytest.mark.parametrize(
        "exc_class,expected_status,expected_code",
        [
            (BaseApplicationError, 400, "APPLICATION_ERROR"),
            (ValidationError, 400, "VALIDATION_ERROR"),
            (NotFoundError, 404, "NOT_FOUND"),
            (PermissionDeniedError, 403, "PERMISSION_DENIED"),
            (ConflictError, 409, "CONFLICT"),
            (RateLimitError, 429, "RATE_LIMIT_EXCEEDED"),
            (ExternalServiceError, 502, "EXTERNAL_SERVICE_ERROR"),
        ],
    )
    def test_rendered_with_class_status(self, exc_class, expected_status, expected_code):
        response = api_exception_handler(exc_class("Something went wrong"), {"view": None})

        assert response.status_code == expected_status
        assert response.data == {"error": "Something went wrong", "error_code": expected_code}

    def test_details_and_custom_code_in_body(self):
        exc = ConflictError(
            "Supplier has dropship orders",
            error_code="SUPPLIER_IN_USE",
            details={"supplier_id": "abc"},
        )

        response = api_exception_handler(exc, {"view": SimpleNamespace()})

        assert response.status_code == 409
        assert response.data == {
            "error": "Supplier has dropship orders",
            "error_code": "SUPPLIER_IN_USE",
            "details": {"supplier_id": "abc"},
        }


class TestDeferredErrors:
    def test_drf_exceptions_use_default_handler(self):
        response = api_exception_handler(NotFound("No such order"), {"view": None})

        assert response.status_code == 404
        assert response.data == {"detail": "No such order"}

    def test_unhandled_exceptions_return_none(self):
        assert api_exception_handler(ValueError("boom"), {"view": None}) is None


class TestExceptionFormatting:
    def test_str_includes_code(self):
        assert str(NotFoundError("Order not found")) == "[NOT_FOUND] Order not found"

    def test_repr(self):
        exc = ConflictError("Already sent", details={"id": 1})

        assert repr(exc) == (
            "ConflictError(message='Already sent', error_code='CONFLICT', details={'id': 1})"
        )
