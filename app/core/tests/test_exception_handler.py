"""Tests for the DRF exception handler."""

import pytest
from django_fsm import TransitionNotAllowed
from rest_framework.exceptions import NotAuthenticated

from core.exception_handler import api_exception_handler
from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    InvalidStateTransitionError,
    NotFoundError,
    StaleRecordError,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc, status_code, error_code",
    [
        (ValidationError("bad"), 400, "VALIDATION_ERROR"),
        (NotFoundError("gone", error_code="SETTLEMENT_NOT_FOUND"), 404, "SETTLEMENT_NOT_FOUND"),
        (ConflictError("taken"), 409, "CONFLICT"),
        (StaleRecordError("old"), 409, "STALE_RECORD"),
        (InvalidStateTransitionError("no"), 409, "INVALID_STATE_TRANSITION"),
        (ExternalServiceError("smtp"), 502, "EXTERNAL_SERVICE_ERROR"),
    ],
)
def test_application_errors(exc, status_code, error_code):
    response = api_exception_handler(exc, {})

    assert response.status_code == status_code
    assert response.data["error_code"] == error_code
    assert "details" not in response.data


def test_details_are_included():
    exc = NotFoundError("missing", details={"ids": ["a"]})

    response = api_exception_handler(exc, {})

    assert response.data == {"error": "missing", "error_code": "NOT_FOUND", "details": {"ids": ["a"]}}


def test_unwrapped_transition_is_conflict():
    response = api_exception_handler(TransitionNotAllowed("nope"), {})

    assert response.status_code == 409
    assert response.data["error_code"] == "INVALID_STATE_TRANSITION"


def test_drf_errors_fall_through():
    response = api_exception_handler(NotAuthenticated(), {"view": None, "request": None})

    assert response.status_code == 401
