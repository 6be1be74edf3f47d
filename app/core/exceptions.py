"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (duplicates, concurrent modifications)
    │   ├── StaleRecordError - Optimistic locking conflict
    │   └── InvalidStateTransitionError - FSM transition not allowed
    └── ExternalServiceError - Store/notification failures unrelated to business rules

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise ValidationError("Amount must not be negative")

    # Raise with error code and the offending ids
    raise NotFoundError(
        "Service requests not found",
        error_code="SERVICE_REQUESTS_NOT_FOUND",
        details={"ids": ["..."]},
    )

    # Convert to dict for API response (see core.exception_handler)
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
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
        details: Additional error context (offending ids, current state, etc.)
        http_status: Status code used by the API exception handler

    Example:
        try:
            settlement = SettlementService.get_settlement(settlement_id, company_id)
        except NotFoundError as e:
            logger.warning(f"Settlement not found: {e.error_code}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Settlement is already approved",
                "error_code": "INVALID_STATE_TRANSITION",
                "details": {"current_state": "approved"}
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


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Empty id sets
    - Malformed or negative monetary amounts
    - Business rule violations (requests not invoiced, mixed clients)

    Example:
        raise ValidationError(
            "Service requests are not invoiced",
            error_code="SERVICE_REQUESTS_NOT_INVOICED",
            details={"codes": ["HE-0001", "HE-0004"]},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for missing contracts, service requests, expenses and settlements.
    Always list the ids that could not be resolved in ``details``.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Invalid state transitions (approving a rejected settlement)
    - Duplicate settlement references on a service request
    - Charging an inactive contract
    - Optimistic locking failures

    Example:
        if settlement.state != SettlementState.PENDING:
            raise ConflictError(
                f"Settlement is already {settlement.state}",
                error_code="INVALID_STATE_TRANSITION",
                details={"current_state": settlement.state, "action": "approve"},
            )

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record was modified by another process between read and update.
    The caller should either retry with fresh data or abort.

    Attributes:
        details: Contains pk, expected_version, and current_version
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed so callers always receive
    the current state in ``details``.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external collaborator call fails.

    Use for:
    - SMTP failures while delivering a settlement
    - PDF rendering failures
    - Store timeouts surfaced outside a business rule

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502
