"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected outcomes of collaborator calls
      (an email that could not be delivered)
    - Exceptions: Use for business rule violations that must reach the
      caller with the offending ids (see core.exceptions)

Usage:
    from core.services import BaseService

    class ContractLedgerService(BaseService):
        @classmethod
        def deactivate(cls, contract_id, actor) -> Contract:
            with cls.atomic():
                contract = Contract.objects.select_for_update().get(id=contract_id)
                contract.is_active = False
                contract.save()

            cls.get_logger().info(
                "Contract deactivated",
                extra={"contract_id": str(contract.id)},
            )
            return contract
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a collaborator call that may fail without it being a bug.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code, e.g. EMAIL_SEND_FAILED

    Usage:
        result = EmailService.send(...)
        if not result:
            raise ExternalServiceError(result.error, error_code="SETTLEMENT_DELIVERY_FAILED")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
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
        - Raise core.exceptions for business rule violations
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
                claimed = ServiceRequest.objects.filter(...).update(...)
                Settlement.objects.create(...)
                # If the settlement insert fails, the claim is rolled back
        """
        with transaction.atomic():
            yield

