"""
Concurrency control utilities.

This module provides two complementary optimistic mechanisms:

1. **Version check under row lock** (check_version)
   - Version-based conflict detection combined with select_for_update
   - Use for: state transitions driven by a client that read a version

2. **Conditional update** (compare_and_set)
   - Single UPDATE ... WHERE version = ? statement
   - Use for: hot counters such as contract consumption

Usage:

    from core.locks import check_version, compare_and_set

    with transaction.atomic():
        settlement = check_version(Settlement, settlement_id, expected_version=3)
        settlement.approve(actor)
        settlement.save()  # Version auto-increments

    updated = compare_and_set(Contract, contract.pk, contract.version, consumed=new_value)
    if not updated:
        # another writer won; re-read and retry
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction
from django.db.models import F

from core.exceptions import NotFoundError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

# Type variable for model classes
T = TypeVar("T", bound=models.Model)


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
    queryset: models.QuerySet | None = None,
) -> T:
    """
    Atomically check version and lock a record for update.

    Args:
        model_class: Django model class (must have 'version' field)
        pk: Primary key of the record
        expected_version: Version the caller expects
        queryset: Optional pre-filtered queryset (e.g. scoped to a company)

    Returns:
        The locked model instance (within a transaction)

    Raises:
        StaleRecordError: If version doesn't match (concurrent modification)
        NotFoundError: If record doesn't exist

    Note:
        Must be called within a transaction context. The lock is held
        until the transaction commits or rolls back.
    """
    base = queryset if queryset is not None else model_class.objects.all()
    model_name = model_class.__name__

    with transaction.atomic():
        instance = (
            base.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )

        if instance is None:
            current_version = base.filter(pk=pk).values_list("version", flat=True).first()
            if current_version is None:
                raise NotFoundError(
                    f"{model_name} {pk} not found",
                    error_code=f"{model_name.upper()}_NOT_FOUND",
                    details={"pk": str(pk)},
                )

            raise StaleRecordError(
                f"{model_name} {pk} has been modified "
                f"(expected version {expected_version}, current {current_version})",
                details={
                    "pk": str(pk),
                    "expected_version": expected_version,
                    "current_version": current_version,
                },
            )

        return instance


def compare_and_set(
    model_class: type[models.Model],
    pk: Any,
    expected_version: int,
    **values: Any,
) -> bool:
    """
    Write ``values`` only if the row is still at ``expected_version``.

    The version is bumped in the same statement.

    Returns:
        True if the row was updated, False if another writer got there first
    """
    updated = model_class.objects.filter(pk=pk, version=expected_version).update(
        version=F("version") + 1,
        **values,
    )
    return updated == 1


__all__ = [
    "check_version",
    "compare_and_set",
]
