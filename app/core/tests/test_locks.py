"""
Tests for optimistic concurrency helpers.

Uses Contract as a concrete versioned model.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from contracts.models import Contract
from contracts.tests.factories import ContractFactory
from core.exceptions import NotFoundError, StaleRecordError
from core.locks import check_version, compare_and_set


@pytest.mark.django_db
class TestCheckVersion:
    def test_returns_instance_at_expected_version(self):
        contract = ContractFactory()

        locked = check_version(Contract, contract.pk, contract.version)

        assert locked.pk == contract.pk

    def test_stale_version(self):
        contract = ContractFactory()

        with pytest.raises(StaleRecordError) as exc_info:
            check_version(Contract, contract.pk, contract.version + 1)

        assert exc_info.value.details["current_version"] == contract.version
        assert exc_info.value.details["expected_version"] == contract.version + 1

    def test_missing_record(self):
        with pytest.raises(NotFoundError) as exc_info:
            check_version(Contract, uuid4(), 1)

        assert exc_info.value.error_code == "CONTRACT_NOT_FOUND"

    def test_queryset_scopes_lookup(self):
        contract = ContractFactory()
        other_company = ContractFactory().company

        with pytest.raises(NotFoundError):
            check_version(
                Contract,
                contract.pk,
                contract.version,
                queryset=Contract.objects.filter(company=other_company),
            )


@pytest.mark.django_db
class TestCompareAndSet:
    def test_writes_and_bumps_version(self):
        contract = ContractFactory(consumed=Decimal("0"))

        assert compare_and_set(Contract, contract.pk, contract.version, consumed=Decimal("10"))

        contract.refresh_from_db()
        assert contract.consumed == Decimal("10")
        assert contract.version == 2

    def test_loses_to_newer_version(self):
        contract = ContractFactory(consumed=Decimal("0"))
        compare_and_set(Contract, contract.pk, contract.version, consumed=Decimal("1"))

        assert not compare_and_set(Contract, contract.pk, contract.version, consumed=Decimal("2"))

        contract.refresh_from_db()
        assert contract.consumed == Decimal("1")
