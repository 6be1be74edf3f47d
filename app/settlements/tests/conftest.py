"""
Pytest fixtures for settlement tests.

``worked_example`` builds two invoiced requests of one client:
R1 on V1 billing 1,000,000 and R2 split across V1 and V2 billing 600,000,
plus one operational expense of 150,000 on V1. Both vehicles are affiliated
and owned by ``owner_company``.

Usage:
    def test_generate(worked_example, user):
        settlement = SettlementService.generate(
            worked_example.request_ids,
            worked_example.expense_ids,
            actor=user,
            company_id=user.company_id,
        )
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from accounts.tests.factories import CompanyFactory
from fleet.models import FleetType, OwnerType
from fleet.tests.factories import OperationalExpenseFactory, VehicleFactory
from operations.tests.factories import (
    ClientFactory,
    ServiceRequestFactory,
    VehicleAssignmentFactory,
)
from settlements.services import SettlementService


@dataclass
class WorkedExample:
    client: object
    owner_company: object
    v1: object
    v2: object
    r1: object
    r2: object
    expense: object

    @property
    def request_ids(self):
        return [self.r1.id, self.r2.id]

    @property
    def expense_ids(self):
        return [self.expense.id]


@pytest.fixture
def owner_company(db):
    return CompanyFactory(name="Transportes Afiliados S.A.S.", email="pagos@afiliados.example.com")


@pytest.fixture
def affiliated_vehicle_factory(company, owner_company):
    def make(**kwargs):
        kwargs.setdefault("company", company)
        kwargs.setdefault("fleet", FleetType.AFILIADO)
        kwargs.setdefault("owner_type", OwnerType.COMPANY)
        kwargs.setdefault("owner_company", owner_company)
        return VehicleFactory(**kwargs)

    return make


@pytest.fixture
def worked_example(company, owner_company, affiliated_vehicle_factory):
    client = ClientFactory(company=company, name="Colegio Andino")
    v1 = affiliated_vehicle_factory(plate="AAA111")
    v2 = affiliated_vehicle_factory(plate="BBB222")
    r1 = ServiceRequestFactory(
        company=company,
        client=client,
        vehicle=v1,
        code="HE00001",
        billed_value=Decimal("1000000.00"),
    )
    r2 = ServiceRequestFactory(
        company=company,
        client=client,
        vehicle=None,
        code="HE00002",
        billed_value=Decimal("600000.00"),
    )
    VehicleAssignmentFactory(request=r2, vehicle=v1)
    VehicleAssignmentFactory(request=r2, vehicle=v2)
    expense = OperationalExpenseFactory(vehicle=v1, bills=["100000", "50000"])
    return WorkedExample(
        client=client,
        owner_company=owner_company,
        v1=v1,
        v2=v2,
        r1=r1,
        r2=r2,
        expense=expense,
    )


@pytest.fixture
def pending_settlement(worked_example, user):
    """Settlement generated from ``worked_example``."""
    return SettlementService.generate(
        worked_example.request_ids,
        worked_example.expense_ids,
        actor=user,
        company_id=user.company_id,
    )


@pytest.fixture
def no_owner_notifications(settings):
    settings.SETTLEMENTS_NOTIFY_ON_APPROVE = False
