"""
Tests for the settlement calculator.

Covers value splitting across vehicle assignments, per-vehicle netting,
payee resolution and settlement numbering.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from accounts.tests.factories import CompanyFactory, UserFactory
from fleet.models import FleetType, OwnerType
from fleet.tests.factories import (
    OperationalExpenseFactory,
    PreoperationalInspectionFactory,
    VehicleFactory,
)
from operations.tests.factories import ServiceRequestFactory, VehicleAssignmentFactory
from settlements.calculator import (
    SettlementCalculator,
    build_settlement_number,
    resolve_payee,
    sanitize_client_name,
)
from settlements.states import PayeeType


def _line(computation, vehicle):
    return next(line for line in computation.lines if line.vehicle.id == vehicle.id)


@pytest.mark.django_db
class TestCompute:
    def test_worked_example(self):
        company = CompanyFactory()
        v1 = VehicleFactory(company=company, fleet=FleetType.AFILIADO)
        v2 = VehicleFactory(company=company, fleet=FleetType.AFILIADO)
        r1 = ServiceRequestFactory(company=company, vehicle=v1, billed_value=Decimal("1000000"))
        r2 = ServiceRequestFactory(
            company=company, client=r1.client, vehicle=None, billed_value=Decimal("600000")
        )
        VehicleAssignmentFactory(request=r2, vehicle=v1)
        VehicleAssignmentFactory(request=r2, vehicle=v2)
        expense = OperationalExpenseFactory(vehicle=v1, bills=["100000", "50000"])

        computation = SettlementCalculator.compute([r1, r2], [expense])

        first = _line(computation, v1)
        assert first.services == Decimal("1300000")
        assert first.operational_expenses == Decimal("150000")
        assert first.net == Decimal("1150000")
        assert first.service_request_ids == [r1.id, r2.id]
        assert first.operational_expense_ids == [expense.id]
        assert first.primary_service_request == r1

        second = _line(computation, v2)
        assert second.services == Decimal("300000")
        assert second.operational_expenses == Decimal("0")
        assert second.net == Decimal("300000")
        assert second.primary_service_request == r2

        assert computation.total_services == Decimal("1600000")
        assert computation.total_operational_expenses == Decimal("150000")
        assert computation.net_total == Decimal("1450000")

    @pytest.mark.parametrize("count", [2, 3, 7])
    def test_split_is_equal_within_a_cent(self, count):
        request = ServiceRequestFactory(vehicle=None, billed_value=Decimal("1000000"))
        vehicles = [
            VehicleAssignmentFactory(request=request).vehicle for _ in range(count)
        ]

        computation = SettlementCalculator.compute([request])

        expected = Decimal("1000000") / count
        for vehicle in vehicles:
            assert abs(_line(computation, vehicle).services - expected) <= Decimal("0.01")
        assert computation.total_services == Decimal("1000000")

    def test_single_assignment_takes_precedence_over_vehicle(self):
        request = ServiceRequestFactory(billed_value=Decimal("500000"))
        assigned = VehicleAssignmentFactory(request=request).vehicle

        computation = SettlementCalculator.compute([request])

        assert [line.vehicle.id for line in computation.lines] == [assigned.id]
        assert computation.lines[0].services == Decimal("500000")

    def test_request_without_vehicle_has_no_vehicles(self):
        request = ServiceRequestFactory(vehicle=None)

        assert SettlementCalculator.vehicles_for(request) == []

    def test_expense_on_unseen_vehicle_gets_zero_services(self):
        request = ServiceRequestFactory()
        other = VehicleFactory(company=request.company)
        expense = OperationalExpenseFactory(vehicle=other, bills=["80000"])

        computation = SettlementCalculator.compute([request], [expense])

        line = _line(computation, other)
        assert line.services == Decimal("0")
        assert line.net == Decimal("-80000")

    def test_preoperational_expenses_only_touch_totals(self):
        request = ServiceRequestFactory(billed_value=Decimal("1000000"))
        inspection = PreoperationalInspectionFactory(vehicle=request.vehicle, reports=["40000"])

        computation = SettlementCalculator.compute([request], [], [inspection])

        line = computation.lines[0]
        assert line.net == Decimal("1000000")
        assert computation.total_preoperational_expenses == Decimal("40000")
        assert computation.net_total == Decimal("960000")

    def test_net_identity_holds_for_every_line(self):
        company = CompanyFactory()
        requests = [ServiceRequestFactory(company=company) for _ in range(3)]
        expenses = [
            OperationalExpenseFactory(vehicle=request.vehicle, bills=["12345.67"])
            for request in requests
        ]

        computation = SettlementCalculator.compute(requests, expenses)

        for line in computation.lines:
            assert line.net == line.services - line.operational_expenses


@pytest.mark.django_db
class TestResolvePayee:
    def test_company_owner(self):
        owner = CompanyFactory()
        vehicle = VehicleFactory(owner_type=OwnerType.COMPANY, owner_company=owner)

        payee = resolve_payee(vehicle)

        assert payee.type == PayeeType.COMPANY
        assert payee.company == owner
        assert payee.name == owner.name

    def test_person_with_company_pays_the_company(self):
        person = UserFactory()
        vehicle = VehicleFactory(
            owner_type=OwnerType.USER, owner_company=None, owner_user=person
        )

        payee = resolve_payee(vehicle)

        assert payee.type == PayeeType.COMPANY
        assert payee.company == person.company
        assert payee.user == person

    def test_person_without_company(self):
        person = UserFactory(company=None, full_name="Ana Torres")
        vehicle = VehicleFactory(
            owner_type=OwnerType.USER, owner_company=None, owner_user=person
        )

        payee = resolve_payee(vehicle)

        assert payee.type == PayeeType.USER
        assert payee.user == person
        assert payee.company is None
        assert payee.name == "Ana Torres"


class TestNumbering:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("  Colegio  San José ", "COLEGIO_SAN_JOS"),
            ("acme-corp ltda.", "ACMECORP_LTDA"),
            ("__x__", "X"),
            ("", ""),
        ],
    )
    def test_sanitize_client_name(self, raw, expected):
        assert sanitize_client_name(raw) == expected

    def test_single_request(self):
        assert build_settlement_number(["HE00012"], "Acme") == "PRELIQ_HE00012_ACME"

    def test_multiple_requests_are_sorted(self):
        number = build_settlement_number(["HE00009", "HE00002", "HE00005"], "Acme S.A.")
        assert number == "PRELIQ_MULTI_HE00002-HE00009_ACME_SA"

    def test_empty_client_drops_suffix(self):
        assert build_settlement_number(["HE00001"], " ") == "PRELIQ_HE00001"

    def test_no_codes(self):
        with pytest.raises(ValueError):
            build_settlement_number([], "Acme")
