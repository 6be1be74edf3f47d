"""
Tests for ExpenseAggregator.

Covers vehicle filtering, state filtering, reservation exclusion and the
per-vehicle total helper.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from fleet.models import ExpenseState
from fleet.services import ExpenseAggregator, UnliquidatedExpenses
from fleet.tests.factories import (
    OperationalExpenseFactory,
    PreoperationalInspectionFactory,
    VehicleFactory,
)


@pytest.mark.django_db
class TestAggregateUnliquidated:
    def test_empty_vehicle_set_returns_empty_lists(self):
        OperationalExpenseFactory(bills=["1000"])

        result = ExpenseAggregator.aggregate_unliquidated([])

        assert isinstance(result, UnliquidatedExpenses)
        assert result.operational == []
        assert result.preoperational == []
        assert result.is_empty

    def test_returns_only_requested_vehicles(self):
        vehicle = VehicleFactory()
        other = VehicleFactory(company=vehicle.company)
        mine = OperationalExpenseFactory(vehicle=vehicle, bills=["150000"])
        OperationalExpenseFactory(vehicle=other, bills=["90000"])

        result = ExpenseAggregator.aggregate_unliquidated([vehicle.id])

        assert [expense.id for expense in result.operational] == [mine.id]

    def test_skips_liquidated_expenses(self):
        vehicle = VehicleFactory()
        OperationalExpenseFactory(vehicle=vehicle, state=ExpenseState.LIQUIDADO)
        PreoperationalInspectionFactory(vehicle=vehicle, state=ExpenseState.LIQUIDADO)
        pending = PreoperationalInspectionFactory(vehicle=vehicle, reports=["20000"])

        result = ExpenseAggregator.aggregate_unliquidated([vehicle.id])

        assert result.operational == []
        assert [inspection.id for inspection in result.preoperational] == [pending.id]

    def test_totals_include_all_bills(self):
        vehicle = VehicleFactory()
        OperationalExpenseFactory(vehicle=vehicle, bills=["100000", "50000"])
        PreoperationalInspectionFactory(vehicle=vehicle, reports=["20000", "5000"])

        result = ExpenseAggregator.aggregate_unliquidated([vehicle.id])

        assert result.total_operational == Decimal("150000")
        assert result.total_preoperational == Decimal("25000")

    def test_duplicate_vehicle_ids_are_collapsed(self):
        vehicle = VehicleFactory()
        OperationalExpenseFactory(vehicle=vehicle)

        result = ExpenseAggregator.aggregate_unliquidated([vehicle.id, vehicle.id])

        assert len(result.operational) == 1

    def test_company_filter(self):
        vehicle = VehicleFactory()
        OperationalExpenseFactory(vehicle=vehicle)

        other_company = VehicleFactory().company
        result = ExpenseAggregator.aggregate_unliquidated(
            [vehicle.id], company_id=other_company.id
        )

        assert result.operational == []

    def test_aggregation_does_not_change_state(self):
        vehicle = VehicleFactory()
        expense = OperationalExpenseFactory(vehicle=vehicle)

        ExpenseAggregator.aggregate_unliquidated([vehicle.id])
        ExpenseAggregator.aggregate_unliquidated([vehicle.id])

        expense.refresh_from_db()
        assert expense.state == ExpenseState.NO_LIQUIDADO
        assert expense.settlement_id is None


@pytest.mark.django_db
class TestReservedExpenses:
    @pytest.fixture
    def reserved_expense(self):
        from settlements.tests.factories import SettlementFactory

        vehicle = VehicleFactory()
        settlement = SettlementFactory(company=vehicle.company)
        return OperationalExpenseFactory(vehicle=vehicle, settlement=settlement)

    def test_reserved_expenses_are_excluded_by_default(self, reserved_expense):
        result = ExpenseAggregator.aggregate_unliquidated([reserved_expense.vehicle_id])

        assert result.operational == []

    def test_reserved_expenses_included_on_request(self, reserved_expense):
        result = ExpenseAggregator.aggregate_unliquidated(
            [reserved_expense.vehicle_id], include_reserved=True
        )

        assert [expense.id for expense in result.operational] == [reserved_expense.id]


@pytest.mark.django_db
def test_totals_by_vehicle_groups_amounts():
    first = VehicleFactory()
    second = VehicleFactory(company=first.company)
    OperationalExpenseFactory(vehicle=first, bills=["1000"])
    OperationalExpenseFactory(vehicle=first, bills=["2500.50"])
    OperationalExpenseFactory(vehicle=second, bills=["300"])

    expenses = ExpenseAggregator.aggregate_unliquidated([first.id, second.id]).operational
    totals = ExpenseAggregator.totals_by_vehicle(expenses)

    assert totals == {first.id: Decimal("3500.50"), second.id: Decimal("300")}
