"""
Expense aggregation for settlement runs.

ExpenseAggregator is a pure read over the expense tables: it never changes
an expense's state. The settlement engine uses it to preview what a run
would liquidate and to build per-vehicle expense totals.

Usage:
    from fleet.services import ExpenseAggregator

    pending = ExpenseAggregator.aggregate_unliquidated([vehicle.id])
    for expense in pending.operational:
        print(expense.vehicle.plate, expense.total)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from core.services import BaseService

from fleet.models import ExpenseState, OperationalExpense, PreoperationalInspection

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from django.db.models import QuerySet


@dataclass
class UnliquidatedExpenses:
    """Operational and pre-operational expenses still waiting for a settlement."""

    operational: list[OperationalExpense] = field(default_factory=list)
    preoperational: list[PreoperationalInspection] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.operational and not self.preoperational

    @property
    def total_operational(self) -> Decimal:
        return sum((expense.total for expense in self.operational), Decimal("0"))

    @property
    def total_preoperational(self) -> Decimal:
        return sum((expense.total for expense in self.preoperational), Decimal("0"))


class ExpenseAggregator(BaseService):
    """
    Read-only access to unliquidated expenses.

    Expenses already reserved by a pending settlement are excluded unless
    ``include_reserved`` is set, so a preview never offers an expense that
    another run holds.
    """

    @staticmethod
    def operational_queryset() -> QuerySet[OperationalExpense]:
        return OperationalExpense.objects.select_related("vehicle").prefetch_related("bills")

    @staticmethod
    def preoperational_queryset() -> QuerySet[PreoperationalInspection]:
        return PreoperationalInspection.objects.select_related("vehicle").prefetch_related(
            "reports"
        )

    @classmethod
    def aggregate_unliquidated(
        cls,
        vehicle_ids: Iterable[UUID],
        company_id: UUID | None = None,
        include_reserved: bool = False,
    ) -> UnliquidatedExpenses:
        """
        Select ``no_liquidado`` expenses for the given vehicles.

        Args:
            vehicle_ids: Vehicles to look at; an empty set returns empty lists
            company_id: Restrict to one operating company
            include_reserved: Also return expenses held by a pending settlement

        Returns:
            UnliquidatedExpenses with bills/reports prefetched
        """
        vehicle_ids = list(dict.fromkeys(vehicle_ids))
        if not vehicle_ids:
            return UnliquidatedExpenses()

        filters = {"vehicle_id__in": vehicle_ids, "state": ExpenseState.NO_LIQUIDADO}
        if company_id is not None:
            filters["company_id"] = company_id
        if not include_reserved:
            filters["settlement__isnull"] = True

        operational = list(cls.operational_queryset().filter(**filters))
        preoperational = list(cls.preoperational_queryset().filter(**filters))

        cls.get_logger().debug(
            "Aggregated unliquidated expenses",
            extra={
                "vehicle_count": len(vehicle_ids),
                "operational_count": len(operational),
                "preoperational_count": len(preoperational),
            },
        )
        return UnliquidatedExpenses(operational=operational, preoperational=preoperational)

    @staticmethod
    def totals_by_vehicle(expenses: Iterable) -> dict[UUID, Decimal]:
        """Sum expense totals per vehicle id."""
        totals: dict[UUID, Decimal] = defaultdict(lambda: Decimal("0"))
        for expense in expenses:
            totals[expense.vehicle_id] += expense.total
        return dict(totals)
