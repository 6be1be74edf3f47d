"""
Per-vehicle netting for settlements.

Pure computation over already-loaded models: no queries beyond the
prefetched relations, no writes. SettlementService feeds it resolved
requests and expenses and persists the result.

Allocation rules:
    - A request with several vehicle assignments splits its billed value
      equally across them, each share rounded to cents (ROUND_HALF_UP).
    - A request with one assignment, or only a ``vehicle``, gives its whole
      billed value to that vehicle.
    - Operational expenses are netted against their vehicle's line.
    - Pre-operational expenses count only in the consolidated totals.

Usage:
    from settlements.calculator import SettlementCalculator

    computation = SettlementCalculator.compute(requests, operational, preoperational)
    for line in computation.lines:
        print(line.vehicle.plate, line.services, line.net)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from core.helpers import quantize_money

from fleet.models import OwnerType
from settlements.states import PayeeType

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from accounts.models import Company, User
    from fleet.models import OperationalExpense, PreoperationalInspection, Vehicle
    from operations.models import ServiceRequest

ZERO = Decimal("0")


# =============================================================================
# Payee resolution
# =============================================================================


@dataclass(frozen=True)
class Payee:
    """
    Who gets paid for a vehicle.

    ``user`` keeps the owning person even when their company is the payee.
    """

    type: str
    company: Company | None = None
    user: User | None = None
    name: str = ""


def resolve_payee(vehicle: Vehicle) -> Payee:
    if vehicle.owner_type == OwnerType.COMPANY and vehicle.owner_company_id:
        company = vehicle.owner_company
        return Payee(type=PayeeType.COMPANY, company=company, name=company.name)

    if vehicle.owner_type == OwnerType.USER and vehicle.owner_user_id:
        user = vehicle.owner_user
        if user.company_id:
            return Payee(
                type=PayeeType.COMPANY,
                company=user.company,
                user=user,
                name=user.company.name,
            )
        return Payee(type=PayeeType.USER, user=user, name=user.get_full_name())

    # No recorded owner: the operating company keeps the line.
    return Payee(type=PayeeType.COMPANY, company=vehicle.company, name=vehicle.company.name)


# =============================================================================
# Accumulators
# =============================================================================


@dataclass
class VehicleAccumulator:
    vehicle: Vehicle
    payee: Payee
    services: Decimal = ZERO
    operational_expenses: Decimal = ZERO
    service_requests: list[ServiceRequest] = field(default_factory=list)
    operational_expense_ids: list = field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.services - self.operational_expenses

    @property
    def primary_service_request(self) -> ServiceRequest | None:
        return self.service_requests[0] if self.service_requests else None

    @property
    def service_request_ids(self) -> list:
        return [request.id for request in self.service_requests]


@dataclass
class SettlementComputation:
    lines: list[VehicleAccumulator]
    total_services: Decimal = ZERO
    total_operational_expenses: Decimal = ZERO
    total_preoperational_expenses: Decimal = ZERO

    @property
    def net_total(self) -> Decimal:
        return self.total_services - (
            self.total_operational_expenses + self.total_preoperational_expenses
        )


# =============================================================================
# Calculator
# =============================================================================


class SettlementCalculator:
    """Allocate service value and expenses to vehicles."""

    @staticmethod
    def vehicles_for(request: ServiceRequest) -> list[Vehicle]:
        """Vehicles attributed to a request. Assignments take precedence."""
        assignments = list(request.assignments.all())
        if assignments:
            return [assignment.vehicle for assignment in assignments]
        if request.vehicle_id:
            return [request.vehicle]
        return []

    @staticmethod
    def split_value(value: Decimal, parts: int) -> Decimal:
        if parts <= 1:
            return value
        return quantize_money(value / parts)

    @classmethod
    def compute(
        cls,
        service_requests: Sequence[ServiceRequest],
        operational_expenses: Iterable[OperationalExpense] = (),
        preoperational_expenses: Iterable[PreoperationalInspection] = (),
    ) -> SettlementComputation:
        accumulators: dict = {}

        def accumulator_for(vehicle: Vehicle) -> VehicleAccumulator:
            if vehicle.id not in accumulators:
                accumulators[vehicle.id] = VehicleAccumulator(
                    vehicle=vehicle,
                    payee=resolve_payee(vehicle),
                )
            return accumulators[vehicle.id]

        total_services = ZERO
        for request in service_requests:
            total_services += request.billed_value
            vehicles = cls.vehicles_for(request)
            share = cls.split_value(request.billed_value, len(vehicles))
            for vehicle in vehicles:
                line = accumulator_for(vehicle)
                line.services += share
                if request not in line.service_requests:
                    line.service_requests.append(request)

        total_operational = ZERO
        for expense in operational_expenses:
            amount = expense.total
            total_operational += amount
            line = accumulator_for(expense.vehicle)
            line.operational_expenses += amount
            line.operational_expense_ids.append(expense.id)

        total_preoperational = sum(
            (inspection.total for inspection in preoperational_expenses), ZERO
        )

        return SettlementComputation(
            lines=list(accumulators.values()),
            total_services=total_services,
            total_operational_expenses=total_operational,
            total_preoperational_expenses=total_preoperational,
        )


# =============================================================================
# Numbering
# =============================================================================


def sanitize_client_name(name: str) -> str:
    """
    Normalize a client name for use in a settlement number.

    Example:
        sanitize_client_name("  Colegio  San José ") == "COLEGIO_SAN_JOS"
    """
    value = (name or "").strip().upper()
    value = re.sub(r"\s+", "_", value)
    value = re.sub(r"[^A-Z0-9_]", "", value)
    value = re.sub(r"_+", "_", value)
    return value.strip("_")


def build_settlement_number(codes: Iterable[str], client_name: str) -> str:
    """
    PRELIQ_{code}_{CLIENT} for one request, PRELIQ_MULTI_{first}-{last}_{CLIENT}
    for several. Codes are sorted lexicographically.
    """
    ordered = sorted(codes)
    if not ordered:
        raise ValueError("At least one request code is required")
    client = sanitize_client_name(client_name)
    if len(ordered) == 1:
        prefix = f"PRELIQ_{ordered[0]}"
    else:
        prefix = f"PRELIQ_MULTI_{ordered[0]}-{ordered[-1]}"
    return f"{prefix}_{client}" if client else prefix
