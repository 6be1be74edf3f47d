"""
Vehicle and expense models.

Expenses move between ``no_liquidado`` and ``liquidado`` only through the
settlement engine, which uses conditional queryset updates on ``state`` and
``settlement``. Never assign those fields directly in application code.

Usage:
    from fleet.models import Vehicle, OperationalExpense, ExpenseState

    pending = OperationalExpense.objects.filter(
        vehicle=vehicle,
        state=ExpenseState.NO_LIQUIDADO,
    ).prefetch_related("bills")
    total = sum(expense.total for expense in pending)
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

MONEY = {"max_digits": 16, "decimal_places": 2}


# =============================================================================
# Choices
# =============================================================================


class FleetType(models.TextChoices):
    """
    Ownership category of a vehicle.

    Owned vehicles never produce payable accounts.
    """

    PROPIO = "propio", "Owned"
    AFILIADO = "afiliado", "Affiliated"
    EXTERNO = "externo", "External"


class OwnerType(models.TextChoices):
    COMPANY = "company", "Company"
    USER = "user", "Person"


class VehicleType(models.TextChoices):
    BUS = "bus", "Bus"
    BUSETA = "buseta", "Buseta"
    BUSETON = "buseton", "Busetón"
    CAMIONETA = "camioneta", "Camioneta"
    CAMPERO = "campero", "Campero"
    MICRO = "micro", "Microbus"
    VAN = "van", "Van"


class ExpenseState(models.TextChoices):
    NO_LIQUIDADO = "no_liquidado", "Unliquidated"
    LIQUIDADO = "liquidado", "Liquidated"


class BillType(models.TextChoices):
    FUEL = "fuel", "Fuel"
    TOLLS = "tolls", "Tolls"
    REPAIRS = "repairs", "Repairs"
    FINES = "fines", "Fines"
    PARKING_LOT = "parking_lot", "Parking lot"


class InspectionStatus(models.TextChoices):
    OK = "ok", "OK"
    DETAILS = "details", "Minor details"
    FAILURES = "failures", "Failures"


# =============================================================================
# Vehicle
# =============================================================================


class Vehicle(UUIDPrimaryKeyMixin, BaseModel):
    """
    A vehicle operated by a company.

    The owner is either a company or a person. When the person belongs to a
    company, settlements treat that company as the payee.

    Fields:
        company: Operating company
        plate: License plate, unique per company
        fleet: Ownership classification (propio/afiliado/externo)
        owner_type: Whether owner_company or owner_user identifies the owner
        driver: Default driver
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="vehicles",
        help_text="Company operating this vehicle",
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="driven_vehicles",
        help_text="Default driver",
    )

    # ==========================================================================
    # Identity
    # ==========================================================================

    plate = models.CharField(
        max_length=12,
        help_text="License plate",
    )
    name = models.CharField(
        max_length=120,
        blank=True,
        default="",
        help_text="Internal nickname",
    )
    seats = models.PositiveSmallIntegerField(
        default=0,
        help_text="Passenger capacity",
    )
    vehicle_type = models.CharField(
        max_length=20,
        choices=VehicleType.choices,
        default=VehicleType.BUS,
        help_text="Body type",
    )

    # ==========================================================================
    # Ownership
    # ==========================================================================

    fleet = models.CharField(
        max_length=20,
        choices=FleetType.choices,
        default=FleetType.PROPIO,
        db_index=True,
        help_text="Ownership classification",
    )
    owner_type = models.CharField(
        max_length=10,
        choices=OwnerType.choices,
        default=OwnerType.COMPANY,
        help_text="Whether the owner is a company or a person",
    )
    owner_company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="owned_vehicles",
        help_text="Owning company (owner_type=company)",
    )
    owner_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="owned_vehicles",
        help_text="Owning person (owner_type=user)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this vehicle is in service",
    )

    class Meta:
        ordering = ["plate"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "plate"],
                name="fleet_vehicle_unique_plate_per_company",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(owner_type=OwnerType.COMPANY, owner_company__isnull=False)
                    | models.Q(owner_type=OwnerType.USER, owner_user__isnull=False)
                ),
                name="fleet_vehicle_owner_matches_type",
            ),
        ]

    def __str__(self) -> str:
        return self.plate


# =============================================================================
# Operational Expenses
# =============================================================================


class OperationalExpense(UUIDPrimaryKeyMixin, BaseModel):
    """
    Header of itemized operating charges against one vehicle.

    The ``settlement`` reference marks the expense as reserved by a pending
    settlement; it is cleared again when that settlement is rejected.
    """

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="operational_expenses",
        help_text="Operating company",
    )
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.PROTECT,
        related_name="operational_expenses",
        help_text="Vehicle the charges belong to",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Driver who incurred the expense",
    )
    expense_date = models.DateField(
        default=timezone.localdate,
        help_text="Date the expense was incurred",
    )
    state = models.CharField(
        max_length=20,
        choices=ExpenseState.choices,
        default=ExpenseState.NO_LIQUIDADO,
        db_index=True,
        help_text="Liquidation state (changed only by settlements)",
    )
    settlement = models.ForeignKey(
        "settlements.Settlement",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reserved_operational_expenses",
        help_text="Settlement currently holding this expense",
    )
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who registered the expense",
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-expense_date", "-created_at"]
        indexes = [
            models.Index(fields=["vehicle", "state"]),
        ]

    def __str__(self) -> str:
        return f"OperationalExpense({self.vehicle_id}, {self.state})"

    @property
    def total(self) -> Decimal:
        """Sum of bill values. Uses prefetched bills when available."""
        return sum((bill.value for bill in self.bills.all()), Decimal("0"))


class ExpenseBill(UUIDPrimaryKeyMixin, BaseModel):
    expense = models.ForeignKey(
        OperationalExpense,
        on_delete=models.CASCADE,
        related_name="bills",
        help_text="Expense header",
    )
    bill_type = models.CharField(
        max_length=20,
        choices=BillType.choices,
        help_text="Kind of charge",
    )
    value = models.DecimalField(
        **MONEY,
        help_text="Amount charged",
    )
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(value__gte=0),
                name="fleet_expense_bill_value_non_negative",
            ),
        ]


# =============================================================================
# Pre-operational Inspections
# =============================================================================


class PreoperationalInspection(UUIDPrimaryKeyMixin, BaseModel):
    """
    Pre-operational inspection with valued findings.

    Settlements add these to the consolidated totals only; they are not
    netted against individual vehicle lines.
    """

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="preoperational_inspections",
        help_text="Operating company",
    )
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.PROTECT,
        related_name="preoperational_inspections",
        help_text="Inspected vehicle",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Driver who performed the inspection",
    )
    inspection_date = models.DateField(
        default=timezone.localdate,
        help_text="Date of the inspection",
    )
    state = models.CharField(
        max_length=20,
        choices=ExpenseState.choices,
        default=ExpenseState.NO_LIQUIDADO,
        db_index=True,
        help_text="Liquidation state (changed only by settlements)",
    )
    settlement = models.ForeignKey(
        "settlements.Settlement",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reserved_preoperational_expenses",
        help_text="Settlement currently holding this inspection",
    )
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who registered the inspection",
    )

    class Meta:
        ordering = ["-inspection_date", "-created_at"]
        indexes = [
            models.Index(fields=["vehicle", "state"]),
        ]

    def __str__(self) -> str:
        return f"PreoperationalInspection({self.vehicle_id}, {self.state})"

    @property
    def total(self) -> Decimal:
        """Sum of report values. Uses prefetched reports when available."""
        return sum((report.value for report in self.reports.all()), Decimal("0"))


class InspectionReport(UUIDPrimaryKeyMixin, BaseModel):
    inspection = models.ForeignKey(
        PreoperationalInspection,
        on_delete=models.CASCADE,
        related_name="reports",
        help_text="Inspection header",
    )
    status = models.CharField(
        max_length=20,
        choices=InspectionStatus.choices,
        default=InspectionStatus.OK,
        help_text="Finding severity",
    )
    description = models.CharField(max_length=255, blank=True, default="")
    value = models.DecimalField(
        **MONEY,
        default=Decimal("0"),
        help_text="Cost attributed to the finding",
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(value__gte=0),
                name="fleet_inspection_report_value_non_negative",
            ),
        ]
