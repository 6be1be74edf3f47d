"""
Settlement (preliquidación) models.

A Settlement consolidates a batch of invoiced service requests and the
vehicle expenses to net against them. Each vehicle gets one
VehicleSettlement line, a snapshot of plate, fleet and owner taken at
generation time. Approving a settlement issues PayableAccounts for
non-owned vehicles.

State fields are django-fsm ``FSMField(protected=True)``: change them only
through the transition methods, never by assignment.

Usage:
    from settlements.models import Settlement
    from settlements.states import SettlementState

    pending = Settlement.objects.filter(company=company, state=SettlementState.PENDING)
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from settlements.states import (
    DeliveryStatus,
    PayableAccountState,
    PayeeType,
    SettlementState,
    VehicleSettlementState,
)

MONEY = {"max_digits": 16, "decimal_places": 2}
ZERO = Decimal("0")


# =============================================================================
# Settlement
# =============================================================================


class Settlement(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A consolidated settlement of service requests and vehicle expenses.

    Fields:
        number: PRELIQ_... identifier, unique among live settlements of a company
        total_services: Sum of billed values of the included requests
        total_operational_expenses: Sum of included operational expenses
        total_preoperational_expenses: Sum of included inspections
        net_total: total_services - (operational + preoperational)
        state: pending → approved | rejected (FSM, protected)
    """

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="settlements",
    )
    number = models.CharField(
        max_length=320,
        db_index=True,
        help_text="Settlement number derived from request codes and client",
    )
    generated_on = models.DateField(
        default=timezone.localdate,
        help_text="Generation date",
    )
    client = models.ForeignKey(
        "operations.Client",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="settlements",
    )

    # ==========================================================================
    # Included records
    # ==========================================================================

    service_requests = models.ManyToManyField(
        "operations.ServiceRequest",
        related_name="settlements",
        blank=True,
    )
    operational_expenses = models.ManyToManyField(
        "fleet.OperationalExpense",
        related_name="settlements",
        blank=True,
    )
    preoperational_expenses = models.ManyToManyField(
        "fleet.PreoperationalInspection",
        related_name="settlements",
        blank=True,
    )

    # ==========================================================================
    # Totals
    # ==========================================================================

    total_services = models.DecimalField(**MONEY, default=ZERO)
    total_operational_expenses = models.DecimalField(**MONEY, default=ZERO)
    total_preoperational_expenses = models.DecimalField(**MONEY, default=ZERO)
    net_total = models.DecimalField(**MONEY, default=ZERO)

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=SettlementState.PENDING,
        choices=SettlementState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the settlement (managed by FSM)",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # Delivery
    # ==========================================================================

    sent_to_client = models.BooleanField(default=False)
    sent_at = models.DateTimeField(null=True, blank=True)
    sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    # ==========================================================================
    # Audit
    # ==========================================================================

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["company", "state"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "number"],
                condition=~models.Q(state=SettlementState.REJECTED),
                name="settlements_unique_live_number_per_company",
            ),
        ]

    def __str__(self) -> str:
        return f"Settlement({self.number}, {self.state})"

    @property
    def is_pending(self) -> bool:
        return self.state == SettlementState.PENDING

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=SettlementState.PENDING,
        target=SettlementState.APPROVED,
    )
    def approve(self, actor=None, notes: str | None = None):
        """
        Approve the settlement.

        Transition: PENDING -> APPROVED
        """
        self.approved_by = actor
        self.approved_at = timezone.now()
        self.last_modified_by = actor
        if notes:
            self.notes = notes

    @transition(
        field=state,
        source=SettlementState.PENDING,
        target=SettlementState.REJECTED,
    )
    def reject(self, actor=None, notes: str | None = None):
        """
        Reject the settlement. Its number becomes reusable.

        Transition: PENDING -> REJECTED
        """
        self.rejected_by = actor
        self.rejected_at = timezone.now()
        self.last_modified_by = actor
        if notes:
            self.notes = notes


# =============================================================================
# Payable accounts
# =============================================================================


class PayableAccount(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Amount owed to vehicle operators for one service request (cuenta de cobro).

    Totals are the sums of the account's line items; call
    ``recalculate_totals()`` after adding lines.
    """

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="payable_accounts",
    )
    service_request = models.ForeignKey(
        "operations.ServiceRequest",
        on_delete=models.PROTECT,
        related_name="payable_accounts",
    )

    total_base = models.DecimalField(**MONEY, default=ZERO)
    total_deducted_operational = models.DecimalField(**MONEY, default=ZERO)
    total_deducted_preoperational = models.DecimalField(
        **MONEY,
        default=ZERO,
        help_text="Inspection deductions; settlements net these at consolidated level only",
    )
    net_total = models.DecimalField(**MONEY, default=ZERO)

    state = FSMField(
        default=PayableAccountState.PENDIENTE,
        choices=PayableAccountState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the account (managed by FSM)",
    )

    support_document = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Reference to the payment support document",
    )
    payment_date = models.DateField(null=True, blank=True)
    disbursement_number = models.CharField(max_length=60, blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "service_request"],
                name="settlements_one_payable_per_request",
            ),
        ]

    def __str__(self) -> str:
        return f"PayableAccount({self.service_request_id}, {self.state})"

    def recalculate_totals(self) -> None:
        totals = self.line_items.aggregate(
            base=models.Sum("base_value"),
            deducted=models.Sum("deducted_expenses"),
            net=models.Sum("net_value"),
        )
        self.total_base = totals["base"] or ZERO
        self.total_deducted_operational = totals["deducted"] or ZERO
        self.net_total = (totals["net"] or ZERO) - self.total_deducted_preoperational

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=[PayableAccountState.PENDIENTE, PayableAccountState.CALCULADA],
        target=PayableAccountState.CALCULADA,
    )
    def calculate(self, actor=None):
        """
        Recompute totals from line items.

        Transition: PENDIENTE/CALCULADA -> CALCULADA
        """
        self.recalculate_totals()
        self.updated_by = actor

    @transition(
        field=state,
        source=PayableAccountState.CALCULADA,
        target=PayableAccountState.PAGADA,
    )
    def pay(self, actor=None, payment_date=None, disbursement_number="", support_document=""):
        """
        Register the payment.

        Transition: CALCULADA -> PAGADA
        """
        self.payment_date = payment_date or timezone.localdate()
        self.disbursement_number = disbursement_number or ""
        self.support_document = support_document or ""
        self.updated_by = actor

    @transition(
        field=state,
        source=[PayableAccountState.PENDIENTE, PayableAccountState.CALCULADA],
        target=PayableAccountState.CANCELADA,
    )
    def cancel(self, actor=None, reason: str = ""):
        """
        Cancel the account.

        Transition: PENDIENTE/CALCULADA -> CANCELADA
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or ""
        self.updated_by = actor


# =============================================================================
# Vehicle lines
# =============================================================================


class VehicleSettlement(UUIDPrimaryKeyMixin, BaseModel):
    """
    One vehicle's line of a settlement.

    Plate, fleet and owner are snapshots and are never re-resolved from the
    live vehicle. ``net == total_services - total_operational_expenses``.
    """

    settlement = models.ForeignKey(
        Settlement,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    position = models.PositiveIntegerField(default=0)
    vehicle = models.ForeignKey(
        "fleet.Vehicle",
        on_delete=models.PROTECT,
        related_name="settlement_lines",
    )

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    plate = models.CharField(max_length=12)
    fleet = models.CharField(max_length=20)
    owner_type = models.CharField(max_length=10, choices=PayeeType.choices)
    owner_company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    owner_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    owner_name = models.CharField(max_length=255, blank=True, default="")

    # ==========================================================================
    # Contributions
    # ==========================================================================

    service_requests = models.ManyToManyField(
        "operations.ServiceRequest",
        related_name="settlement_lines",
        blank=True,
    )
    primary_service_request = models.ForeignKey(
        "operations.ServiceRequest",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="First request recorded for this vehicle; keys its payable account",
    )
    operational_expenses = models.ManyToManyField(
        "fleet.OperationalExpense",
        related_name="settlement_lines",
        blank=True,
    )

    total_services = models.DecimalField(**MONEY, default=ZERO)
    total_operational_expenses = models.DecimalField(**MONEY, default=ZERO)
    net = models.DecimalField(**MONEY, default=ZERO)

    state = models.CharField(
        max_length=30,
        choices=VehicleSettlementState.choices,
        default=VehicleSettlementState.PENDIENTE,
        db_index=True,
    )
    payable_account = models.ForeignKey(
        PayableAccount,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vehicle_settlements",
    )

    class Meta:
        ordering = ["settlement", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["settlement", "vehicle"],
                name="settlements_one_line_per_vehicle",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.plate}: {self.net}"


class PayableLineItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    One vehicle line's contribution to a payable account.

    ``idempotency_key`` is ``settlement:<id>:vehicle:<id>``; its uniqueness
    stops a retried approval from appending the same line twice.
    """

    account = models.ForeignKey(
        PayableAccount,
        on_delete=models.CASCADE,
        related_name="line_items",
    )
    vehicle_settlement = models.OneToOneField(
        VehicleSettlement,
        on_delete=models.PROTECT,
        related_name="payable_line_item",
    )
    vehicle = models.ForeignKey(
        "fleet.Vehicle",
        on_delete=models.PROTECT,
        related_name="+",
    )
    plate = models.CharField(max_length=12)
    fleet = models.CharField(max_length=20)

    payee_type = models.CharField(max_length=10, choices=PayeeType.choices)
    payee_company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    payee_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    payee_name = models.CharField(max_length=255, blank=True, default="")

    base_value = models.DecimalField(**MONEY)
    deducted_expenses = models.DecimalField(**MONEY, default=ZERO)
    net_value = models.DecimalField(**MONEY)

    idempotency_key = models.CharField(max_length=120, unique=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.plate}: {self.net_value}"

    @staticmethod
    def build_idempotency_key(settlement_id, vehicle_id) -> str:
        return f"settlement:{settlement_id}:vehicle:{vehicle_id}"


# =============================================================================
# Delivery history
# =============================================================================


class SettlementDelivery(UUIDPrimaryKeyMixin, BaseModel):
    """One attempt to email an approved settlement to its owner."""

    settlement = models.ForeignKey(
        Settlement,
        on_delete=models.CASCADE,
        related_name="deliveries",
    )
    recipients = models.JSONField(default=list)
    sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.QUEUED,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")
    sent_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Settlement deliveries"

    def __str__(self) -> str:
        return f"SettlementDelivery({self.settlement_id}, {self.status})"
