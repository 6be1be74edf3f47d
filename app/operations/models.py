"""
Service request models.

A ServiceRequest is one transport job for a client. Single-vehicle jobs set
``vehicle`` directly; multi-vehicle jobs carry one VehicleAssignment per bus.

Accounting lifecycle:
    not_started -> invoiced -> ready_to_settle

``ready_to_settle`` and the ``settlement`` back-reference are written
together by the settlement engine and reverted together when a settlement is
rejected.

Usage:
    from operations.models import ServiceRequest, AccountingStatus

    invoiced = ServiceRequest.objects.filter(
        company=company,
        accounting_status=AccountingStatus.INVOICED,
        settlement__isnull=True,
    )
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


class RequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"


class ServiceStatus(models.TextChoices):
    NOT_STARTED = "not-started", "Not started"
    STARTED = "started", "Started"
    FINISHED = "finished", "Finished"


class AccountingStatus(models.TextChoices):
    NOT_STARTED = "not_started", "Not started"
    INVOICED = "invoiced", "Invoiced"
    READY_TO_SETTLE = "ready_to_settle", "Ready to settle"


class ContractChargeMode(models.TextChoices):
    WITHIN_CONTRACT = "within_contract", "Within contract"
    OUTSIDE_CONTRACT = "outside_contract", "Outside contract"
    NO_CONTRACT = "no_contract", "No contract"


# =============================================================================
# Log book and clients
# =============================================================================


class LogBook(UUIDPrimaryKeyMixin, BaseModel):
    """Monthly service log of a company. Every request belongs to one."""

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="log_books",
    )
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ["-year", "-month"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "year", "month"],
                name="operations_logbook_unique_period",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"


class Client(UUIDPrimaryKeyMixin, BaseModel):
    """A customer of the operating company."""

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="clients",
    )
    name = models.CharField(max_length=255)
    contact_name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=40, blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


# =============================================================================
# Service requests
# =============================================================================


class ServiceRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A transport job (solicitud) for one client.

    Fields:
        code: Human identifier (HE), unique per company
        billed_value: Amount invoiced to the client (valor a facturar)
        accounting_status: Invoicing/settlement progress
        settlement: Live settlement holding this request, if any
    """

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="service_requests",
    )
    log_book = models.ForeignKey(
        LogBook,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="service_requests",
        help_text="Monthly log the request was recorded in",
    )
    code = models.CharField(
        max_length=40,
        help_text="Human identifier (HE)",
    )
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        related_name="service_requests",
    )

    # ==========================================================================
    # Schedule and route
    # ==========================================================================

    service_date = models.DateField(default=timezone.localdate)
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    origin = models.CharField(max_length=255, blank=True, default="")
    destination = models.CharField(max_length=255, blank=True, default="")

    # ==========================================================================
    # Single-vehicle attribution
    # ==========================================================================

    vehicle = models.ForeignKey(
        "fleet.Vehicle",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="service_requests",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="driven_service_requests",
    )

    # ==========================================================================
    # Money
    # ==========================================================================

    billed_value = models.DecimalField(
        **MONEY,
        default=Decimal("0"),
        help_text="Amount invoiced to the client",
    )
    paid_value = models.DecimalField(**MONEY, default=Decimal("0"))
    profit = models.DecimalField(**MONEY, default=Decimal("0"))

    # ==========================================================================
    # Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
    )
    service_status = models.CharField(
        max_length=20,
        choices=ServiceStatus.choices,
        default=ServiceStatus.NOT_STARTED,
    )
    accounting_status = models.CharField(
        max_length=20,
        choices=AccountingStatus.choices,
        default=AccountingStatus.NOT_STARTED,
        db_index=True,
    )
    invoice_number = models.CharField(max_length=60, blank=True, default="")
    invoiced_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Contract
    # ==========================================================================

    contract = models.ForeignKey(
        "contracts.Contract",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="service_requests",
    )
    contract_charge_mode = models.CharField(
        max_length=20,
        choices=ContractChargeMode.choices,
        default=ContractChargeMode.NO_CONTRACT,
    )
    contract_charge_amount = models.DecimalField(**MONEY, null=True, blank=True)

    settlement = models.ForeignKey(
        "settlements.Settlement",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="claimed_service_requests",
        help_text="Pending or approved settlement holding this request",
    )

    class Meta:
        ordering = ["-service_date", "code"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                name="operations_request_unique_code_per_company",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "accounting_status"]),
        ]

    def __str__(self) -> str:
        return self.code

    @property
    def is_invoiced(self) -> bool:
        return (
            self.accounting_status == AccountingStatus.INVOICED
            or bool(self.invoice_number)
        )


class VehicleAssignment(UUIDPrimaryKeyMixin, BaseModel):
    """One bus serving a multi-vehicle request."""

    request = models.ForeignKey(
        ServiceRequest,
        on_delete=models.CASCADE,
        related_name="assignments",
    )
    vehicle = models.ForeignKey(
        "fleet.Vehicle",
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    seats = models.PositiveSmallIntegerField(default=0)
    assigned_passengers = models.PositiveSmallIntegerField(default=0)
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    contract = models.ForeignKey(
        "contracts.Contract",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assignments",
    )
    contract_charge_mode = models.CharField(
        max_length=20,
        choices=ContractChargeMode.choices,
        default=ContractChargeMode.NO_CONTRACT,
    )
    contract_charge_amount = models.DecimalField(**MONEY, null=True, blank=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["request", "vehicle"],
                name="operations_assignment_unique_vehicle",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.request_id}:{self.vehicle_id}"
