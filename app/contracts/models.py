"""
Contract budget models.

A Contract is a fixed-budget agreement between the operating company and
one client. ``consumed`` moves only through ContractLedgerService, which
writes a ContractHistoryEvent in the same transaction as the conditional
update on ``version``.

The cap is advisory: charges that exceed it are accepted and recorded.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

MONEY = {"max_digits": 16, "decimal_places": 2}


class ContractType(models.TextChoices):
    FIXED = "fixed", "Fixed budget"


class BudgetPeriod(models.TextChoices):
    YEAR = "year", "Year"
    MONTH = "month", "Month"
    WEEK = "week", "Week"
    DAY = "day", "Day"


class PricingMode(models.TextChoices):
    PER_HOUR = "per_hour", "Per hour"
    PER_KM = "per_km", "Per kilometer"
    PER_DISTANCE = "per_distance", "Per distance"
    TARIFF = "tariff", "Tariff"
    PER_TRIP = "per_trip", "Per trip"
    PER_LEG = "per_leg", "Per leg"


class HistoryKind(models.TextChoices):
    BUDGET_SET = "budget_set", "Budget set"
    SERVICE_CHARGE = "service_charge", "Service charge"
    MANUAL_ADJUST = "manual_adjust", "Manual adjustment"


class ChargeMode(models.TextChoices):
    WITHIN_CONTRACT = "within_contract", "Within contract"
    OUTSIDE_CONTRACT = "outside_contract", "Outside contract"


class Contract(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Fixed-budget agreement with a client.

    Contracts are never deleted; deactivate them instead.

    Fields:
        budget_cap: Advisory spending cap for the period (null = uncapped)
        consumed: Running total of within-contract charges
        version: Optimistic locking counter
    """

    company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.PROTECT,
        related_name="contracts",
    )
    client = models.ForeignKey(
        "operations.Client",
        on_delete=models.PROTECT,
        related_name="contracts",
    )
    contract_type = models.CharField(
        max_length=20,
        choices=ContractType.choices,
        default=ContractType.FIXED,
    )

    # ==========================================================================
    # Pricing table
    # ==========================================================================

    default_pricing_mode = models.CharField(
        max_length=20,
        choices=PricingMode.choices,
        default=PricingMode.PER_TRIP,
    )
    per_hour = models.DecimalField(**MONEY, null=True, blank=True)
    per_km = models.DecimalField(**MONEY, null=True, blank=True)
    per_distance = models.DecimalField(**MONEY, null=True, blank=True)
    tariff = models.DecimalField(**MONEY, null=True, blank=True)
    per_trip = models.DecimalField(**MONEY, null=True, blank=True)
    per_leg = models.DecimalField(**MONEY, null=True, blank=True)

    # ==========================================================================
    # Budget
    # ==========================================================================

    budget_period = models.CharField(
        max_length=10,
        choices=BudgetPeriod.choices,
        null=True,
        blank=True,
    )
    budget_cap = models.DecimalField(
        **MONEY,
        null=True,
        blank=True,
        help_text="Advisory cap for the budget period",
    )
    consumed = models.DecimalField(
        **MONEY,
        default=Decimal("0"),
        editable=False,
        help_text="Within-contract charges recorded so far",
    )

    end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(consumed__gte=0),
                name="contracts_contract_consumed_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(budget_cap__isnull=True) | models.Q(budget_cap__gte=0),
                name="contracts_contract_cap_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Contract({self.client_id}, {self.contract_type})"

    @property
    def remaining(self) -> Decimal | None:
        if self.budget_cap is None:
            return None
        return self.budget_cap - self.consumed

    @property
    def is_over_budget(self) -> bool:
        return self.budget_cap is not None and self.consumed > self.budget_cap


class ContractHistoryEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Append-only audit record of a change to a contract's budget.

    Rows cannot be updated or deleted once written.
    """

    contract = models.ForeignKey(
        Contract,
        on_delete=models.PROTECT,
        related_name="history",
    )
    kind = models.CharField(max_length=20, choices=HistoryKind.choices)
    previous_cap = models.DecimalField(**MONEY, null=True, blank=True)
    new_cap = models.DecimalField(**MONEY, null=True, blank=True)
    previous_consumed = models.DecimalField(**MONEY, default=Decimal("0"))
    new_consumed = models.DecimalField(**MONEY, default=Decimal("0"))
    service_request = models.ForeignKey(
        "operations.ServiceRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contract_events",
    )
    amount = models.DecimalField(**MONEY, null=True, blank=True)
    mode = models.CharField(
        max_length=20,
        choices=ChargeMode.choices,
        blank=True,
        default="",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["contract", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.kind}({self.contract_id})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Contract history events are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Contract history events cannot be deleted")
