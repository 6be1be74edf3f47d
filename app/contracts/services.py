"""
Contract budget ledger.

ContractLedgerService is the only writer of ``Contract.consumed`` and
``Contract.budget_cap``. Every write is a conditional UPDATE on the
contract's version, paired with a ContractHistoryEvent in the same
transaction, and retried a bounded number of times when another writer
wins the race.

Usage:
    from contracts.services import ContractLedgerService
    from contracts.models import ChargeMode

    contract = ContractLedgerService.charge(
        contract_id,
        Decimal("500000"),
        mode=ChargeMode.WITHIN_CONTRACT,
        actor=request.user,
        service_request_id=service_request.id,
    )
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import ConflictError, NotFoundError, StaleRecordError, ValidationError
from core.helpers import parse_money, quantize_money
from core.locks import compare_and_set
from core.services import BaseService

from contracts.models import (
    BudgetPeriod,
    ChargeMode,
    Contract,
    ContractHistoryEvent,
    ContractType,
    HistoryKind,
    PricingMode,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any
    from uuid import UUID

    from django.db.models import QuerySet

PRICING_FIELDS = ("per_hour", "per_km", "per_distance", "tariff", "per_trip", "per_leg")
UPDATABLE_FIELDS = frozenset(
    (*PRICING_FIELDS, "default_pricing_mode", "budget_period", "budget_cap", "end_date", "is_active", "notes")
)


class ContractLedgerService(BaseService):
    """
    Charges, budget adjustments and lifecycle of contracts.

    Caps are advisory: a charge that takes ``consumed`` past the cap is
    accepted and recorded like any other.
    """

    # ==========================================================================
    # Lookups
    # ==========================================================================

    @classmethod
    def get_contract(cls, contract_id: UUID, company_id: UUID | None = None) -> Contract:
        queryset = Contract.objects.select_related("client")
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)
        try:
            return queryset.get(id=contract_id)
        except (Contract.DoesNotExist, DjangoValidationError):
            raise NotFoundError(
                f"Contract {contract_id} not found",
                error_code="CONTRACT_NOT_FOUND",
                details={"contract_id": str(contract_id)},
            )

    @classmethod
    def list_contracts(
        cls,
        company_id: UUID,
        only_active: bool = False,
        client_id: UUID | None = None,
    ) -> QuerySet[Contract]:
        queryset = Contract.objects.filter(company_id=company_id).select_related("client")
        if only_active:
            queryset = queryset.filter(is_active=True)
        if client_id is not None:
            queryset = queryset.filter(client_id=client_id)
        return queryset

    # ==========================================================================
    # Ledger writes
    # ==========================================================================

    @classmethod
    def charge(
        cls,
        contract_id: UUID,
        amount: Any,
        *,
        mode: str = ChargeMode.WITHIN_CONTRACT,
        actor=None,
        service_request_id: UUID | None = None,
        notes: str | None = None,
        company_id: UUID | None = None,
    ) -> Contract:
        """
        Record a service charge against a contract.

        Within-contract charges add ``amount`` to ``consumed``; outside-contract
        charges only leave an audit event.

        Raises:
            ValidationError: INVALID_AMOUNT for negative or malformed amounts,
                INVALID_CHARGE_MODE for an unknown mode
            NotFoundError: CONTRACT_NOT_FOUND, SERVICE_REQUEST_NOT_FOUND when the
                request is not one of the contract company's
            ConflictError: CONTRACT_INACTIVE
            StaleRecordError: Retries exhausted under contention
        """
        value = cls._require_amount(amount, field="amount")
        if mode not in ChargeMode.values:
            raise ValidationError(
                f"Unknown charge mode {mode!r}",
                error_code="INVALID_CHARGE_MODE",
                details={"mode": mode, "allowed": list(ChargeMode.values)},
            )

        def mutate(contract: Contract) -> tuple[dict, dict]:
            if service_request_id is not None:
                cls._require_service_request(contract, service_request_id)
            previous = contract.consumed
            new = previous + value if mode == ChargeMode.WITHIN_CONTRACT else previous
            values = {"consumed": new} if new != previous else {}
            event = {
                "kind": HistoryKind.SERVICE_CHARGE,
                "previous_cap": contract.budget_cap,
                "new_cap": contract.budget_cap,
                "previous_consumed": previous,
                "new_consumed": new,
                "service_request_id": service_request_id,
                "amount": value,
                "mode": mode,
            }
            return values, event

        contract, event = cls._apply(contract_id, company_id, actor, notes, mutate)

        cls.get_logger().info(
            "contract charged",
            extra={
                "contract_id": str(contract.id),
                "amount": str(value),
                "mode": mode,
                "previous_consumed": str(event.previous_consumed),
                "new_consumed": str(event.new_consumed),
                "over_budget": contract.is_over_budget,
            },
        )
        return contract

    @classmethod
    def adjust(
        cls,
        contract_id: UUID,
        new_cap: Any,
        *,
        actor=None,
        notes: str | None = None,
        company_id: UUID | None = None,
    ) -> Contract:
        """
        Set the contract's cap directly. ``None`` removes the cap.

        Raises:
            ValidationError: INVALID_AMOUNT for a negative or malformed cap
            NotFoundError: CONTRACT_NOT_FOUND
            ConflictError: CONTRACT_INACTIVE
        """
        cap = None if new_cap is None else cls._require_amount(new_cap, field="budget_cap")

        def mutate(contract: Contract) -> tuple[dict, dict]:
            event = {
                "kind": HistoryKind.BUDGET_SET,
                "previous_cap": contract.budget_cap,
                "new_cap": cap,
                "previous_consumed": contract.consumed,
                "new_consumed": contract.consumed,
            }
            return {"budget_cap": cap}, event

        contract, event = cls._apply(contract_id, company_id, actor, notes, mutate)

        cls.get_logger().info(
            "contract budget adjusted",
            extra={
                "contract_id": str(contract.id),
                "previous_cap": None if event.previous_cap is None else str(event.previous_cap),
                "new_cap": None if cap is None else str(cap),
            },
        )
        return contract

    @classmethod
    def adjust_consumption(
        cls,
        contract_id: UUID,
        delta: Any,
        *,
        actor=None,
        notes: str | None = None,
        company_id: UUID | None = None,
    ) -> Contract:
        """
        Manually correct ``consumed`` by ``delta`` (positive or negative).

        Raises:
            ValidationError: INVALID_AMOUNT for a malformed delta or a
                result below zero
        """
        value = parse_money(delta)
        if value is None:
            raise ValidationError(
                "Adjustment must be a monetary value",
                error_code="INVALID_AMOUNT",
                details={"delta": str(delta)},
            )

        def mutate(contract: Contract) -> tuple[dict, dict]:
            new = contract.consumed + value
            if new < 0:
                raise ValidationError(
                    "Consumption cannot drop below zero",
                    error_code="INVALID_AMOUNT",
                    details={"consumed": str(contract.consumed), "delta": str(value)},
                )
            event = {
                "kind": HistoryKind.MANUAL_ADJUST,
                "previous_cap": contract.budget_cap,
                "new_cap": contract.budget_cap,
                "previous_consumed": contract.consumed,
                "new_consumed": new,
                "amount": value,
            }
            return {"consumed": new}, event

        contract, event = cls._apply(contract_id, company_id, actor, notes, mutate)

        cls.get_logger().info(
            "contract consumption adjusted",
            extra={
                "contract_id": str(contract.id),
                "delta": str(value),
                "previous_consumed": str(event.previous_consumed),
                "new_consumed": str(event.new_consumed),
            },
        )
        return contract

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @classmethod
    def create_contract(
        cls,
        company_id: UUID,
        client_id: UUID,
        *,
        actor=None,
        budget_cap: Any = None,
        budget_period: str | None = None,
        pricing: dict | None = None,
        end_date=None,
        notes: str = "",
    ) -> Contract:
        """
        Create a fixed-budget contract and its initial ``budget_set`` event.

        Raises:
            NotFoundError: CLIENT_NOT_FOUND when the client is not the company's
            ValidationError: BUDGET_REQUIRED, INVALID_AMOUNT, INVALID_PRICING
        """
        from operations.models import Client

        if not Client.objects.filter(id=client_id, company_id=company_id).exists():
            raise NotFoundError(
                f"Client {client_id} not found",
                error_code="CLIENT_NOT_FOUND",
                details={"client_id": str(client_id)},
            )

        if budget_cap is None or not budget_period:
            raise ValidationError(
                "Fixed contracts need both a budget cap and a budget period",
                error_code="BUDGET_REQUIRED",
                details={"budget_cap": budget_cap is not None, "budget_period": bool(budget_period)},
            )
        cls._require_period(budget_period)
        cap = cls._require_amount(budget_cap, field="budget_cap")
        pricing_values = cls._clean_pricing(pricing or {})

        with cls.atomic():
            contract = Contract.objects.create(
                company_id=company_id,
                client_id=client_id,
                contract_type=ContractType.FIXED,
                budget_cap=cap,
                budget_period=budget_period,
                end_date=end_date,
                notes=notes or "",
                created_by=actor,
                **pricing_values,
            )
            ContractHistoryEvent.objects.create(
                contract=contract,
                kind=HistoryKind.BUDGET_SET,
                previous_cap=None,
                new_cap=cap,
                previous_consumed=Decimal("0"),
                new_consumed=Decimal("0"),
                actor=actor,
                notes="Contract created",
            )

        cls.get_logger().info(
            "contract created",
            extra={
                "contract_id": str(contract.id),
                "company_id": str(company_id),
                "client_id": str(client_id),
                "budget_cap": str(cap),
            },
        )
        return contract

    @classmethod
    def update_contract(
        cls,
        contract_id: UUID,
        *,
        actor=None,
        company_id: UUID | None = None,
        **changes,
    ) -> Contract:
        """
        Update pricing, period, cap, end date or the active flag.

        A change of period or cap appends a ``budget_set`` event.
        """
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "These fields cannot be updated",
                error_code="UNKNOWN_FIELDS",
                details={"fields": unknown},
            )

        if "budget_period" in changes and changes["budget_period"] is not None:
            cls._require_period(changes["budget_period"])
        if changes.get("budget_cap") is not None:
            changes["budget_cap"] = cls._require_amount(changes["budget_cap"], field="budget_cap")
        pricing_keys = (*PRICING_FIELDS, "default_pricing_mode")
        changes.update(cls._clean_pricing({k: v for k, v in changes.items() if k in pricing_keys}))

        with cls.atomic():
            contract = cls._locked(contract_id, company_id)
            previous_cap = contract.budget_cap
            previous_period = contract.budget_period

            for field_name, value in changes.items():
                setattr(contract, field_name, value)
            contract.save(update_fields=[*changes, "updated_at"])

            if contract.budget_cap != previous_cap or contract.budget_period != previous_period:
                ContractHistoryEvent.objects.create(
                    contract=contract,
                    kind=HistoryKind.BUDGET_SET,
                    previous_cap=previous_cap,
                    new_cap=contract.budget_cap,
                    previous_consumed=contract.consumed,
                    new_consumed=contract.consumed,
                    actor=actor,
                    notes=f"Budget period {previous_period or '-'} -> {contract.budget_period or '-'}",
                )

        cls.get_logger().info(
            "contract updated",
            extra={"contract_id": str(contract.id), "fields": sorted(changes)},
        )
        return contract

    @classmethod
    def deactivate(cls, contract_id: UUID, *, actor=None, company_id: UUID | None = None) -> Contract:
        with cls.atomic():
            contract = cls._locked(contract_id, company_id)
            if contract.is_active:
                contract.is_active = False
                contract.save(update_fields=["is_active", "updated_at"])

        cls.get_logger().info(
            "contract deactivated",
            extra={
                "contract_id": str(contract.id),
                "actor_id": str(actor.pk) if actor is not None else None,
            },
        )
        return contract

    # ==========================================================================
    # Internals
    # ==========================================================================

    @classmethod
    def _apply(
        cls,
        contract_id: UUID,
        company_id: UUID | None,
        actor,
        notes: str | None,
        mutate: Callable[[Contract], tuple[dict, dict]],
    ) -> tuple[Contract, ContractHistoryEvent]:
        """
        Read, compute, conditionally write and audit, retrying on contention.

        ``mutate`` receives a fresh snapshot and returns the column values to
        write plus the history event fields.
        """
        max_retries = max(1, getattr(settings, "CONTRACT_CHARGE_MAX_RETRIES", 3))

        for attempt in range(1, max_retries + 1):
            contract = cls.get_contract(contract_id, company_id)
            if not contract.is_active:
                raise ConflictError(
                    f"Contract {contract_id} is inactive",
                    error_code="CONTRACT_INACTIVE",
                    details={"contract_id": str(contract_id)},
                )

            values, event_fields = mutate(contract)

            with cls.atomic():
                if not compare_and_set(Contract, contract.pk, contract.version, **values):
                    cls.get_logger().debug(
                        "contract write lost race",
                        extra={"contract_id": str(contract.pk), "attempt": attempt},
                    )
                    continue
                event = ContractHistoryEvent.objects.create(
                    contract_id=contract.pk,
                    actor=actor,
                    notes=notes or "",
                    **event_fields,
                )

            return Contract.objects.select_related("client").get(pk=contract.pk), event

        raise StaleRecordError(
            f"Contract {contract_id} is being modified concurrently",
            details={"contract_id": str(contract_id), "attempts": max_retries},
        )

    @classmethod
    def _locked(cls, contract_id: UUID, company_id: UUID | None) -> Contract:
        queryset = Contract.objects.select_for_update()
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)
        try:
            return queryset.get(id=contract_id)
        except (Contract.DoesNotExist, DjangoValidationError):
            raise NotFoundError(
                f"Contract {contract_id} not found",
                error_code="CONTRACT_NOT_FOUND",
                details={"contract_id": str(contract_id)},
            )

    @staticmethod
    def _require_service_request(contract: Contract, service_request_id: UUID) -> None:
        from operations.models import ServiceRequest

        try:
            exists = ServiceRequest.objects.filter(
                id=service_request_id, company_id=contract.company_id
            ).exists()
        except DjangoValidationError:
            exists = False
        if not exists:
            raise NotFoundError(
                f"Service request {service_request_id} not found",
                error_code="SERVICE_REQUEST_NOT_FOUND",
                details={"service_request_id": str(service_request_id)},
            )

    @staticmethod
    def _require_amount(value: Any, field: str) -> Decimal:
        amount = parse_money(value)
        if amount is None or amount < 0:
            raise ValidationError(
                f"{field} must be a non-negative monetary value",
                error_code="INVALID_AMOUNT",
                details={field: str(value)},
            )
        return quantize_money(amount)

    @staticmethod
    def _require_period(period: str) -> None:
        if period not in BudgetPeriod.values:
            raise ValidationError(
                f"Unknown budget period {period!r}",
                error_code="INVALID_BUDGET_PERIOD",
                details={"budget_period": period, "allowed": list(BudgetPeriod.values)},
            )

    @classmethod
    def _clean_pricing(cls, pricing: dict) -> dict:
        cleaned = {}
        for key, value in pricing.items():
            if key == "default_pricing_mode":
                if value not in PricingMode.values:
                    raise ValidationError(
                        f"Unknown pricing mode {value!r}",
                        error_code="INVALID_PRICING",
                        details={"default_pricing_mode": value},
                    )
                cleaned[key] = value
            elif key in PRICING_FIELDS:
                cleaned[key] = None if value is None else cls._require_amount(value, field=key)
            else:
                raise ValidationError(
                    f"Unknown pricing field {key!r}",
                    error_code="INVALID_PRICING",
                    details={"field": key},
                )
        return cleaned


