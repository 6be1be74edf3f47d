"""
Settlement engine and payable account issuance.

Services:
    SettlementService: generate, approve, reject, preview, list and deliver
        settlements
    PayableAccountIssuer: turn approved vehicle lines into payable accounts
    PayableAccountService: downstream payment tracking of payable accounts

Concurrency:
    - generate claims requests and reserves expenses with conditional
      queryset updates inside one transaction and writes the Settlement row
      last. A short row count rolls everything back.
    - approve/reject lock the settlement row (select_for_update), or check
      an expected version through core.locks.check_version, and re-check the
      state under the lock.

Usage:
    from settlements.services import SettlementService

    settlement = SettlementService.generate(
        [request.id for request in requests],
        operational_expense_ids=[expense.id],
        actor=user,
        company_id=user.company_id,
    )
    SettlementService.approve(settlement.id, actor=user, company_id=user.company_id)
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from core.helpers import calculate_pagination
from core.locks import check_version
from core.services import BaseService

from accounts.models import User
from fleet.models import ExpenseState, FleetType, OperationalExpense, PreoperationalInspection
from fleet.services import ExpenseAggregator, UnliquidatedExpenses
from operations.models import AccountingStatus, ServiceRequest
from settlements.calculator import (
    Payee,
    SettlementCalculator,
    build_settlement_number,
)
from settlements.models import (
    PayableAccount,
    PayableLineItem,
    Settlement,
    SettlementDelivery,
    VehicleSettlement,
)
from settlements.states import (
    PayableAccountState,
    PayeeType,
    SettlementState,
    VehicleSettlementState,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from django.db.models import QuerySet


def normalize_ids(values: Iterable) -> tuple[list[uuid.UUID], list[str]]:
    """
    Split raw ids into unique UUIDs (input order kept) and unparseable values.
    """
    valid: list[uuid.UUID] = []
    invalid: list[str] = []
    for value in values or ():
        try:
            parsed = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        except (ValueError, TypeError, AttributeError):
            invalid.append(str(value))
            continue
        if parsed not in valid:
            valid.append(parsed)
    return valid, invalid


LIVE_NUMBER_CONSTRAINT = "settlements_unique_live_number_per_company"


def _is_number_collision(exc: IntegrityError) -> bool:
    """
    Whether ``exc`` comes from the live settlement number constraint.

    PostgreSQL names the constraint through psycopg's ``diag``; SQLite only
    names the offending columns.
    """
    diag = getattr(exc.__cause__, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name:
        return constraint_name == LIVE_NUMBER_CONSTRAINT
    message = str(exc)
    return LIVE_NUMBER_CONSTRAINT in message or "settlements_settlement.number" in message


# =============================================================================
# Result types
# =============================================================================


@dataclass
class PreviewLine:
    vehicle_id: uuid.UUID
    plate: str
    fleet: str
    payee: Payee
    service_request_ids: list[uuid.UUID]
    total_services: Decimal
    operational_expense_ids: list[uuid.UUID]
    total_operational_expenses: Decimal
    preoperational_expense_ids: list[uuid.UUID]
    total_preoperational_expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_services - self.total_operational_expenses


@dataclass
class SettlementPreview:
    lines: list[PreviewLine]
    total_services: Decimal
    total_operational_expenses: Decimal
    total_preoperational_expenses: Decimal
    number: str | None = None

    @property
    def net_total(self) -> Decimal:
        return self.total_services - (
            self.total_operational_expenses + self.total_preoperational_expenses
        )


@dataclass
class SettlementPage:
    items: list[Settlement]
    pagination: dict = field(default_factory=dict)


# =============================================================================
# Settlement engine
# =============================================================================


class SettlementService(BaseService):
    """
    Generate, approve and reject settlements.

    Preconditions of ``generate`` are checked in a fixed order before any
    write; the first failing check determines the error.
    """

    # ==========================================================================
    # Loading
    # ==========================================================================

    @staticmethod
    def _requests_queryset(company_id) -> QuerySet[ServiceRequest]:
        return (
            ServiceRequest.objects.filter(company_id=company_id)
            .select_related(
                "client",
                "vehicle__company",
                "vehicle__owner_company",
                "vehicle__owner_user__company",
            )
            .prefetch_related(
                "assignments__vehicle__company",
                "assignments__vehicle__owner_company",
                "assignments__vehicle__owner_user__company",
            )
        )

    @classmethod
    def _load_requests(cls, request_ids: list[uuid.UUID], invalid: list[str], company_id):
        found = {
            request.id: request
            for request in cls._requests_queryset(company_id).filter(id__in=request_ids)
        }
        missing = invalid + [str(pk) for pk in request_ids if pk not in found]
        if missing:
            raise NotFoundError(
                "Some service requests were not found",
                error_code="SERVICE_REQUESTS_NOT_FOUND",
                details={"ids": missing},
            )
        return [found[pk] for pk in request_ids]

    @classmethod
    def _load_expenses(cls, model, ids: list[uuid.UUID], invalid: list[str], company_id):
        related = "bills" if model is OperationalExpense else "reports"
        found = {
            expense.id: expense
            for expense in model.objects.filter(id__in=ids, company_id=company_id)
            .select_related("vehicle__company", "vehicle__owner_company", "vehicle__owner_user__company")
            .prefetch_related(related)
        }
        missing = invalid + [
            str(pk)
            for pk in ids
            if pk not in found or found[pk].state != ExpenseState.NO_LIQUIDADO
        ]
        reserved = [str(pk) for pk in ids if pk in found and found[pk].settlement_id]
        return [found[pk] for pk in ids if pk in found], missing, reserved

    @staticmethod
    def _as_uuid(value) -> uuid.UUID | None:
        valid, _ = normalize_ids([value])
        return valid[0] if valid else None

    # ==========================================================================
    # Generate
    # ==========================================================================

    @classmethod
    def generate(
        cls,
        service_request_ids: Iterable,
        operational_expense_ids: Iterable = (),
        preoperational_expense_ids: Iterable = (),
        *,
        actor=None,
        company_id,
    ) -> Settlement:
        """
        Create a pending settlement for invoiced requests and expenses.

        Raises:
            ValidationError: EMPTY_SERVICE_REQUESTS, SERVICE_REQUESTS_NOT_INVOICED,
                SERVICE_REQUESTS_WITHOUT_VEHICLE, MIXED_CLIENTS
            NotFoundError: SERVICE_REQUESTS_NOT_FOUND, EXPENSES_NOT_FOUND
            ConflictError: SERVICE_REQUESTS_ALREADY_SETTLED,
                EXPENSES_ALREADY_RESERVED, SETTLEMENT_NUMBER_TAKEN
        """
        request_ids, invalid_request_ids = normalize_ids(service_request_ids)
        operational_ids, invalid_operational = normalize_ids(operational_expense_ids)
        preoperational_ids, invalid_preoperational = normalize_ids(preoperational_expense_ids)

        if not request_ids and not invalid_request_ids:
            raise ValidationError(
                "At least one service request is required",
                error_code="EMPTY_SERVICE_REQUESTS",
            )

        requests = cls._load_requests(request_ids, invalid_request_ids, company_id)

        not_invoiced = [request.code for request in requests if not request.is_invoiced]
        if not_invoiced:
            raise ValidationError(
                "Some service requests are not invoiced",
                error_code="SERVICE_REQUESTS_NOT_INVOICED",
                details={"codes": not_invoiced},
            )

        already_settled = [request.code for request in requests if request.settlement_id]
        if already_settled:
            raise ConflictError(
                "Some service requests already belong to a settlement",
                error_code="SERVICE_REQUESTS_ALREADY_SETTLED",
                details={"codes": already_settled},
            )

        operational, missing_op, reserved_op = cls._load_expenses(
            OperationalExpense, operational_ids, invalid_operational, company_id
        )
        preoperational, missing_preop, reserved_preop = cls._load_expenses(
            PreoperationalInspection, preoperational_ids, invalid_preoperational, company_id
        )
        if missing_op or missing_preop:
            raise NotFoundError(
                "Some expenses were not found or are already liquidated",
                error_code="EXPENSES_NOT_FOUND",
                details={
                    "ids": missing_op + missing_preop,
                    "operational_ids": missing_op,
                    "preoperational_ids": missing_preop,
                },
            )
        if reserved_op or reserved_preop:
            raise ConflictError(
                "Some expenses are held by another pending settlement",
                error_code="EXPENSES_ALREADY_RESERVED",
                details={
                    "ids": reserved_op + reserved_preop,
                    "operational_ids": reserved_op,
                    "preoperational_ids": reserved_preop,
                },
            )

        without_vehicle = [
            request.code for request in requests if not SettlementCalculator.vehicles_for(request)
        ]
        if without_vehicle:
            raise ValidationError(
                "Some service requests have no vehicle",
                error_code="SERVICE_REQUESTS_WITHOUT_VEHICLE",
                details={"codes": without_vehicle},
            )

        client_ids = {request.client_id for request in requests}
        if len(client_ids) > 1:
            raise ValidationError(
                "All service requests must belong to the same client",
                error_code="MIXED_CLIENTS",
                details={"client_ids": sorted(str(pk) for pk in client_ids)},
            )
        client = requests[0].client

        computation = SettlementCalculator.compute(requests, operational, preoperational)
        number = build_settlement_number([request.code for request in requests], client.name)
        cls._ensure_number_available(company_id, number)

        settlement_id = uuid.uuid4()
        try:
            with cls.atomic():
                claimed = ServiceRequest.objects.filter(
                    id__in=request_ids,
                    company_id=company_id,
                    settlement__isnull=True,
                ).update(
                    settlement_id=settlement_id,
                    accounting_status=AccountingStatus.READY_TO_SETTLE,
                )
                if claimed != len(request_ids):
                    raise ConflictError(
                        "Service requests were claimed by a concurrent settlement",
                        error_code="SERVICE_REQUESTS_ALREADY_SETTLED",
                        details={"requested": len(request_ids), "claimed": claimed},
                    )

                for model, ids in (
                    (OperationalExpense, operational_ids),
                    (PreoperationalInspection, preoperational_ids),
                ):
                    if not ids:
                        continue
                    reserved = model.objects.filter(
                        id__in=ids,
                        state=ExpenseState.NO_LIQUIDADO,
                        settlement__isnull=True,
                    ).update(settlement_id=settlement_id)
                    if reserved != len(ids):
                        raise ConflictError(
                            "Expenses were reserved by a concurrent settlement",
                            error_code="EXPENSES_ALREADY_RESERVED",
                            details={"requested": len(ids), "reserved": reserved},
                        )

                settlement = Settlement.objects.create(
                    id=settlement_id,
                    company_id=company_id,
                    number=number,
                    client=client,
                    total_services=computation.total_services,
                    total_operational_expenses=computation.total_operational_expenses,
                    total_preoperational_expenses=computation.total_preoperational_expenses,
                    net_total=computation.net_total,
                    created_by=actor,
                    last_modified_by=actor,
                )
                settlement.service_requests.set(request_ids)
                settlement.operational_expenses.set(operational_ids)
                settlement.preoperational_expenses.set(preoperational_ids)

                for position, accumulator in enumerate(computation.lines):
                    line = VehicleSettlement.objects.create(
                        settlement=settlement,
                        position=position,
                        vehicle=accumulator.vehicle,
                        plate=accumulator.vehicle.plate,
                        fleet=accumulator.vehicle.fleet,
                        owner_type=accumulator.payee.type,
                        owner_company=accumulator.payee.company,
                        owner_user=accumulator.payee.user,
                        owner_name=accumulator.payee.name,
                        primary_service_request=accumulator.primary_service_request,
                        total_services=accumulator.services,
                        total_operational_expenses=accumulator.operational_expenses,
                        net=accumulator.net,
                    )
                    line.service_requests.set(accumulator.service_request_ids)
                    line.operational_expenses.set(accumulator.operational_expense_ids)
        except IntegrityError as exc:
            if not _is_number_collision(exc):
                cls.get_logger().error(
                    "settlement commit failed",
                    extra={"settlement_id": str(settlement_id), "number": number},
                    exc_info=True,
                )
                raise ExternalServiceError(
                    "Settlement could not be stored",
                    error_code="SETTLEMENT_STORE_FAILED",
                    details={"number": number},
                ) from exc
            raise ConflictError(
                f"Settlement number {number} is already in use",
                error_code="SETTLEMENT_NUMBER_TAKEN",
                details={"number": number},
            ) from exc

        cls.get_logger().info(
            "settlement generated",
            extra={
                "settlement_id": str(settlement.id),
                "number": number,
                "company_id": str(company_id),
                "request_count": len(request_ids),
                "line_count": len(computation.lines),
                "total_services": str(computation.total_services),
                "net_total": str(computation.net_total),
            },
        )
        return cls.get_settlement(settlement.id, company_id)

    @classmethod
    def _ensure_number_available(cls, company_id, number: str) -> None:
        taken = (
            Settlement.objects.filter(company_id=company_id, number=number)
            .exclude(state=SettlementState.REJECTED)
            .exists()
        )
        if taken:
            raise ConflictError(
                f"Settlement number {number} is already in use",
                error_code="SETTLEMENT_NUMBER_TAKEN",
                details={"number": number},
            )

    # ==========================================================================
    # Approve / reject
    # ==========================================================================

    @classmethod
    def _lock(cls, settlement_id, company_id=None, expected_version: int | None = None) -> Settlement:
        pk = cls._as_uuid(settlement_id)
        queryset = Settlement.objects.all()
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)

        if pk is not None and expected_version is not None:
            return check_version(Settlement, pk, expected_version, queryset=queryset)

        settlement = queryset.select_for_update().filter(pk=pk).first() if pk else None
        if settlement is None:
            raise NotFoundError(
                f"Settlement {settlement_id} not found",
                error_code="SETTLEMENT_NOT_FOUND",
                details={"pk": str(settlement_id)},
            )
        return settlement

    @staticmethod
    def _transition(settlement: Settlement, name: str, target: str, **kwargs) -> None:
        try:
            getattr(settlement, name)(**kwargs)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot {name} a settlement in state '{settlement.state}'",
                details={
                    "settlement_id": str(settlement.id),
                    "current_state": settlement.state,
                    "target_state": target,
                    "transition": name,
                },
            )

    @classmethod
    def approve(
        cls,
        settlement_id,
        *,
        actor=None,
        notes: str | None = None,
        expected_version: int | None = None,
        company_id=None,
    ) -> Settlement:
        """
        Approve a pending settlement.

        Marks every line ``liquidado_sin_pagar``, issues payable accounts for
        non-owned vehicles, and marks the referenced expenses ``liquidado``.
        When SETTLEMENTS_NOTIFY_ON_APPROVE is set, delivery to the owner is
        queued after commit.

        Raises:
            NotFoundError: SETTLEMENT_NOT_FOUND
            InvalidStateTransitionError: Settlement is not pending
            StaleRecordError: expected_version does not match
        """
        with cls.atomic():
            settlement = cls._lock(settlement_id, company_id, expected_version)
            cls._transition(
                settlement,
                "approve",
                SettlementState.APPROVED,
                actor=actor,
                notes=notes,
            )

            lines = list(
                settlement.lines.select_related(
                    "vehicle", "owner_company", "owner_user", "primary_service_request"
                )
            )
            settlement.lines.update(state=VehicleSettlementState.LIQUIDADO_SIN_PAGAR)

            issued = []
            for line in lines:
                line.state = VehicleSettlementState.LIQUIDADO_SIN_PAGAR
                account = PayableAccountIssuer.issue(settlement, line, actor=actor)
                if account is not None:
                    issued.append(account)

            settlement.save()

            OperationalExpense.objects.filter(
                id__in=settlement.operational_expenses.values("id")
            ).update(state=ExpenseState.LIQUIDADO)
            PreoperationalInspection.objects.filter(
                id__in=settlement.preoperational_expenses.values("id")
            ).update(state=ExpenseState.LIQUIDADO)

            if getattr(settings, "SETTLEMENTS_NOTIFY_ON_APPROVE", True):
                cls._schedule_owner_notification(settlement, actor)

        cls.get_logger().info(
            "settlement approved",
            extra={
                "settlement_id": str(settlement.id),
                "number": settlement.number,
                "line_count": len(lines),
                "payable_accounts": len({account.id for account in issued}),
                "actor_id": str(actor.pk) if actor is not None else None,
            },
        )
        return cls.get_settlement(settlement.id, company_id)

    @classmethod
    def reject(
        cls,
        settlement_id,
        *,
        actor=None,
        notes: str | None = None,
        expected_version: int | None = None,
        company_id=None,
    ) -> Settlement:
        """
        Reject a pending settlement and release everything it held.

        Expenses return to ``no_liquidado`` with no reservation; requests
        return to ``invoiced`` with no settlement reference.
        """
        with cls.atomic():
            settlement = cls._lock(settlement_id, company_id, expected_version)
            cls._transition(
                settlement,
                "reject",
                SettlementState.REJECTED,
                actor=actor,
                notes=notes,
            )
            settlement.save()

            released_operational = OperationalExpense.objects.filter(
                settlement_id=settlement.id
            ).update(state=ExpenseState.NO_LIQUIDADO, settlement=None)
            released_preoperational = PreoperationalInspection.objects.filter(
                settlement_id=settlement.id
            ).update(state=ExpenseState.NO_LIQUIDADO, settlement=None)
            released_requests = ServiceRequest.objects.filter(
                settlement_id=settlement.id
            ).update(settlement=None, accounting_status=AccountingStatus.INVOICED)

        cls.get_logger().info(
            "settlement rejected",
            extra={
                "settlement_id": str(settlement.id),
                "number": settlement.number,
                "released_requests": released_requests,
                "released_operational": released_operational,
                "released_preoperational": released_preoperational,
                "actor_id": str(actor.pk) if actor is not None else None,
            },
        )
        return cls.get_settlement(settlement.id, company_id)

    # ==========================================================================
    # Read operations
    # ==========================================================================

    @classmethod
    def get_settlement(cls, settlement_id, company_id=None) -> Settlement:
        pk = cls._as_uuid(settlement_id)
        queryset = Settlement.objects.select_related("client", "company").prefetch_related(
            "lines__service_requests",
            "lines__operational_expenses",
            "lines__payable_account",
            "service_requests",
            "operational_expenses",
            "preoperational_expenses",
        )
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)
        settlement = queryset.filter(pk=pk).first() if pk else None
        if settlement is None:
            raise NotFoundError(
                f"Settlement {settlement_id} not found",
                error_code="SETTLEMENT_NOT_FOUND",
                details={"pk": str(settlement_id)},
            )
        return settlement

    @classmethod
    def list_settlements(
        cls,
        company_id,
        state: str | None = None,
        page: int = 1,
        per_page: int = 10,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> SettlementPage:
        """List a company's settlements, newest first, one page at a time."""
        queryset = Settlement.objects.filter(company_id=company_id).select_related("client")
        if state:
            if state not in SettlementState.values:
                raise ValidationError(
                    f"Unknown settlement state {state!r}",
                    error_code="INVALID_STATE_FILTER",
                    details={"state": state, "allowed": list(SettlementState.values)},
                )
            queryset = queryset.filter(state=state)
        if date_from:
            queryset = queryset.filter(generated_on__gte=date_from)
        if date_to:
            queryset = queryset.filter(generated_on__lte=date_to)

        per_page = max(1, int(per_page))
        pagination = calculate_pagination(queryset.count(), int(page), per_page)
        offset = (pagination["page"] - 1) * per_page
        items = list(queryset.order_by("-created_at", "-id")[offset : offset + per_page])
        return SettlementPage(items=items, pagination=pagination)

    @classmethod
    def list_pending_expenses(cls, service_request_ids: Iterable, company_id=None) -> UnliquidatedExpenses:
        """Unliquidated expenses of every vehicle serving the given requests."""
        request_ids, _ = normalize_ids(service_request_ids)
        if not request_ids:
            return UnliquidatedExpenses()

        queryset = ServiceRequest.objects.filter(id__in=request_ids).select_related("vehicle")
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)
        queryset = queryset.prefetch_related("assignments__vehicle")

        vehicle_ids = [
            vehicle.id
            for request in queryset
            for vehicle in SettlementCalculator.vehicles_for(request)
        ]
        return ExpenseAggregator.aggregate_unliquidated(vehicle_ids, company_id=company_id)

    @classmethod
    def preview_vehicles_and_expenses(cls, service_request_ids: Iterable, company_id) -> SettlementPreview:
        """
        Allocate requests and every pending expense of their vehicles, without
        writing anything.
        """
        request_ids, invalid = normalize_ids(service_request_ids)
        if not request_ids and not invalid:
            raise ValidationError(
                "At least one service request is required",
                error_code="EMPTY_SERVICE_REQUESTS",
            )
        requests = cls._load_requests(request_ids, invalid, company_id)

        vehicle_ids = [
            vehicle.id for request in requests for vehicle in SettlementCalculator.vehicles_for(request)
        ]
        pending = ExpenseAggregator.aggregate_unliquidated(vehicle_ids, company_id=company_id)
        computation = SettlementCalculator.compute(requests, pending.operational, pending.preoperational)

        preoperational_by_vehicle = defaultdict(list)
        for inspection in pending.preoperational:
            preoperational_by_vehicle[inspection.vehicle_id].append(inspection)

        lines = []
        for accumulator in computation.lines:
            inspections = preoperational_by_vehicle.get(accumulator.vehicle.id, [])
            lines.append(
                PreviewLine(
                    vehicle_id=accumulator.vehicle.id,
                    plate=accumulator.vehicle.plate,
                    fleet=accumulator.vehicle.fleet,
                    payee=accumulator.payee,
                    service_request_ids=accumulator.service_request_ids,
                    total_services=accumulator.services,
                    operational_expense_ids=accumulator.operational_expense_ids,
                    total_operational_expenses=accumulator.operational_expenses,
                    preoperational_expense_ids=[inspection.id for inspection in inspections],
                    total_preoperational_expenses=sum(
                        (inspection.total for inspection in inspections), Decimal("0")
                    ),
                )
            )

        clients = {request.client_id for request in requests}
        number = None
        if len(clients) == 1:
            number = build_settlement_number([r.code for r in requests], requests[0].client.name)

        return SettlementPreview(
            lines=lines,
            total_services=computation.total_services,
            total_operational_expenses=computation.total_operational_expenses,
            total_preoperational_expenses=computation.total_preoperational_expenses,
            number=number,
        )

    # ==========================================================================
    # Delivery
    # ==========================================================================

    @staticmethod
    def resolve_owner_contacts(settlement: Settlement) -> list[str]:
        """
        Email addresses of the payee of the settlement's first line.

        Company payees use the company email, else their first active user.
        """
        line = (
            settlement.lines.select_related("owner_company", "owner_user")
            .order_by("position")
            .first()
        )
        if line is None:
            return []

        if line.owner_type == PayeeType.COMPANY and line.owner_company_id:
            if line.owner_company.email:
                return [line.owner_company.email]
            email = (
                User.objects.filter(company_id=line.owner_company_id, is_active=True)
                .order_by("date_joined")
                .values_list("email", flat=True)
                .first()
            )
            return [email] if email else []

        if line.owner_user_id and line.owner_user.email:
            return [line.owner_user.email]
        return []

    @classmethod
    def _schedule_owner_notification(cls, settlement: Settlement, actor) -> SettlementDelivery | None:
        recipients = cls.resolve_owner_contacts(settlement)
        if not recipients:
            cls.get_logger().warning(
                "settlement owner has no contact email; skipping notification",
                extra={"settlement_id": str(settlement.id)},
            )
            return None

        delivery = SettlementDelivery.objects.create(
            settlement=settlement,
            recipients=recipients,
            sent_by=actor,
        )
        cls._enqueue_delivery(delivery)
        return delivery

    @staticmethod
    def _enqueue_delivery(delivery: SettlementDelivery) -> None:
        from settlements.tasks import deliver_settlement

        delivery_id = str(delivery.id)
        transaction.on_commit(lambda: deliver_settlement.delay(delivery_id), robust=True)

    @classmethod
    def send_to_owner(
        cls,
        settlement_id,
        *,
        actor=None,
        notes: str | None = None,
        company_id=None,
    ) -> SettlementDelivery:
        """
        Queue delivery of an approved settlement to the vehicle owner.

        Raises:
            InvalidStateTransitionError: Settlement is not approved
            ValidationError: OWNER_CONTACT_MISSING
        """
        settlement = cls.get_settlement(settlement_id, company_id)
        if settlement.state != SettlementState.APPROVED:
            raise InvalidStateTransitionError(
                "Only approved settlements can be sent",
                error_code="SETTLEMENT_NOT_APPROVED",
                details={"settlement_id": str(settlement.id), "current_state": settlement.state},
            )

        recipients = cls.resolve_owner_contacts(settlement)
        if not recipients:
            raise ValidationError(
                "The settlement owner has no contact email",
                error_code="OWNER_CONTACT_MISSING",
                details={"settlement_id": str(settlement.id)},
            )

        with cls.atomic():
            delivery = SettlementDelivery.objects.create(
                settlement=settlement,
                recipients=recipients,
                sent_by=actor,
                notes=notes or "",
            )
            cls._enqueue_delivery(delivery)

        cls.get_logger().info(
            "settlement delivery queued",
            extra={
                "settlement_id": str(settlement.id),
                "delivery_id": str(delivery.id),
                "recipient_count": len(recipients),
            },
        )
        return delivery

    @classmethod
    def render_pdf(cls, settlement_id, company_id=None) -> tuple[str, bytes]:
        from settlements.pdf import render_settlement_pdf

        settlement = cls.get_settlement(settlement_id, company_id)
        return f"{settlement.number}.pdf", render_settlement_pdf(settlement)


# =============================================================================
# Payable accounts
# =============================================================================


class PayableAccountIssuer(BaseService):
    """Create or extend payable accounts from approved vehicle lines."""

    @classmethod
    def issue(cls, settlement: Settlement, line: VehicleSettlement, actor=None) -> PayableAccount | None:
        """
        Append the line to the payable account of its primary request.

        Owned (propio) lines and lines without any request are skipped.
        Must run inside the approving transaction.
        """
        if line.fleet == FleetType.PROPIO:
            return None
        if line.primary_service_request_id is None:
            cls.get_logger().warning(
                "vehicle line has no service request; no payable account issued",
                extra={"settlement_id": str(settlement.id), "vehicle_settlement_id": str(line.id)},
            )
            return None

        account, created = PayableAccount.objects.select_for_update().get_or_create(
            company_id=settlement.company_id,
            service_request_id=line.primary_service_request_id,
            defaults={"created_by": actor, "updated_by": actor},
        )

        PayableLineItem.objects.get_or_create(
            idempotency_key=PayableLineItem.build_idempotency_key(settlement.id, line.vehicle_id),
            defaults={
                "account": account,
                "vehicle_settlement": line,
                "vehicle_id": line.vehicle_id,
                "plate": line.plate,
                "fleet": line.fleet,
                "payee_type": line.owner_type,
                "payee_company_id": line.owner_company_id,
                "payee_user_id": line.owner_user_id,
                "payee_name": line.owner_name,
                "base_value": line.total_services,
                "deducted_expenses": line.total_operational_expenses,
                "net_value": line.net,
            },
        )

        try:
            account.calculate(actor=actor)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Payable account is {account.state}; it cannot take new lines",
                error_code="PAYABLE_ACCOUNT_CLOSED",
                details={"payable_account_id": str(account.id), "current_state": account.state},
            )
        account.save()

        VehicleSettlement.objects.filter(pk=line.pk).update(payable_account=account)
        line.payable_account = account

        cls.get_logger().info(
            "payable line issued",
            extra={
                "settlement_id": str(settlement.id),
                "payable_account_id": str(account.id),
                "vehicle_id": str(line.vehicle_id),
                "created_account": created,
                "net_value": str(line.net),
            },
        )
        return account


class PayableAccountService(BaseService):
    """Payment tracking for payable accounts."""

    @classmethod
    def list_accounts(cls, company_id, state: str | None = None) -> QuerySet[PayableAccount]:
        queryset = PayableAccount.objects.filter(company_id=company_id).select_related(
            "service_request"
        )
        if state:
            queryset = queryset.filter(state=state)
        return queryset

    @classmethod
    def _lock(cls, account_id, company_id=None, expected_version: int | None = None) -> PayableAccount:
        pk = SettlementService._as_uuid(account_id)
        queryset = PayableAccount.objects.all()
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)
        if pk is not None and expected_version is not None:
            return check_version(PayableAccount, pk, expected_version, queryset=queryset)
        account = queryset.select_for_update().filter(pk=pk).first() if pk else None
        if account is None:
            raise NotFoundError(
                f"Payable account {account_id} not found",
                error_code="PAYABLEACCOUNT_NOT_FOUND",
                details={"pk": str(account_id)},
            )
        return account

    @staticmethod
    def _transition(account: PayableAccount, name: str, target: str, **kwargs) -> None:
        try:
            getattr(account, name)(**kwargs)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot {name} a payable account in state '{account.state}'",
                details={
                    "payable_account_id": str(account.id),
                    "current_state": account.state,
                    "target_state": target,
                    "transition": name,
                },
            )

    @classmethod
    def register_payment(
        cls,
        account_id,
        *,
        actor=None,
        payment_date=None,
        disbursement_number: str = "",
        support_document: str = "",
        company_id=None,
        expected_version: int | None = None,
    ) -> PayableAccount:
        """Mark a calculated account paid and its vehicle lines ``pagado``."""
        with cls.atomic():
            account = cls._lock(account_id, company_id, expected_version)
            cls._transition(
                account,
                "pay",
                PayableAccountState.PAGADA,
                actor=actor,
                payment_date=payment_date,
                disbursement_number=disbursement_number,
                support_document=support_document,
            )
            account.save()
            paid_lines = VehicleSettlement.objects.filter(payable_account=account).update(
                state=VehicleSettlementState.PAGADO
            )

        cls.get_logger().info(
            "payable account paid",
            extra={
                "payable_account_id": str(account.id),
                "net_total": str(account.net_total),
                "paid_lines": paid_lines,
            },
        )
        return account

    @classmethod
    def cancel(
        cls,
        account_id,
        *,
        actor=None,
        reason: str = "",
        company_id=None,
        expected_version: int | None = None,
    ) -> PayableAccount:
        with cls.atomic():
            account = cls._lock(account_id, company_id, expected_version)
            cls._transition(
                account,
                "cancel",
                PayableAccountState.CANCELADA,
                actor=actor,
                reason=reason,
            )
            account.save()

        cls.get_logger().info(
            "payable account cancelled",
            extra={"payable_account_id": str(account.id), "reason": reason},
        )
        return account
