"""
Views for settlement and payable account API.

Endpoints:
    GET  /api/v1/settlements/                    - List settlements (paged)
    POST /api/v1/settlements/                    - Generate a settlement
    GET  /api/v1/settlements/{id}/               - Settlement detail with lines
    POST /api/v1/settlements/{id}/approve/       - Approve
    POST /api/v1/settlements/{id}/reject/        - Reject
    POST /api/v1/settlements/{id}/send/          - Email to the vehicle owner
    GET  /api/v1/settlements/{id}/pdf/           - Download as PDF
    GET  /api/v1/settlements/pending-expenses/   - Unliquidated expenses for requests
    GET  /api/v1/settlements/preview/            - Provisional allocation

    GET  /api/v1/payables/                       - List payable accounts
    GET  /api/v1/payables/{id}/                  - Payable account detail
    POST /api/v1/payables/{id}/pay/              - Register payment
    POST /api/v1/payables/{id}/cancel/           - Cancel
"""

from __future__ import annotations

from django.http import HttpResponse
from django.utils.dateparse import parse_date
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)

from accounts.permissions import IsAccountingStaff
from core.exceptions import ValidationError
from core.helpers import validate_uuid
from settlements.models import PayableAccount
from settlements.serializers import (
    CancelPayableAccountSerializer,
    GenerateSettlementSerializer,
    PayableAccountSerializer,
    PendingExpensesSerializer,
    RegisterPaymentSerializer,
    SendSettlementSerializer,
    SettlementDecisionSerializer,
    SettlementDeliverySerializer,
    SettlementDetailSerializer,
    SettlementPreviewSerializer,
    SettlementSerializer,
)
from settlements.services import PayableAccountService, SettlementService

TAGS = ["Settlements"]
PAYABLE_TAGS = ["Payable accounts"]

SERVICE_REQUEST_IDS_PARAM = OpenApiParameter(
    name="service_request_ids",
    type=str,
    location=OpenApiParameter.QUERY,
    description="Service request ids, repeated or comma-separated",
    required=True,
)


def _query_ids(request, name: str) -> list[str]:
    values = []
    for raw in request.query_params.getlist(name):
        values.extend(part.strip() for part in raw.split(",") if part.strip())
    return values


def _query_date(request, name: str):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        parsed = parse_date(raw)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(
            f"Invalid date for {name}",
            error_code="INVALID_DATE_FILTER",
            details={name: raw},
        )
    return parsed


def _positive_int(value, default: int) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return default


class SettlementViewSet(viewsets.ViewSet):
    """
    Settlement engine endpoints.

    Permissions:
    - Any company user can read
    - Accounting and admin roles can generate, approve, reject and send
    """

    permission_classes = [IsAccountingStaff]

    @extend_schema(
        operation_id="list_settlements",
        summary="List settlements",
        parameters=[
            OpenApiParameter("state", str, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("page", int, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("per_page", int, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("date_from", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("date_to", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: SettlementSerializer(many=True)},
        tags=TAGS,
    )
    def list(self, request):
        params = request.query_params
        page = SettlementService.list_settlements(
            request.user.company_id,
            state=params.get("state") or None,
            page=_positive_int(params.get("page"), 1),
            per_page=min(_positive_int(params.get("per_page"), 10), 100),
            date_from=_query_date(request, "date_from"),
            date_to=_query_date(request, "date_to"),
        )
        return Response(
            {
                "results": SettlementSerializer(page.items, many=True).data,
                "pagination": page.pagination,
            }
        )

    @extend_schema(
        operation_id="generate_settlement",
        summary="Generate settlement",
        description=(
            "Consolidate invoiced service requests and selected vehicle expenses "
            "into a pending settlement."
        ),
        request=GenerateSettlementSerializer,
        responses={
            201: SettlementDetailSerializer,
            400: OpenApiResponse(description="Empty, not invoiced, no vehicle or mixed clients"),
            404: OpenApiResponse(description="Requests or expenses not found"),
            409: OpenApiResponse(description="Already settled, reserved, or number taken"),
        },
        tags=TAGS,
    )
    def create(self, request):
        serializer = GenerateSettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        settlement = SettlementService.generate(
            data["service_request_ids"],
            data.get("operational_expense_ids", []),
            data.get("preoperational_expense_ids", []),
            actor=request.user,
            company_id=request.user.company_id,
        )
        return Response(SettlementDetailSerializer(settlement).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="get_settlement",
        summary="Get settlement",
        responses={200: SettlementDetailSerializer},
        tags=TAGS,
    )
    def retrieve(self, request, pk=None):
        settlement = SettlementService.get_settlement(pk, request.user.company_id)
        return Response(SettlementDetailSerializer(settlement).data)

    @extend_schema(
        operation_id="approve_settlement",
        summary="Approve settlement",
        description=(
            "Approve a pending settlement: lines become settled-unpaid, payable "
            "accounts are issued for non-owned vehicles and expenses are liquidated."
        ),
        request=SettlementDecisionSerializer,
        responses={
            200: SettlementDetailSerializer,
            404: OpenApiResponse(description="Settlement not found"),
            409: OpenApiResponse(description="Not pending, or version mismatch"),
        },
        tags=TAGS,
    )
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        serializer = SettlementDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        settlement = SettlementService.approve(
            pk,
            actor=request.user,
            notes=serializer.validated_data.get("notes"),
            expected_version=serializer.validated_data.get("version"),
            company_id=request.user.company_id,
        )
        return Response(SettlementDetailSerializer(settlement).data)

    @extend_schema(
        operation_id="reject_settlement",
        summary="Reject settlement",
        description="Reject a pending settlement and release its requests and expenses.",
        request=SettlementDecisionSerializer,
        responses={
            200: SettlementDetailSerializer,
            404: OpenApiResponse(description="Settlement not found"),
            409: OpenApiResponse(description="Not pending, or version mismatch"),
        },
        tags=TAGS,
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        serializer = SettlementDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        settlement = SettlementService.reject(
            pk,
            actor=request.user,
            notes=serializer.validated_data.get("notes"),
            expected_version=serializer.validated_data.get("version"),
            company_id=request.user.company_id,
        )
        return Response(SettlementDetailSerializer(settlement).data)

    @extend_schema(
        operation_id="send_settlement",
        summary="Send settlement to owner",
        request=SendSettlementSerializer,
        responses={
            202: SettlementDeliverySerializer,
            400: OpenApiResponse(description="Owner has no contact email"),
            409: OpenApiResponse(description="Settlement not approved"),
        },
        tags=TAGS,
    )
    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        serializer = SendSettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        delivery = SettlementService.send_to_owner(
            pk,
            actor=request.user,
            notes=serializer.validated_data.get("notes"),
            company_id=request.user.company_id,
        )
        return Response(SettlementDeliverySerializer(delivery).data, status=status.HTTP_202_ACCEPTED)

    @extend_schema(
        operation_id="download_settlement_pdf",
        summary="Download settlement PDF",
        responses={(200, "application/pdf"): OpenApiTypes.BINARY},
        tags=TAGS,
    )
    @action(detail=True, methods=["get"])
    def pdf(self, request, pk=None):
        filename, content = SettlementService.render_pdf(pk, request.user.company_id)
        response = HttpResponse(content, content_type="application/pdf")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    @extend_schema(
        operation_id="list_pending_expenses",
        summary="List pending expenses",
        description="Unliquidated, unreserved expenses of the vehicles serving the given requests.",
        parameters=[SERVICE_REQUEST_IDS_PARAM],
        responses={200: PendingExpensesSerializer},
        tags=TAGS,
    )
    @action(detail=False, methods=["get"], url_path="pending-expenses")
    def pending_expenses(self, request):
        pending = SettlementService.list_pending_expenses(
            _query_ids(request, "service_request_ids"),
            company_id=request.user.company_id,
        )
        return Response(PendingExpensesSerializer(pending).data)

    @extend_schema(
        operation_id="preview_vehicles_and_expenses",
        summary="Preview settlement",
        description="Per-vehicle allocation of the given requests and their pending expenses.",
        parameters=[SERVICE_REQUEST_IDS_PARAM],
        responses={200: SettlementPreviewSerializer},
        tags=TAGS,
    )
    @action(detail=False, methods=["get"])
    def preview(self, request):
        preview = SettlementService.preview_vehicles_and_expenses(
            _query_ids(request, "service_request_ids"),
            company_id=request.user.company_id,
        )
        return Response(SettlementPreviewSerializer(preview).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_payable_accounts",
        summary="List payable accounts",
        parameters=[OpenApiParameter("state", str, OpenApiParameter.QUERY, required=False)],
        tags=PAYABLE_TAGS,
    ),
    retrieve=extend_schema(
        operation_id="get_payable_account",
        summary="Get payable account",
        tags=PAYABLE_TAGS,
    ),
)
class PayableAccountViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Payable accounts issued from approved settlements."""

    permission_classes = [IsAccountingStaff]
    serializer_class = PayableAccountSerializer

    def get_queryset(self):
        if self.kwargs.get("pk") and not validate_uuid(self.kwargs["pk"]):
            return PayableAccount.objects.none()
        return PayableAccountService.list_accounts(
            self.request.user.company_id,
            state=self.request.query_params.get("state") or None,
        ).prefetch_related("line_items__vehicle_settlement")

    @extend_schema(
        operation_id="pay_payable_account",
        summary="Register payment",
        request=RegisterPaymentSerializer,
        responses={
            200: PayableAccountSerializer,
            409: OpenApiResponse(description="Account not calculated, or version mismatch"),
        },
        tags=PAYABLE_TAGS,
    )
    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):
        serializer = RegisterPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        account = PayableAccountService.register_payment(
            pk,
            actor=request.user,
            payment_date=data.get("payment_date"),
            disbursement_number=data.get("disbursement_number", ""),
            support_document=data.get("support_document", ""),
            company_id=request.user.company_id,
            expected_version=data.get("version"),
        )
        return Response(PayableAccountSerializer(account).data)

    @extend_schema(
        operation_id="cancel_payable_account",
        summary="Cancel payable account",
        request=CancelPayableAccountSerializer,
        responses={200: PayableAccountSerializer},
        tags=PAYABLE_TAGS,
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = CancelPayableAccountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        account = PayableAccountService.cancel(
            pk,
            actor=request.user,
            reason=serializer.validated_data["reason"],
            company_id=request.user.company_id,
            expected_version=serializer.validated_data.get("version"),
        )
        return Response(PayableAccountSerializer(account).data)
