"""
Views for contract API.

Endpoints:
    GET  /api/v1/contracts/                        - List company contracts
    POST /api/v1/contracts/                        - Create a contract
    GET  /api/v1/contracts/{id}/                   - Contract detail with history
    POST /api/v1/contracts/{id}/charge/            - Record a service charge
    POST /api/v1/contracts/{id}/adjust-budget/     - Change the budget cap
    POST /api/v1/contracts/{id}/adjust-consumption/ - Correct consumption
    POST /api/v1/contracts/{id}/deactivate/        - Deactivate

Business rule violations raise core.exceptions errors, which the API
exception handler renders with their HTTP status.
"""

from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)

from accounts.permissions import IsContractManager
from contracts.models import Contract
from contracts.serializers import (
    AdjustBudgetSerializer,
    AdjustConsumptionSerializer,
    ChargeContractSerializer,
    ContractCreateSerializer,
    ContractDetailSerializer,
    ContractSerializer,
)
from contracts.services import ContractLedgerService
from core.helpers import validate_uuid

TAGS = ["Contracts"]


@extend_schema_view(
    list=extend_schema(
        operation_id="list_contracts",
        summary="List contracts",
        description="List contracts of the caller's company, newest first.",
        parameters=[
            OpenApiParameter(
                name="active",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Only active contracts",
                required=False,
            ),
            OpenApiParameter(
                name="client",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Filter by client id",
                required=False,
            ),
        ],
        tags=TAGS,
    ),
    retrieve=extend_schema(
        operation_id="get_contract",
        summary="Get contract",
        description="Contract details including its budget history.",
        responses={200: ContractDetailSerializer},
        tags=TAGS,
    ),
)
class ContractViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Contract budget ledger endpoints.

    Permissions:
    - Any company user can read
    - Commercial, coordinator, accounting and admin roles can write
    """

    permission_classes = [IsContractManager]
    serializer_class = ContractSerializer

    def get_queryset(self):
        params = self.request.query_params
        client_id = params.get("client") or None
        if client_id and not validate_uuid(client_id):
            return Contract.objects.none()
        queryset = ContractLedgerService.list_contracts(
            self.request.user.company_id,
            only_active=params.get("active", "").lower() == "true",
            client_id=client_id,
        )
        if self.action == "retrieve":
            queryset = queryset.prefetch_related("history__actor")
        return queryset

    def get_serializer_class(self):
        if self.action == "retrieve":
            return ContractDetailSerializer
        return ContractSerializer

    @extend_schema(
        operation_id="create_contract",
        summary="Create contract",
        request=ContractCreateSerializer,
        responses={
            201: ContractSerializer,
            400: OpenApiResponse(description="Missing budget or invalid amounts"),
            404: OpenApiResponse(description="Client not found"),
        },
        tags=TAGS,
    )
    def create(self, request):
        serializer = ContractCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        contract = ContractLedgerService.create_contract(
            request.user.company_id,
            data["client_id"],
            actor=request.user,
            budget_cap=data["budget_cap"],
            budget_period=data["budget_period"],
            pricing=data.get("pricing"),
            end_date=data.get("end_date"),
            notes=data.get("notes", ""),
        )
        return Response(ContractSerializer(contract).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="charge_contract",
        summary="Charge contract",
        description=(
            "Record a service charge. Within-contract charges increase consumption "
            "even past the advisory cap; outside-contract charges are audit-only."
        ),
        request=ChargeContractSerializer,
        responses={
            200: ContractSerializer,
            400: OpenApiResponse(description="Invalid amount"),
            404: OpenApiResponse(description="Contract not found"),
            409: OpenApiResponse(description="Contract inactive or concurrently modified"),
        },
        tags=TAGS,
    )
    @action(detail=True, methods=["post"])
    def charge(self, request, pk=None):
        serializer = ChargeContractSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        contract = ContractLedgerService.charge(
            pk,
            data["amount"],
            mode=data["mode"],
            actor=request.user,
            service_request_id=data.get("service_request_id"),
            notes=data.get("notes"),
            company_id=request.user.company_id,
        )
        return Response(ContractSerializer(contract).data)

    @extend_schema(
        operation_id="adjust_contract_budget",
        summary="Adjust contract budget",
        request=AdjustBudgetSerializer,
        responses={
            200: ContractSerializer,
            400: OpenApiResponse(description="Invalid cap"),
            404: OpenApiResponse(description="Contract not found"),
            409: OpenApiResponse(description="Contract inactive"),
        },
        tags=TAGS,
    )
    @action(detail=True, methods=["post"], url_path="adjust-budget")
    def adjust_budget(self, request, pk=None):
        serializer = AdjustBudgetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        contract = ContractLedgerService.adjust(
            pk,
            serializer.validated_data["budget_cap"],
            actor=request.user,
            notes=serializer.validated_data.get("notes"),
            company_id=request.user.company_id,
        )
        return Response(ContractSerializer(contract).data)

    @extend_schema(
        operation_id="adjust_contract_consumption",
        summary="Adjust contract consumption",
        request=AdjustConsumptionSerializer,
        responses={200: ContractSerializer},
        tags=TAGS,
    )
    @action(detail=True, methods=["post"], url_path="adjust-consumption")
    def adjust_consumption(self, request, pk=None):
        serializer = AdjustConsumptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        contract = ContractLedgerService.adjust_consumption(
            pk,
            serializer.validated_data["delta"],
            actor=request.user,
            notes=serializer.validated_data.get("notes"),
            company_id=request.user.company_id,
        )
        return Response(ContractSerializer(contract).data)

    @extend_schema(
        operation_id="deactivate_contract",
        summary="Deactivate contract",
        request=None,
        responses={200: ContractSerializer},
        tags=TAGS,
    )
    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        contract = ContractLedgerService.deactivate(
            pk,
            actor=request.user,
            company_id=request.user.company_id,
        )
        return Response(ContractSerializer(contract).data)
