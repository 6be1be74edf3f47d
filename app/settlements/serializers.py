"""
Serializers for settlement and payable account API.

Serializers:
    SettlementSerializer: List representation
    SettlementDetailSerializer: Settlement with vehicle lines and included ids
    GenerateSettlementSerializer: Input for generation
    SettlementDecisionSerializer: Input for approve/reject
    SendSettlementSerializer: Input for owner delivery
    ServiceRequestIdsSerializer: Input for pending expenses and preview
    SettlementPreviewSerializer: Provisional allocation
    PayableAccountSerializer: Payable account with line items
    RegisterPaymentSerializer / CancelPayableAccountSerializer: Payment tracking input

Ids are accepted as plain strings so unparseable ids reach the service and
come back in the NOT_FOUND details with the other missing ids.
"""

from __future__ import annotations

from rest_framework import serializers

from fleet.models import OperationalExpense, PreoperationalInspection
from settlements.models import (
    PayableAccount,
    PayableLineItem,
    Settlement,
    SettlementDelivery,
    VehicleSettlement,
)

MONEY = {"max_digits": 16, "decimal_places": 2}


class IdListField(serializers.ListField):
    child = serializers.CharField()


# =============================================================================
# Settlements
# =============================================================================


class VehicleSettlementSerializer(serializers.ModelSerializer):
    service_requests = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    operational_expenses = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = VehicleSettlement
        fields = [
            "id",
            "position",
            "vehicle",
            "plate",
            "fleet",
            "owner_type",
            "owner_company",
            "owner_user",
            "owner_name",
            "service_requests",
            "primary_service_request",
            "operational_expenses",
            "total_services",
            "total_operational_expenses",
            "net",
            "state",
            "payable_account",
        ]
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source="client.name", read_only=True, default=None)

    class Meta:
        model = Settlement
        fields = [
            "id",
            "number",
            "generated_on",
            "client",
            "client_name",
            "total_services",
            "total_operational_expenses",
            "total_preoperational_expenses",
            "net_total",
            "state",
            "approved_at",
            "rejected_at",
            "sent_to_client",
            "sent_at",
            "notes",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class SettlementDetailSerializer(SettlementSerializer):
    lines = VehicleSettlementSerializer(many=True, read_only=True)
    service_requests = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    operational_expenses = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    preoperational_expenses = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta(SettlementSerializer.Meta):
        fields = [
            *SettlementSerializer.Meta.fields,
            "service_requests",
            "operational_expenses",
            "preoperational_expenses",
            "lines",
        ]
        read_only_fields = fields


class GenerateSettlementSerializer(serializers.Serializer):
    service_request_ids = IdListField(allow_empty=True)
    operational_expense_ids = IdListField(required=False, default=list)
    preoperational_expense_ids = IdListField(required=False, default=list)


class SettlementDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    version = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=1,
        help_text="Expected version; a mismatch returns 409",
    )


class SendSettlementSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class SettlementDeliverySerializer(serializers.ModelSerializer):
    class Meta:
        model = SettlementDelivery
        fields = ["id", "settlement", "recipients", "status", "attempts", "sent_at", "notes", "created_at"]
        read_only_fields = fields


class ServiceRequestIdsSerializer(serializers.Serializer):
    service_request_ids = IdListField(allow_empty=True)


# =============================================================================
# Expenses and preview
# =============================================================================


class OperationalExpenseSerializer(serializers.ModelSerializer):
    plate = serializers.CharField(source="vehicle.plate", read_only=True)
    total = serializers.DecimalField(**MONEY, read_only=True)

    class Meta:
        model = OperationalExpense
        fields = ["id", "vehicle", "plate", "expense_date", "state", "settlement", "total"]
        read_only_fields = fields


class PreoperationalInspectionSerializer(serializers.ModelSerializer):
    plate = serializers.CharField(source="vehicle.plate", read_only=True)
    total = serializers.DecimalField(**MONEY, read_only=True)

    class Meta:
        model = PreoperationalInspection
        fields = ["id", "vehicle", "plate", "inspection_date", "state", "settlement", "total"]
        read_only_fields = fields


class PendingExpensesSerializer(serializers.Serializer):
    operational = OperationalExpenseSerializer(many=True)
    preoperational = PreoperationalInspectionSerializer(many=True)
    total_operational = serializers.DecimalField(**MONEY)
    total_preoperational = serializers.DecimalField(**MONEY)


class PayeeSerializer(serializers.Serializer):
    type = serializers.CharField()
    company = serializers.UUIDField(source="company.id", default=None)
    user = serializers.UUIDField(source="user.id", default=None)
    name = serializers.CharField()


class PreviewLineSerializer(serializers.Serializer):
    vehicle_id = serializers.UUIDField()
    plate = serializers.CharField()
    fleet = serializers.CharField()
    payee = PayeeSerializer()
    service_request_ids = serializers.ListField(child=serializers.UUIDField())
    total_services = serializers.DecimalField(**MONEY)
    operational_expense_ids = serializers.ListField(child=serializers.UUIDField())
    total_operational_expenses = serializers.DecimalField(**MONEY)
    preoperational_expense_ids = serializers.ListField(child=serializers.UUIDField())
    total_preoperational_expenses = serializers.DecimalField(**MONEY)
    net = serializers.DecimalField(**MONEY)


class SettlementPreviewSerializer(serializers.Serializer):
    number = serializers.CharField(allow_null=True)
    lines = PreviewLineSerializer(many=True)
    total_services = serializers.DecimalField(**MONEY)
    total_operational_expenses = serializers.DecimalField(**MONEY)
    total_preoperational_expenses = serializers.DecimalField(**MONEY)
    net_total = serializers.DecimalField(**MONEY)


# =============================================================================
# Payable accounts
# =============================================================================


class PayableLineItemSerializer(serializers.ModelSerializer):
    settlement = serializers.UUIDField(source="vehicle_settlement.settlement_id", read_only=True)

    class Meta:
        model = PayableLineItem
        fields = [
            "id",
            "settlement",
            "vehicle",
            "plate",
            "fleet",
            "payee_type",
            "payee_company",
            "payee_user",
            "payee_name",
            "base_value",
            "deducted_expenses",
            "net_value",
            "created_at",
        ]
        read_only_fields = fields


class PayableAccountSerializer(serializers.ModelSerializer):
    service_request_code = serializers.CharField(source="service_request.code", read_only=True)
    line_items = PayableLineItemSerializer(many=True, read_only=True)

    class Meta:
        model = PayableAccount
        fields = [
            "id",
            "service_request",
            "service_request_code",
            "total_base",
            "total_deducted_operational",
            "total_deducted_preoperational",
            "net_total",
            "state",
            "payment_date",
            "disbursement_number",
            "support_document",
            "cancelled_at",
            "cancellation_reason",
            "line_items",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class RegisterPaymentSerializer(serializers.Serializer):
    payment_date = serializers.DateField(required=False, allow_null=True)
    disbursement_number = serializers.CharField(required=False, allow_blank=True, default="")
    support_document = serializers.CharField(required=False, allow_blank=True, default="")
    version = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class CancelPayableAccountSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=False)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=1)
