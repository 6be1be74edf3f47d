"""
Serializers for contract API.

Serializers:
    ContractSerializer: Read-only contract details with budget figures
    ContractHistoryEventSerializer: Audit trail entries
    ContractCreateSerializer: Input for contract creation
    ChargeContractSerializer: Input for a service charge
    AdjustBudgetSerializer: Input for a cap change
    AdjustConsumptionSerializer: Input for a manual consumption correction

Monetary inputs are accepted as strings or numbers; range checks happen in
ContractLedgerService so the API and direct callers share error codes.
"""

from __future__ import annotations

from rest_framework import serializers

from contracts.models import (
    BudgetPeriod,
    ChargeMode,
    Contract,
    ContractHistoryEvent,
    PricingMode,
)


class ContractHistoryEventSerializer(serializers.ModelSerializer):
    actor_email = serializers.EmailField(source="actor.email", read_only=True, default=None)

    class Meta:
        model = ContractHistoryEvent
        fields = [
            "id",
            "kind",
            "previous_cap",
            "new_cap",
            "previous_consumed",
            "new_consumed",
            "service_request",
            "amount",
            "mode",
            "actor_email",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class ContractSerializer(serializers.ModelSerializer):
    """
    Contract details.

    ``remaining`` is null for uncapped contracts and negative when the
    advisory cap has been exceeded.
    """

    client_name = serializers.CharField(source="client.name", read_only=True)
    remaining = serializers.DecimalField(max_digits=16, decimal_places=2, read_only=True)
    is_over_budget = serializers.BooleanField(read_only=True)

    class Meta:
        model = Contract
        fields = [
            "id",
            "client",
            "client_name",
            "contract_type",
            "default_pricing_mode",
            "per_hour",
            "per_km",
            "per_distance",
            "tariff",
            "per_trip",
            "per_leg",
            "budget_period",
            "budget_cap",
            "consumed",
            "remaining",
            "is_over_budget",
            "end_date",
            "is_active",
            "notes",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ContractDetailSerializer(ContractSerializer):
    history = ContractHistoryEventSerializer(many=True, read_only=True)

    class Meta(ContractSerializer.Meta):
        fields = [*ContractSerializer.Meta.fields, "history"]
        read_only_fields = fields


class PricingSerializer(serializers.Serializer):
    default_pricing_mode = serializers.ChoiceField(choices=PricingMode.choices, required=False)
    per_hour = serializers.CharField(required=False, allow_null=True)
    per_km = serializers.CharField(required=False, allow_null=True)
    per_distance = serializers.CharField(required=False, allow_null=True)
    tariff = serializers.CharField(required=False, allow_null=True)
    per_trip = serializers.CharField(required=False, allow_null=True)
    per_leg = serializers.CharField(required=False, allow_null=True)


class ContractCreateSerializer(serializers.Serializer):
    client_id = serializers.UUIDField()
    budget_cap = serializers.CharField()
    budget_period = serializers.ChoiceField(choices=BudgetPeriod.choices)
    pricing = PricingSerializer(required=False)
    end_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ChargeContractSerializer(serializers.Serializer):
    amount = serializers.CharField(help_text="Non-negative amount to charge")
    mode = serializers.ChoiceField(choices=ChargeMode.choices, default=ChargeMode.WITHIN_CONTRACT)
    service_request_id = serializers.UUIDField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AdjustBudgetSerializer(serializers.Serializer):
    budget_cap = serializers.CharField(allow_null=True, help_text="New cap, or null to remove it")
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AdjustConsumptionSerializer(serializers.Serializer):
    delta = serializers.CharField(help_text="Signed correction applied to consumed")
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
