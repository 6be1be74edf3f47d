"""
Django admin configuration for settlements.

Settlements and payable accounts are read-only here: state changes go
through SettlementService and PayableAccountService.
"""

from django.contrib import admin

from settlements.models import (
    PayableAccount,
    PayableLineItem,
    Settlement,
    SettlementDelivery,
    VehicleSettlement,
)


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class VehicleSettlementInline(ReadOnlyInline):
    model = VehicleSettlement
    fields = ("position", "plate", "fleet", "owner_name", "total_services", "total_operational_expenses", "net", "state")
    readonly_fields = fields


class SettlementDeliveryInline(ReadOnlyInline):
    model = SettlementDelivery
    fields = ("recipients", "status", "attempts", "sent_at", "last_error")
    readonly_fields = fields


class PayableLineItemInline(ReadOnlyInline):
    model = PayableLineItem
    fields = ("plate", "payee_name", "base_value", "deducted_expenses", "net_value", "idempotency_key")
    readonly_fields = fields


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = ("number", "company", "client", "state", "net_total", "generated_on", "sent_to_client")
    list_filter = ("state", "sent_to_client", "generated_on")
    search_fields = ("number", "client__name")
    readonly_fields = (
        "state",
        "version",
        "total_services",
        "total_operational_expenses",
        "total_preoperational_expenses",
        "net_total",
        "approved_by",
        "approved_at",
        "rejected_by",
        "rejected_at",
    )
    raw_id_fields = ("company", "client", "created_by", "last_modified_by", "sent_by")
    filter_horizontal = ("service_requests", "operational_expenses", "preoperational_expenses")
    inlines = [VehicleSettlementInline, SettlementDeliveryInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PayableAccount)
class PayableAccountAdmin(admin.ModelAdmin):
    list_display = ("service_request", "company", "state", "net_total", "payment_date")
    list_filter = ("state",)
    search_fields = ("service_request__code", "disbursement_number")
    readonly_fields = (
        "state",
        "version",
        "total_base",
        "total_deducted_operational",
        "total_deducted_preoperational",
        "net_total",
    )
    raw_id_fields = ("company", "service_request", "created_by", "updated_by")
    inlines = [PayableLineItemInline]

    def has_delete_permission(self, request, obj=None):
        return False
