"""
Django admin configuration for contracts.

Budget figures and history are read-only: changes go through
ContractLedgerService so every change is audited.
"""

from django.contrib import admin

from contracts.models import Contract, ContractHistoryEvent


class ContractHistoryEventInline(admin.TabularInline):
    model = ContractHistoryEvent
    extra = 0
    can_delete = False
    readonly_fields = (
        "kind",
        "previous_cap",
        "new_cap",
        "previous_consumed",
        "new_consumed",
        "service_request",
        "amount",
        "mode",
        "actor",
        "notes",
        "created_at",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ("client", "company", "budget_period", "budget_cap", "consumed", "is_active")
    list_filter = ("is_active", "budget_period")
    search_fields = ("client__name",)
    raw_id_fields = ("company", "client", "created_by")
    readonly_fields = ("budget_cap", "consumed", "version")
    inlines = [ContractHistoryEventInline]

    def has_delete_permission(self, request, obj=None):
        return False
