"""
Django admin configuration for fleet models.

Expense state is read-only here; only settlements change it.
"""

from django.contrib import admin

from fleet.models import (
    ExpenseBill,
    InspectionReport,
    OperationalExpense,
    PreoperationalInspection,
    Vehicle,
)


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("plate", "company", "fleet", "vehicle_type", "seats", "is_active")
    list_filter = ("fleet", "vehicle_type", "is_active")
    search_fields = ("plate", "name")
    raw_id_fields = ("company", "owner_company", "owner_user", "driver")


class ExpenseBillInline(admin.TabularInline):
    model = ExpenseBill
    extra = 0


@admin.register(OperationalExpense)
class OperationalExpenseAdmin(admin.ModelAdmin):
    list_display = ("id", "vehicle", "expense_date", "state", "settlement")
    list_filter = ("state",)
    search_fields = ("vehicle__plate",)
    raw_id_fields = ("company", "vehicle", "driver", "uploaded_by")
    readonly_fields = ("state", "settlement")
    inlines = [ExpenseBillInline]


class InspectionReportInline(admin.TabularInline):
    model = InspectionReport
    extra = 0


@admin.register(PreoperationalInspection)
class PreoperationalInspectionAdmin(admin.ModelAdmin):
    list_display = ("id", "vehicle", "inspection_date", "state", "settlement")
    list_filter = ("state",)
    search_fields = ("vehicle__plate",)
    raw_id_fields = ("company", "vehicle", "driver", "uploaded_by")
    readonly_fields = ("state", "settlement")
    inlines = [InspectionReportInline]
