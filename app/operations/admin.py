from django.contrib import admin

from operations.models import Client, LogBook, ServiceRequest, VehicleAssignment


@admin.register(LogBook)
class LogBookAdmin(admin.ModelAdmin):
    list_display = ("company", "year", "month")
    list_filter = ("year",)


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "contact_name", "email")
    search_fields = ("name", "email")


class VehicleAssignmentInline(admin.TabularInline):
    model = VehicleAssignment
    extra = 0
    raw_id_fields = ("vehicle", "driver", "contract")


@admin.register(ServiceRequest)
class ServiceRequestAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "client",
        "service_date",
        "vehicle",
        "billed_value",
        "accounting_status",
        "settlement",
    )
    list_filter = ("accounting_status", "status", "service_status")
    search_fields = ("code", "invoice_number", "client__name")
    raw_id_fields = ("company", "log_book", "client", "vehicle", "driver", "contract")
    readonly_fields = ("settlement",)
    inlines = [VehicleAssignmentInline]
