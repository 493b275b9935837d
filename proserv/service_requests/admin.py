from django.contrib import admin

from proserv.service_requests.models import ServiceRequest
from proserv.service_requests.models import StatusHistory


class StatusHistoryInline(admin.TabularInline):
    model = StatusHistory
    extra = 0
    readonly_fields = ["from_status", "to_status", "changed_by", "note", "created_at"]


@admin.register(ServiceRequest)
class ServiceRequestAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "title",
        "client",
        "category",
        "status",
        "urgency",
        "preferred_date",
        "payment_status",
    ]
    list_filter = ["status", "category", "urgency", "payment_status"]
    search_fields = ["title", "description", "client__email", "address_city"]
    raw_id_fields = ["client", "assigned_professional", "cancelled_by"]
    inlines = [StatusHistoryInline]
