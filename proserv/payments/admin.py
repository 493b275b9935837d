from django.contrib import admin

from proserv.payments.models import Invoice
from proserv.payments.models import Payment
from proserv.payments.models import PaymentMethod


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "service_request",
        "client",
        "total_amount",
        "currency",
        "method",
        "status",
        "refund_status",
        "created_at",
    ]
    list_filter = ["status", "refund_status", "method"]
    search_fields = ["transaction_id", "client__email", "service_request__title"]
    raw_id_fields = ["service_request", "client", "professional", "saved_method"]
    readonly_fields = ["provider_response"]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ["number", "client", "total", "currency", "status", "issued_at"]
    list_filter = ["status"]
    search_fields = ["number", "client__email"]
    raw_id_fields = ["payment", "service_request", "client", "professional"]


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "method_type", "brand", "last4", "is_default"]
    list_filter = ["method_type", "is_active"]
    raw_id_fields = ["user"]
