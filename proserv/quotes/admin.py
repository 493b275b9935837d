from django.contrib import admin

from proserv.quotes.models import Quote


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "service_request",
        "professional",
        "price",
        "status",
        "valid_until",
        "created_at",
    ]
    list_filter = ["status"]
    search_fields = ["service_request__title", "professional__business_name"]
    raw_id_fields = ["service_request", "professional"]
