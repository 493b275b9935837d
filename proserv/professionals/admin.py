from django.contrib import admin

from proserv.professionals.models import AvailabilityException
from proserv.professionals.models import Credential
from proserv.professionals.models import Professional
from proserv.professionals.models import ServiceOffering


class ServiceOfferingInline(admin.TabularInline):
    model = ServiceOffering
    extra = 0


class CredentialInline(admin.TabularInline):
    model = Credential
    extra = 0


@admin.register(Professional)
class ProfessionalAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "user",
        "business_name",
        "city",
        "verification_status",
        "rating_average",
        "rating_count",
        "is_active",
    ]
    list_filter = ["verification_status", "is_active", "city"]
    search_fields = ["business_name", "user__email", "user__name", "city"]
    raw_id_fields = ["user"]
    inlines = [ServiceOfferingInline, CredentialInline]


@admin.register(AvailabilityException)
class AvailabilityExceptionAdmin(admin.ModelAdmin):
    list_display = ["professional", "date", "is_available", "reason"]
    list_filter = ["is_available"]
