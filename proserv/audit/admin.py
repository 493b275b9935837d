from django.contrib import admin

from proserv.audit import models


@admin.register(models.AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ["id", "action", "actor", "model_name", "record_id", "created_at"]
    search_fields = ["action", "message", "model_name", "ip_address", "user_agent"]
    list_filter = ["action", "model_name", "created_at"]
    raw_id_fields = ["actor"]
    readonly_fields = ["before", "after", "ip_address", "user_agent", "created_at"]
