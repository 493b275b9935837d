from django.contrib import admin

from proserv.notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "recipient",
        "title",
        "notification_type",
        "priority",
        "is_read",
        "created_at",
    ]
    list_filter = ["notification_type", "priority", "is_read"]
    search_fields = ["title", "message", "recipient__email"]
    raw_id_fields = ["recipient"]
