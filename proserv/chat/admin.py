from django.contrib import admin

from proserv.chat.models import Chat
from proserv.chat.models import ChatParticipant
from proserv.chat.models import Message


class ChatParticipantInline(admin.TabularInline):
    model = ChatParticipant
    extra = 0
    raw_id_fields = ["user"]


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "service_request",
        "chat_type",
        "status",
        "total_messages",
        "last_activity_at",
    ]
    list_filter = ["status", "chat_type"]
    raw_id_fields = [
        "service_request",
        "created_by",
        "closed_by",
        "last_message_sender",
    ]
    inlines = [ChatParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "chat", "sender", "message_type", "is_deleted", "created_at"]
    list_filter = ["message_type", "is_deleted", "status"]
    search_fields = ["text"]
    raw_id_fields = ["chat", "sender", "reply_to", "deleted_by"]
