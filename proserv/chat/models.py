from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

DELETED_PLACEHOLDER = "This message was deleted"


def default_auto_archive_days() -> int:
    return settings.CHAT_AUTO_ARCHIVE_DAYS


class ChatQuerySet(models.QuerySet):
    def for_user(self, user_id):
        return self.filter(
            participants__user_id=user_id,
            participants__is_active=True,
        )

    def stale(self):
        """Active chats whose inactivity exceeds their auto-archive window."""
        now = timezone.now()
        return [
            chat
            for chat in self.filter(status=Chat.Status.ACTIVE)
            if chat.last_activity_at
            < now - timedelta(days=chat.auto_archive_after_days)
        ]


class Chat(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        CLOSED = "closed", _("Closed")
        ARCHIVED = "archived", _("Archived")

    class Type(models.TextChoices):
        SERVICE = "service_chat", _("Service chat")
        SUPPORT = "support_chat", _("Support chat")
        GROUP = "group_chat", _("Group chat")

    class CloseReason(models.TextChoices):
        SERVICE_COMPLETED = "service_completed", _("Service completed")
        SERVICE_CANCELLED = "service_cancelled", _("Service cancelled")
        USER_REQUEST = "user_request", _("User request")
        INACTIVITY = "inactivity", _("Inactivity")
        VIOLATION = "violation", _("Violation")

    service_request = models.ForeignKey(
        "service_requests.ServiceRequest",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="chats",
    )
    chat_type = models.CharField(
        max_length=20,
        choices=Type.choices,
        default=Type.SERVICE,
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    last_message_text = models.CharField(max_length=200, blank=True)
    last_message_type = models.CharField(max_length=20, blank=True)
    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    last_message_at = models.DateTimeField(null=True, blank=True)

    total_messages = models.PositiveIntegerField(default=0)
    first_message_at = models.DateTimeField(null=True, blank=True)
    last_activity_at = models.DateTimeField(default=timezone.now, db_index=True)

    notifications_enabled = models.BooleanField(default=True)
    auto_archive_after_days = models.PositiveIntegerField(
        default=default_auto_archive_days,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    closed_at = models.DateTimeField(null=True, blank=True)
    close_reason = models.CharField(
        max_length=20,
        choices=CloseReason.choices,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ChatQuerySet.as_manager()

    class Meta:
        ordering = ["-last_activity_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["service_request"],
                condition=Q(chat_type="service_chat"),
                name="one_service_chat_per_request",
            ),
        ]

    def __str__(self) -> str:
        return f"Chat {self.pk} ({self.get_chat_type_display()})"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def days_since_last_activity(self) -> int:
        return (timezone.now() - self.last_activity_at).days

    def is_participant(self, user) -> bool:
        return self.participants.filter(user=user, is_active=True).exists()

    def participant_user_ids(self) -> list[int]:
        return list(
            self.participants.filter(is_active=True).values_list("user_id", flat=True),
        )


class ChatParticipant(models.Model):
    class Role(models.TextChoices):
        CLIENT = "client", _("Client")
        PROFESSIONAL = "professional", _("Professional")
        ADMIN = "admin", _("Admin")

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_participations",
    )
    role = models.CharField(max_length=20, choices=Role.choices)
    is_active = models.BooleanField(default=True)
    message_count = models.PositiveIntegerField(default=0)
    joined_at = models.DateTimeField(auto_now_add=True)
    left_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["chat", "user"],
                name="unique_chat_participant",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.user_id} in chat {self.chat_id}"


class MessageQuerySet(models.QuerySet):
    def live(self):
        return self.filter(is_deleted=False)

    def unread_by(self, user):
        return (
            self.live()
            .exclude(sender=user)
            .exclude(reads__user=user)
        )


class Message(models.Model):
    class Type(models.TextChoices):
        TEXT = "text", _("Text")
        IMAGE = "image", _("Image")
        FILE = "file", _("File")
        LOCATION = "location", _("Location")
        SYSTEM = "system", _("System")
        SERVICE_UPDATE = "service_update", _("Service update")
        PAYMENT_UPDATE = "payment_update", _("Payment update")
        QUOTE = "quote", _("Quote")

    class Status(models.TextChoices):
        SENT = "sent", _("Sent")
        DELIVERED = "delivered", _("Delivered")
        READ = "read", _("Read")

    SYSTEM_TYPES = (Type.SYSTEM, Type.SERVICE_UPDATE, Type.PAYMENT_UPDATE)

    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="chat_messages",
    )
    message_type = models.CharField(
        max_length=20,
        choices=Type.choices,
        default=Type.TEXT,
    )
    text = models.TextField(max_length=4000, blank=True)
    media = models.JSONField(null=True, blank=True)
    location = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.SENT,
    )
    is_edited = models.BooleanField(default=False)
    edited_at = models.DateTimeField(null=True, blank=True)
    edit_history = models.JSONField(default=list, blank=True)
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MessageQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(
                fields=["chat", "created_at"],
                name="message_chat_created_idx",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Message {self.pk} in chat {self.chat_id}"

    @property
    def preview(self) -> str:
        if self.text:
            return self.text[:100]
        return self.get_message_type_display()

    def reaction_summary(self) -> dict[str, int]:
        summary: dict[str, int] = {}
        for reaction in self.reactions.all():
            summary[reaction.emoji] = summary.get(reaction.emoji, 0) + 1
        return summary


class MessageRead(models.Model):
    message = models.ForeignKey(Message, on_delete=models.CASCADE, related_name="reads")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_message_read",
            ),
        ]


class MessageReaction(models.Model):
    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    emoji = models.CharField(max_length=16)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="one_reaction_per_user",
            ),
        ]
