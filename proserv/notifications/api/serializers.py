from __future__ import annotations

from typing import Any

from rest_framework import serializers

from proserv.notifications.models import Notification
from proserv.users.models import User


class NotificationSerializer(serializers.ModelSerializer):
    """Read serializer for notifications."""

    unread = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = (
            "id",
            "recipient",
            "title",
            "message",
            "notification_type",
            "priority",
            "data",
            "is_read",
            "unread",
            "read_at",
            "created_at",
            "related_link",
        )
        read_only_fields = fields

    def get_unread(self, obj: Notification) -> bool:
        return not bool(obj.is_read)


class NotificationCreateSerializer(serializers.Serializer):
    """Admin create serializer.

    Creates one Notification per resolved recipient.

    Accepted targeting forms (exactly one is required):
    - recipient_id: int
    - role: client | professional | admin
    - receivers: list[ int | "ALL" ]
    """

    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    notification_type = serializers.ChoiceField(
        choices=Notification.Type.choices,
        required=False,
        default=Notification.Type.SYSTEM,
    )
    priority = serializers.ChoiceField(
        choices=Notification.Priority.choices,
        required=False,
        default=Notification.Priority.NORMAL,
    )
    data = serializers.DictField(required=False, default=dict)
    related_link = serializers.CharField(required=False, allow_blank=True, default="")

    recipient_id = serializers.CharField(required=False, allow_blank=True)
    role = serializers.ChoiceField(
        choices=User.Role.choices,
        required=False,
        allow_blank=True,
    )
    receivers = serializers.ListField(child=serializers.JSONField(), required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        # Forms may submit empty values for unused targets.
        recipient_id = attrs.get("recipient_id")
        if isinstance(recipient_id, str):
            recipient_id = recipient_id.strip()
            if not recipient_id:
                attrs.pop("recipient_id", None)
            elif recipient_id.isdigit():
                attrs["recipient_id"] = int(recipient_id)
            else:
                msg = "Must be an integer."
                raise serializers.ValidationError({"recipient_id": msg})

        if not attrs.get("role"):
            attrs.pop("role", None)

        receivers = attrs.get("receivers")
        if isinstance(receivers, list) and len(receivers) == 0:
            attrs.pop("receivers", None)

        targets = ["recipient_id" in attrs, "role" in attrs, "receivers" in attrs]
        if sum(targets) != 1:
            msg = "Provide exactly one of recipient_id, role, receivers."
            raise serializers.ValidationError(msg)
        return attrs


class ChannelSettingsSerializer(serializers.Serializer):
    email = serializers.BooleanField(required=False)
    push = serializers.BooleanField(required=False)
    sms = serializers.BooleanField(required=False)
    types = serializers.DictField(child=serializers.BooleanField(), required=False)

    def validate_types(self, value):
        unknown = set(value) - set(Notification.Type.values)
        if unknown:
            msg = f"Unknown notification types: {', '.join(sorted(unknown))}."
            raise serializers.ValidationError(msg)
        return value
