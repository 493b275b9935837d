from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from proserv.audit.models import AuditLog

User = get_user_model()


class AuditActorSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "role"]

    def get_full_name(self, obj):
        return (obj.name or "").strip() or None


class AuditLogSerializer(serializers.ModelSerializer):
    actor = AuditActorSerializer(allow_null=True)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "action",
            "message",
            "model_name",
            "record_id",
            "before",
            "after",
            "ip_address",
            "user_agent",
            "created_at",
            "actor",
        ]
