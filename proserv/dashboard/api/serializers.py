from django.contrib.auth import password_validation
from rest_framework import serializers


class AdminPasswordSerializer(serializers.Serializer):
    new_password = serializers.CharField(min_length=8, write_only=True)

    def validate_new_password(self, value):
        password_validation.validate_password(value, self.context.get("user"))
        return value


class ActiveSerializer(serializers.Serializer):
    is_active = serializers.BooleanField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class VerificationDecisionSerializer(serializers.Serializer):
    approve = serializers.BooleanField()
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)
