from decimal import Decimal

from rest_framework import serializers

from proserv.quotes.models import Quote
from proserv.service_requests.api.serializers import AssignedProfessionalSerializer
from proserv.service_requests.models import ServiceRequest


class MaterialSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    quantity = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0.01"),
        default=Decimal("1"),
    )
    cost = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
    )

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        value["quantity"] = str(value["quantity"])
        value["cost"] = str(value["cost"])
        return value


class QuoteSerializer(serializers.ModelSerializer):
    professional = AssignedProfessionalSerializer(read_only=True)
    service_request_title = serializers.CharField(
        source="service_request.title",
        read_only=True,
    )
    is_expired = serializers.BooleanField(read_only=True)
    materials_total = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        read_only=True,
    )

    class Meta:
        model = Quote
        fields = [
            "id",
            "service_request",
            "service_request_title",
            "professional",
            "price",
            "currency",
            "description",
            "estimated_duration_minutes",
            "available_date",
            "available_time",
            "materials",
            "materials_total",
            "warranty_days",
            "terms",
            "valid_until",
            "status",
            "is_expired",
            "rejection_reason",
            "responded_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class QuoteWriteSerializer(serializers.ModelSerializer):
    service_request = serializers.PrimaryKeyRelatedField(
        queryset=ServiceRequest.objects.all(),
    )
    materials = MaterialSerializer(many=True, required=False)

    class Meta:
        model = Quote
        fields = [
            "service_request",
            "price",
            "description",
            "estimated_duration_minutes",
            "available_date",
            "available_time",
            "materials",
            "warranty_days",
            "terms",
            "valid_until",
        ]


class QuoteUpdateSerializer(QuoteWriteSerializer):
    class Meta(QuoteWriteSerializer.Meta):
        fields = [f for f in QuoteWriteSerializer.Meta.fields if f != "service_request"]


class QuoteRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)
