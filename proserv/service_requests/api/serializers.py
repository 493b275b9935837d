from decimal import Decimal

from rest_framework import serializers

from proserv.professionals.models import Professional
from proserv.service_requests.models import ServiceRequest
from proserv.service_requests.models import StatusHistory
from proserv.service_requests.services import EDITABLE_FIELDS
from proserv.service_requests.transitions import allowed_targets
from proserv.users.api.serializers import UserSummarySerializer


class AssignedProfessionalSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Professional
        fields = ["id", "user", "business_name", "rating_average", "rating_count"]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = StatusHistory
        fields = ["from_status", "to_status", "changed_by", "note", "created_at"]
        read_only_fields = fields


class ServiceRequestListSerializer(serializers.ModelSerializer):
    client = UserSummarySerializer(read_only=True)
    assigned_professional = AssignedProfessionalSerializer(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    distance_km = serializers.SerializerMethodField()
    has_quoted = serializers.SerializerMethodField()

    class Meta:
        model = ServiceRequest
        fields = [
            "id",
            "title",
            "category",
            "subcategory",
            "urgency",
            "status",
            "address_city",
            "preferred_date",
            "preferred_time",
            "estimated_cost",
            "quoted_cost",
            "final_cost",
            "currency",
            "client",
            "assigned_professional",
            "payment_status",
            "is_overdue",
            "distance_km",
            "has_quoted",
            "created_at",
        ]
        read_only_fields = fields

    def get_distance_km(self, obj) -> float | None:
        return getattr(obj, "distance_km", None)

    def get_has_quoted(self, obj) -> bool | None:
        return getattr(obj, "has_quoted", None)


class ServiceRequestDetailSerializer(ServiceRequestListSerializer):
    status_history = StatusHistorySerializer(many=True, read_only=True)
    allowed_transitions = serializers.SerializerMethodField()
    actual_duration_minutes = serializers.IntegerField(read_only=True)

    class Meta(ServiceRequestListSerializer.Meta):
        fields = [
            *ServiceRequestListSerializer.Meta.fields,
            "description",
            "requirements",
            "address_street",
            "address_state",
            "address_zip_code",
            "address_notes",
            "latitude",
            "longitude",
            "flexibility",
            "estimated_duration_minutes",
            "actual_start",
            "actual_end",
            "actual_duration_minutes",
            "additional_costs",
            "platform_fee",
            "professional_earnings",
            "payment_method",
            "cancellation_reason",
            "cancellation_note",
            "cancelled_at",
            "completion_notes",
            "completed_at",
            "dispute_reason",
            "client_review_submitted",
            "professional_review_submitted",
            "status_history",
            "allowed_transitions",
            "updated_at",
        ]
        read_only_fields = fields

    def get_allowed_transitions(self, obj) -> list[str]:
        return allowed_targets(obj.status)


class ServiceRequestWriteSerializer(serializers.ModelSerializer):
    latitude = serializers.FloatField(
        required=False,
        allow_null=True,
        min_value=-90,
        max_value=90,
    )
    longitude = serializers.FloatField(
        required=False,
        allow_null=True,
        min_value=-180,
        max_value=180,
    )

    class Meta:
        model = ServiceRequest
        fields = ["category", *EDITABLE_FIELDS]

    def validate_requirements(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            msg = "Requirements must be a list of strings."
            raise serializers.ValidationError(msg)
        return value


class ServiceRequestUpdateSerializer(ServiceRequestWriteSerializer):
    class Meta(ServiceRequestWriteSerializer.Meta):
        fields = list(EDITABLE_FIELDS)


class CancelSerializer(serializers.Serializer):
    reason = serializers.ChoiceField(choices=ServiceRequest.CancellationReason.choices)
    note = serializers.CharField(required=False, allow_blank=True, max_length=500)


class AdditionalCostSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=200)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
    )

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        # Stored in a JSON field.
        value["amount"] = str(value["amount"])
        return value


class CompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    additional_costs = AdditionalCostSerializer(many=True, required=False)


class DisputeSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class AdminStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ServiceRequest.Status.choices)
    note = serializers.CharField(required=False, allow_blank=True, max_length=500)
