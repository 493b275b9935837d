import re
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from rest_framework import serializers

from proserv.professionals.models import WEEKDAYS
from proserv.professionals.models import AvailabilityException
from proserv.professionals.models import Credential
from proserv.professionals.models import Professional
from proserv.professionals.models import ServiceOffering
from proserv.professionals.models import default_availability
from proserv.users.api.serializers import UserSummarySerializer

HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ServiceOfferingSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceOffering
        fields = [
            "id",
            "category",
            "subcategory",
            "title",
            "description",
            "pricing_type",
            "amount",
            "currency",
            "unit",
            "estimated_duration_minutes",
            "tags",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
            msg = "Tags must be a list of strings."
            raise serializers.ValidationError(msg)
        return [t.strip().lower() for t in value if t.strip()][:20]

    def validate(self, attrs):
        pricing_type = attrs.get(
            "pricing_type",
            getattr(self.instance, "pricing_type", ServiceOffering.PricingType.QUOTE),
        )
        amount = attrs.get("amount", getattr(self.instance, "amount", None))
        if pricing_type != ServiceOffering.PricingType.QUOTE and amount is None:
            raise serializers.ValidationError(
                {"amount": "Fixed and hourly pricing need an amount."},
            )
        return attrs


class AvailabilityExceptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = AvailabilityException
        fields = ["id", "date", "is_available", "start_time", "end_time", "reason"]
        read_only_fields = ["id"]

    def validate(self, attrs):
        start, end = attrs.get("start_time"), attrs.get("end_time")
        if (start is None) != (end is None):
            msg = "Provide both start_time and end_time, or neither."
            raise serializers.ValidationError(msg)
        if start and end and start >= end:
            raise serializers.ValidationError(
                {"end_time": "end_time must be after start_time."},
            )
        return attrs


class CredentialSerializer(serializers.ModelSerializer):
    class Meta:
        model = Credential
        fields = [
            "id",
            "document_type",
            "document_number",
            "issuing_authority",
            "document_url",
            "issued_at",
            "expires_at",
            "status",
            "created_at",
        ]
        read_only_fields = ["id", "status", "created_at"]


class VerificationSubmitSerializer(serializers.Serializer):
    documents = CredentialSerializer(many=True)

    def validate_documents(self, value):
        if not value:
            msg = "At least one document is required."
            raise serializers.ValidationError(msg)
        return value


class ProfessionalSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    offerings = serializers.SerializerMethodField()
    completion_rate = serializers.FloatField(read_only=True)
    is_top_rated = serializers.BooleanField(read_only=True)
    distance_km = serializers.SerializerMethodField()

    class Meta:
        model = Professional
        fields = [
            "id",
            "user",
            "business_name",
            "description",
            "years_of_experience",
            "website",
            "city",
            "state",
            "service_radius_km",
            "availability",
            "time_zone",
            "rating_average",
            "rating_count",
            "rating_breakdown",
            "completed_jobs",
            "completion_rate",
            "verification_status",
            "is_top_rated",
            "offerings",
            "distance_km",
        ]
        read_only_fields = fields

    def get_offerings(self, obj):
        active = [o for o in obj.offerings.all() if o.is_active]
        return ServiceOfferingSerializer(active, many=True).data

    def get_distance_km(self, obj) -> float | None:
        return getattr(obj, "distance_km", None)


class ProfessionalProfileSerializer(serializers.ModelSerializer):
    """The professional's own editable view of the profile."""

    user = UserSummarySerializer(read_only=True)
    completion_rate = serializers.FloatField(read_only=True)

    class Meta:
        model = Professional
        fields = [
            "id",
            "user",
            "business_name",
            "description",
            "years_of_experience",
            "website",
            "city",
            "state",
            "latitude",
            "longitude",
            "service_radius_km",
            "time_zone",
            "preferences",
            "availability",
            "rating_average",
            "rating_count",
            "total_jobs",
            "completed_jobs",
            "cancelled_jobs",
            "total_earnings",
            "completion_rate",
            "verification_status",
            "verification_notes",
            "is_active",
        ]
        read_only_fields = [
            "id",
            "user",
            "availability",
            "rating_average",
            "rating_count",
            "total_jobs",
            "completed_jobs",
            "cancelled_jobs",
            "total_earnings",
            "completion_rate",
            "verification_status",
            "verification_notes",
        ]

    def validate_time_zone(self, value):
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = "Unknown time zone."
            raise serializers.ValidationError(msg) from exc
        return value

    def validate_latitude(self, value):
        if value is not None and not -90 <= value <= 90:  # noqa: PLR2004
            msg = "Latitude must be between -90 and 90."
            raise serializers.ValidationError(msg)
        return value

    def validate_longitude(self, value):
        if value is not None and not -180 <= value <= 180:  # noqa: PLR2004
            msg = "Longitude must be between -180 and 180."
            raise serializers.ValidationError(msg)
        return value


class AvailabilitySerializer(serializers.Serializer):
    """Weekly schedule keyed by weekday: ``{available, start, end}``."""

    schedule = serializers.DictField(child=serializers.DictField())

    def validate_schedule(self, value):
        unknown = set(value) - set(WEEKDAYS)
        if unknown:
            msg = f"Unknown weekdays: {', '.join(sorted(unknown))}"
            raise serializers.ValidationError(msg)
        merged = {**default_availability(), **(self.context.get("current") or {})}
        errors = {}
        for day, slot in value.items():
            start = slot.get("start", merged[day]["start"])
            end = slot.get("end", merged[day]["end"])
            if not (HHMM.match(str(start)) and HHMM.match(str(end))):
                errors[day] = "start and end must use HH:MM."
                continue
            if start >= end:
                errors[day] = "end must be after start."
                continue
            merged[day] = {
                "available": bool(slot.get("available", merged[day]["available"])),
                "start": start,
                "end": end,
            }
        if errors:
            raise serializers.ValidationError(errors)
        return {day: merged[day] for day in value}
