from rest_framework import serializers

from proserv.professionals.models import RATING_ASPECTS
from proserv.reviews.models import Review
from proserv.reviews.models import ReviewFlag
from proserv.service_requests.models import ServiceRequest
from proserv.users.api.serializers import UserSummarySerializer
from proserv.users.models import User

MAX_TAGS = 10


class ReviewSerializer(serializers.ModelSerializer):
    reviewer = UserSummarySerializer(read_only=True)
    reviewee = UserSummarySerializer(read_only=True)
    service_request_title = serializers.CharField(
        source="service_request.title",
        read_only=True,
    )
    aspects_average = serializers.FloatField(read_only=True)
    has_voted = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            "id",
            "service_request",
            "service_request_title",
            "reviewer",
            "reviewee",
            "reviewer_type",
            "rating",
            "aspects",
            "aspects_average",
            "comment",
            "tags",
            "is_public",
            "status",
            "response",
            "responded_at",
            "helpful_votes",
            "has_voted",
            "is_edited",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_has_voted(self, obj) -> bool:
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return False
        return obj.helpful_by.filter(pk=user.pk).exists()


class ReviewUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = ["rating", "aspects", "comment", "tags", "is_public"]

    def validate_aspects(self, value):
        if not isinstance(value, dict):
            msg = "Expected an object of aspect ratings."
            raise serializers.ValidationError(msg)
        unknown = set(value) - set(RATING_ASPECTS)
        if unknown:
            msg = f"Unknown aspects: {', '.join(sorted(unknown))}."
            raise serializers.ValidationError(msg)
        for aspect, score in value.items():
            if not isinstance(score, int) or isinstance(score, bool):
                msg = f"{aspect} must be an integer."
                raise serializers.ValidationError(msg)
            if not 1 <= score <= 5:  # noqa: PLR2004
                msg = f"{aspect} must be between 1 and 5."
                raise serializers.ValidationError(msg)
        return value

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
            msg = "Expected a list of strings."
            raise serializers.ValidationError(msg)
        if len(value) > MAX_TAGS:
            msg = f"At most {MAX_TAGS} tags."
            raise serializers.ValidationError(msg)
        return [t.strip().lower() for t in value if t.strip()]


class ReviewCreateSerializer(ReviewUpdateSerializer):
    service_request = serializers.PrimaryKeyRelatedField(
        queryset=ServiceRequest.objects.all(),
    )
    reviewee = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(),
        required=False,
    )

    class Meta(ReviewUpdateSerializer.Meta):
        fields = ["service_request", "reviewee", *ReviewUpdateSerializer.Meta.fields]


class ReviewResponseSerializer(serializers.Serializer):
    response = serializers.CharField(max_length=500)


class ReviewFlagSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReviewFlag
        fields = ["id", "reason", "description", "status", "created_at"]
        read_only_fields = ["id", "status", "created_at"]


class ModerateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Review.Status.choices)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)
