from django.db.models import Q
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from proserv.core.api.responses import envelope
from proserv.reviews import services
from proserv.reviews.filters import ReviewFilter
from proserv.reviews.models import Review
from proserv.service_requests.api.serializers import ServiceRequestListSerializer
from proserv.users.api.permissions import IsAdminRole
from proserv.users.models import User

from .serializers import ModerateSerializer
from .serializers import ReviewCreateSerializer
from .serializers import ReviewFlagSerializer
from .serializers import ReviewResponseSerializer
from .serializers import ReviewSerializer
from .serializers import ReviewUpdateSerializer


@extend_schema_view(
    list=extend_schema(tags=["Reviews"]),
    retrieve=extend_schema(tags=["Reviews"]),
    create=extend_schema(tags=["Reviews"], request=ReviewCreateSerializer),
    partial_update=extend_schema(tags=["Reviews"], request=ReviewUpdateSerializer),
    destroy=extend_schema(tags=["Reviews"]),
)
class ReviewViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    serializer_class = ReviewSerializer
    filterset_class = ReviewFilter
    ordering_fields = ["created_at", "rating", "helpful_votes"]
    ordering = ["-created_at"]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        qs = Review.objects.select_related(
            "reviewer",
            "reviewee",
            "service_request",
        )
        user = self.request.user
        if self.action == "list" or not user.is_authenticated:
            return qs.visible()
        if user.is_admin_role:
            return qs.exclude(status=Review.Status.DELETED)
        return qs.exclude(status=Review.Status.DELETED).filter(
            Q(status=Review.Status.ACTIVE, is_public=True)
            | Q(reviewer=user)
            | Q(reviewee=user),
        )

    def get_permissions(self):
        if self.action in ("list", "retrieve", "stats"):
            return [AllowAny()]
        if self.action == "moderate":
            return [IsAdminRole()]
        return [IsAuthenticated()]

    def list(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        data = self.get_serializer(page, many=True).data
        return self.paginator.get_paginated_response(
            data,
            summary=services.summary(qs),
        )

    def create(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        service_request = data.pop("service_request")
        review = services.create_review(request.user, service_request, data)
        return envelope(
            self.get_serializer(review).data,
            message="Review created.",
            status=status.HTTP_201_CREATED,
        )

    def partial_update(self, request, *args, **kwargs):
        review = self.get_object()
        serializer = ReviewUpdateSerializer(review, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        review = services.update_review(review, request.user, serializer.validated_data)
        return envelope(self.get_serializer(review).data, message="Review updated.")

    def destroy(self, request, *args, **kwargs):
        services.delete_review(self.get_object(), request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=ReviewResponseSerializer)
    @action(detail=True, methods=["post"])
    def respond(self, request, pk=None):
        serializer = ReviewResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = services.respond(
            self.get_object(),
            request.user,
            serializer.validated_data["response"],
        )
        return envelope(self.get_serializer(review).data, message="Response added.")

    @extend_schema(request=None)
    @action(detail=True, methods=["post", "delete"])
    def helpful(self, request, pk=None):
        review = self.get_object()
        if request.method == "DELETE":
            review = services.unmark_helpful(review, request.user)
            return envelope(self.get_serializer(review).data, message="Vote removed.")
        review = services.mark_helpful(review, request.user)
        return envelope(
            self.get_serializer(review).data,
            message="Review marked as helpful.",
        )

    @extend_schema(request=ReviewFlagSerializer, responses=ReviewFlagSerializer)
    @action(detail=True, methods=["post"])
    def flag(self, request, pk=None):
        serializer = ReviewFlagSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = services.flag(
            self.get_object(),
            request.user,
            serializer.validated_data["reason"],
            serializer.validated_data.get("description", ""),
        )
        return envelope(
            ReviewFlagSerializer(report).data,
            message="Review reported.",
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(request=ModerateSerializer)
    @action(detail=True, methods=["post"])
    def moderate(self, request, pk=None):
        review = get_object_or_404(Review, pk=pk)
        serializer = ModerateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = services.moderate(
            review,
            request.user,
            serializer.validated_data["status"],
            serializer.validated_data.get("notes", ""),
        )
        return envelope(self.get_serializer(review).data, message="Review moderated.")

    @extend_schema(
        parameters=[
            OpenApiParameter("user", int),
            OpenApiParameter("type", str, enum=Review.ReviewerType.values),
        ],
    )
    @action(detail=False, methods=["get"])
    def stats(self, request):
        user_id = request.query_params.get("user")
        if user_id:
            user = get_object_or_404(User, pk=user_id)
        elif request.user.is_authenticated:
            user = request.user
        else:
            raise ValidationError({"user": "This parameter is required."})
        return envelope(
            services.review_stats(user, request.query_params.get("type")),
        )

    @action(detail=False, methods=["get"])
    def pending(self, request):
        qs = services.pending_reviews(request.user)
        return envelope(
            ServiceRequestListSerializer(
                qs,
                many=True,
                context={"request": request},
            ).data,
        )
