from django.db.models import Avg
from django.db.models import Count
from django.db.models import Q
from django.db.models import Sum
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework.decorators import action
from rest_framework.mixins import ListModelMixin
from rest_framework.mixins import RetrieveModelMixin
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet
from rest_framework.viewsets import ModelViewSet

from proserv.audit.utils import log_action
from proserv.core.api.responses import envelope
from proserv.payments.models import Payment
from proserv.reviews.api.serializers import ReviewSerializer
from proserv.reviews.models import Review
from proserv.service_requests.api.serializers import ServiceRequestListSerializer
from proserv.service_requests.models import ServiceRequest
from proserv.users.filters import UserFilter
from proserv.users.models import Address
from proserv.users.models import User

from .permissions import IsAdminRole
from .serializers import AddressSerializer
from .serializers import AdminUserSerializer
from .serializers import PreferencesSerializer
from .serializers import PublicUserSerializer
from .serializers import UserSerializer


@extend_schema_view(
    list=extend_schema(tags=["Users"]),
    retrieve=extend_schema(tags=["Users"]),
)
class UserViewSet(RetrieveModelMixin, ListModelMixin, GenericViewSet):
    """Public profiles for everyone, account search for admins, and ``me``."""

    queryset = User.objects.filter(is_active=True).select_related(
        "professional_profile",
    )
    serializer_class = PublicUserSerializer
    filterset_class = UserFilter
    ordering_fields = ["date_joined", "name", "email"]
    ordering = ["-date_joined"]

    def get_permissions(self):
        if self.action == "list":
            return [IsAdminRole()]
        return [IsAuthenticated()]

    def get_queryset(self):
        if self.action == "list":
            return User.objects.all()
        return super().get_queryset()

    def get_serializer_class(self):
        if self.action == "list":
            return AdminUserSerializer
        return super().get_serializer_class()

    @action(detail=False, methods=["get", "patch"])
    def me(self, request):
        if request.method == "PATCH":
            serializer = UserSerializer(
                request.user,
                data=request.data,
                partial=True,
                context={"request": request},
            )
            serializer.is_valid(raise_exception=True)
            instance = serializer.save()
            log_action(
                "user_updated",
                actor=request.user,
                message=f"fields={','.join(sorted(serializer.validated_data))}",
                target=instance,
                request=request,
            )
            return envelope(serializer.data, message="Profile updated.")
        serializer = UserSerializer(request.user, context={"request": request})
        return envelope(serializer.data)

    @action(detail=False, methods=["patch"], url_path="me/preferences")
    def preferences(self, request):
        serializer = PreferencesSerializer(request.user, data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return envelope(user.preferences, message="Preferences updated.")

    @action(detail=False, methods=["get"], url_path="me/service-history")
    def service_history(self, request):
        user = request.user
        qs = (
            ServiceRequest.objects.filter(
                Q(client=user) | Q(assigned_professional__user=user),
            )
            .select_related("client", "assigned_professional__user")
            .order_by("-created_at")
        )
        status_value = request.query_params.get("status")
        if status_value:
            qs = qs.filter(status=status_value)
        page = self.paginate_queryset(qs)
        data = ServiceRequestListSerializer(
            page,
            many=True,
            context={"request": request},
        ).data
        return self.get_paginated_response(data)

    @action(detail=True, methods=["get"])
    def reviews(self, request, pk=None):
        reviewee = self.get_object()
        qs = (
            Review.objects.visible()
            .filter(reviewee=reviewee)
            .select_related("reviewer", "service_request")
        )
        summary = qs.aggregate(average=Avg("rating"), total=Count("id"))
        page = self.paginate_queryset(qs)
        data = ReviewSerializer(page, many=True, context={"request": request}).data
        return self.paginator.get_paginated_response(
            data,
            summary={
                "average": round(summary["average"] or 0, 2),
                "total": summary["total"],
            },
        )

    @action(detail=False, methods=["get"], url_path="me/stats")
    def stats(self, request):
        user = request.user
        as_client = ServiceRequest.objects.filter(client=user)
        as_professional = ServiceRequest.objects.filter(
            assigned_professional__user=user,
        )
        by_status = dict(
            (as_professional if user.is_professional else as_client)
            .order_by()
            .values("status")
            .annotate(n=Count("id"))
            .values_list("status", "n"),
        )
        spent = Payment.objects.filter(
            client=user,
            status=Payment.Status.COMPLETED,
        ).aggregate(total=Sum("total_amount"))["total"]
        earned = Payment.objects.filter(
            professional__user=user,
            status=Payment.Status.COMPLETED,
        ).aggregate(total=Sum("professional_amount"))["total"]
        received = Review.objects.visible().filter(reviewee=user)
        return envelope(
            {
                "requests": {
                    "total": sum(by_status.values()),
                    "by_status": by_status,
                },
                "payments": {
                    "spent": spent or 0,
                    "earned": earned or 0,
                },
                "reviews": {
                    "given": Review.objects.filter(reviewer=user).count(),
                    "received": received.count(),
                    "average_rating": round(
                        received.aggregate(avg=Avg("rating"))["avg"] or 0,
                        2,
                    ),
                },
            },
        )


@extend_schema(tags=["Users"])
class AddressViewSet(ModelViewSet):
    serializer_class = AddressSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return Address.objects.filter(user=self.request.user)

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    def perform_destroy(self, instance):
        was_default = instance.is_default
        instance.delete()
        if was_default:
            successor = Address.objects.filter(user=self.request.user).first()
            if successor:
                successor.is_default = True
                successor.save(update_fields=["is_default", "updated_at"])

    @action(detail=True, methods=["post"], url_path="set-default")
    def set_default(self, request, pk=None):
        address = self.get_object()
        address.is_default = True
        address.save(update_fields=["is_default", "updated_at"])
        return envelope(AddressSerializer(address).data, message="Default address set.")
