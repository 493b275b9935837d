from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from proserv.audit.utils import log_action
from proserv.core.api.responses import envelope
from proserv.dashboard import services
from proserv.payments import services as payment_services
from proserv.payments.api.serializers import PaymentSerializer
from proserv.payments.filters import PaymentFilter
from proserv.payments.models import Payment
from proserv.professionals import services as professional_services
from proserv.professionals.api.serializers import ProfessionalProfileSerializer
from proserv.professionals.filters import ProfessionalFilter
from proserv.professionals.models import Professional
from proserv.service_requests import services as request_services
from proserv.service_requests.api.serializers import AdminStatusSerializer
from proserv.service_requests.api.serializers import ServiceRequestListSerializer
from proserv.service_requests.filters import ServiceRequestFilter
from proserv.service_requests.models import ServiceRequest
from proserv.users.api.permissions import IsAdminRole
from proserv.users.api.serializers import AdminUserSerializer
from proserv.users.filters import UserFilter
from proserv.users.models import User
from proserv.users.tokens import revoke_refresh_tokens

from .serializers import ActiveSerializer
from .serializers import AdminPasswordSerializer
from .serializers import VerificationDecisionSerializer

logger = logging.getLogger(__name__)


@extend_schema(tags=["Admin"])
class DashboardView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        return envelope(services.dashboard())


@extend_schema(tags=["Admin"])
class StatsView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        return envelope(services.overview())


@extend_schema_view(
    list=extend_schema(tags=["Admin"]),
    retrieve=extend_schema(tags=["Admin"]),
)
class AdminUserViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    queryset = User.objects.all()
    serializer_class = AdminUserSerializer
    permission_classes = [IsAdminRole]
    filterset_class = UserFilter
    ordering_fields = ["date_joined", "email", "name", "last_login"]
    ordering = ["-date_joined"]

    @extend_schema(request=ActiveSerializer)
    @action(detail=True, methods=["post"], url_path="toggle-active")
    def toggle_active(self, request, pk=None):
        user = self.get_object()
        if user.pk == request.user.pk:
            msg = "You cannot deactivate your own account."
            raise ValidationError(msg)
        serializer = ActiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = user.is_active
        user.is_active = serializer.validated_data.get("is_active", not before)
        user.save(update_fields=["is_active", "updated_at"])
        if not user.is_active:
            revoke_refresh_tokens(user)
        log_action(
            "user_activated" if user.is_active else "user_deactivated",
            actor=request.user,
            message=serializer.validated_data.get("reason", ""),
            target=user,
            before={"is_active": before},
            after={"is_active": user.is_active},
            request=request,
        )
        message = "User activated." if user.is_active else "User deactivated."
        return envelope(self.get_serializer(user).data, message=message)

    @extend_schema(request=AdminPasswordSerializer)
    @action(detail=True, methods=["put", "post"])
    def password(self, request, pk=None):
        user = self.get_object()
        serializer = AdminPasswordSerializer(
            data=request.data,
            context={"user": user},
        )
        serializer.is_valid(raise_exception=True)
        user.set_password(serializer.validated_data["new_password"])
        user.login_attempts = 0
        user.lock_until = None
        user.save(
            update_fields=["password", "login_attempts", "lock_until", "updated_at"],
        )
        revoke_refresh_tokens(user)
        log_action(
            "password_reset_by_admin",
            actor=request.user,
            target=user,
            request=request,
        )
        logger.info("Admin %s reset the password of user %s", request.user.pk, user.pk)
        return envelope(None, message="Password updated.")


@extend_schema_view(
    list=extend_schema(tags=["Admin"]),
    retrieve=extend_schema(tags=["Admin"]),
)
class AdminProfessionalViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    queryset = Professional.objects.select_related("user")
    serializer_class = ProfessionalProfileSerializer
    permission_classes = [IsAdminRole]
    filterset_class = ProfessionalFilter
    ordering_fields = ["created_at", "rating_average", "completed_jobs"]
    ordering = ["-created_at"]

    @extend_schema(request=VerificationDecisionSerializer)
    @action(detail=True, methods=["post"])
    def verification(self, request, pk=None):
        professional = self.get_object()
        serializer = VerificationDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = professional.verification_status
        professional = professional_services.decide_verification(
            professional,
            approve=serializer.validated_data["approve"],
            notes=serializer.validated_data.get("notes", ""),
        )
        log_action(
            "verification_decided",
            actor=request.user,
            message=professional.verification_notes,
            target=professional,
            request=request,
            before={"verification_status": before},
            after={"verification_status": professional.verification_status},
        )
        return envelope(
            self.get_serializer(professional).data,
            message=f"Professional {professional.verification_status}.",
        )


@extend_schema_view(
    list=extend_schema(tags=["Admin"]),
    retrieve=extend_schema(tags=["Admin"]),
)
class AdminServiceRequestViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    queryset = ServiceRequest.objects.select_related(
        "client",
        "assigned_professional__user",
    )
    serializer_class = ServiceRequestListSerializer
    permission_classes = [IsAdminRole]
    filterset_class = ServiceRequestFilter
    ordering_fields = ["created_at", "preferred_date", "status"]
    ordering = ["-created_at"]

    @extend_schema(request=AdminStatusSerializer)
    @action(detail=True, methods=["post", "patch"])
    def status(self, request, pk=None):
        service_request = self.get_object()
        serializer = AdminStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = service_request.status
        service_request = request_services.transition(
            service_request,
            serializer.validated_data["status"],
            actor=request.user,
            note=serializer.validated_data.get("note", ""),
            force=True,
        )
        log_action(
            "service_status_overridden",
            actor=request.user,
            target=service_request,
            request=request,
            before={"status": before},
            after={"status": service_request.status},
        )
        return envelope(
            self.get_serializer(service_request).data,
            message="Status updated.",
        )


@extend_schema_view(
    list=extend_schema(tags=["Admin"]),
    retrieve=extend_schema(tags=["Admin"]),
)
class AdminPaymentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    queryset = Payment.objects.select_related(
        "service_request",
        "client",
        "professional",
    )
    serializer_class = PaymentSerializer
    permission_classes = [IsAdminRole]
    filterset_class = PaymentFilter
    ordering_fields = ["created_at", "total_amount"]
    ordering = ["-created_at"]

    @action(detail=False, methods=["get"])
    def stats(self, request):
        qs = self.filter_queryset(self.get_queryset())
        return envelope(payment_services.payment_stats(qs))
