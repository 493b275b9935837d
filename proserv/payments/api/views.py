from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet
from rest_framework.viewsets import ModelViewSet

from proserv.core.api.responses import envelope
from proserv.core.api.responses import error_response
from proserv.payments import services
from proserv.payments.filters import PaymentFilter
from proserv.payments.models import Invoice
from proserv.payments.models import Payment
from proserv.payments.models import PaymentMethod
from proserv.service_requests.models import ServiceRequest
from proserv.users.api.permissions import IsClient

from .serializers import InvoiceSerializer
from .serializers import PaymentMethodSerializer
from .serializers import PaymentSerializer
from .serializers import ProcessPaymentSerializer
from .serializers import RefundSerializer


@extend_schema_view(
    list=extend_schema(tags=["Payments"]),
    retrieve=extend_schema(tags=["Payments"]),
)
class PaymentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = PaymentFilter
    ordering_fields = ["created_at", "total_amount", "paid_at"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return services.scoped_queryset(self.request.user)

    def get_permissions(self):
        if self.action == "pay":
            return [IsClient()]
        return super().get_permissions()

    @extend_schema(request=ProcessPaymentSerializer, responses=PaymentSerializer)
    @action(
        detail=False,
        methods=["post"],
        url_path=r"service-requests/(?P<service_request_id>\d+)/pay",
    )
    def pay(self, request, service_request_id=None):
        service_request = get_object_or_404(ServiceRequest, pk=service_request_id)
        serializer = ProcessPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = services.process_payment(
            request.user,
            service_request,
            **serializer.validated_data,
        )
        if payment.status == Payment.Status.FAILED:
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                f"Payment failed: {payment.failure_reason}",
                errors={"payment_id": payment.pk},
            )
        return envelope(
            PaymentSerializer(payment).data,
            message="Payment processed.",
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(request=RefundSerializer, responses=PaymentSerializer)
    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        payment = get_object_or_404(Payment, pk=pk)
        if not services.can_view(payment, request.user):
            raise NotFound
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = services.refund(
            payment,
            request.user,
            amount=serializer.validated_data.get("amount"),
            reason=serializer.validated_data["reason"],
        )
        if payment.refund_status == Payment.RefundStatus.FAILED:
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                payment.failure_reason,
                errors={"payment_id": payment.pk},
            )
        return envelope(PaymentSerializer(payment).data, message="Refund processed.")

    @action(detail=False, methods=["get"])
    def stats(self, request):
        qs = self.filter_queryset(self.get_queryset())
        return envelope(services.payment_stats(qs))

    @extend_schema(responses=InvoiceSerializer)
    @action(detail=True, methods=["get"])
    def invoice(self, request, pk=None):
        payment = self.get_object()
        invoice = getattr(payment, "invoice", None)
        if invoice is None:
            msg = "No invoice has been issued for this payment."
            raise NotFound(msg)
        return envelope(InvoiceSerializer(invoice).data)


@extend_schema_view(
    list=extend_schema(tags=["Payments"]),
    retrieve=extend_schema(tags=["Payments"]),
)
class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    serializer_class = InvoiceSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        qs = Invoice.objects.select_related("payment")
        if user.is_admin_role:
            return qs
        if user.is_professional:
            return qs.filter(professional__user=user)
        return qs.filter(client=user)


@extend_schema(tags=["Payments"])
class PaymentMethodViewSet(ModelViewSet):
    serializer_class = PaymentMethodSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        return PaymentMethod.objects.filter(user=self.request.user, is_active=True)

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    def perform_destroy(self, instance):
        if Payment.objects.filter(
            saved_method=instance,
            status=Payment.Status.PROCESSING,
        ).exists():
            msg = "This method is in use by a payment in progress."
            raise PermissionDenied(msg)
        instance.is_active = False
        instance.is_default = False
        instance.save(update_fields=["is_active", "is_default"])
        replacement = self.get_queryset().first()
        if replacement is not None and not replacement.is_default:
            services.set_default_method(replacement)

    @extend_schema(request=None)
    @action(detail=True, methods=["post"], url_path="set-default")
    def set_default(self, request, pk=None):
        method = services.set_default_method(self.get_object())
        return envelope(
            PaymentMethodSerializer(method).data,
            message="Default payment method updated.",
        )
