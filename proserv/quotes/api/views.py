from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from proserv.core.api.responses import envelope
from proserv.quotes import services
from proserv.quotes.filters import QuoteFilter
from proserv.quotes.models import Quote
from proserv.service_requests.models import ServiceRequest
from proserv.users.api.permissions import IsProfessional

from .serializers import QuoteRejectSerializer
from .serializers import QuoteSerializer
from .serializers import QuoteUpdateSerializer
from .serializers import QuoteWriteSerializer


@extend_schema_view(
    list=extend_schema(tags=["Quotes"]),
    retrieve=extend_schema(tags=["Quotes"]),
    create=extend_schema(tags=["Quotes"], request=QuoteWriteSerializer),
    partial_update=extend_schema(tags=["Quotes"], request=QuoteUpdateSerializer),
)
class QuoteViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    GenericViewSet,
):
    serializer_class = QuoteSerializer
    filterset_class = QuoteFilter
    ordering_fields = ["created_at", "price", "valid_until"]
    ordering = ["-created_at"]
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        return services.scoped_queryset(self.request.user)

    def get_permissions(self):
        if self.action in ("create", "partial_update", "withdraw"):
            return [IsProfessional()]
        return [IsAuthenticated()]

    def create(self, request, *args, **kwargs):
        serializer = QuoteWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        service_request = data.pop("service_request")
        quote = services.send_quote(request.user, service_request, data)
        return envelope(
            QuoteSerializer(quote).data,
            message="Quote sent.",
            status=status.HTTP_201_CREATED,
        )

    def partial_update(self, request, *args, **kwargs):
        quote = self.get_object()
        serializer = QuoteUpdateSerializer(quote, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        services.update_quote(quote, request.user, serializer.validated_data)
        return envelope(QuoteSerializer(quote).data, message="Quote updated.")

    @extend_schema(request=None)
    @action(detail=True, methods=["post"])
    def withdraw(self, request, pk=None):
        quote = services.withdraw(self.get_object(), request.user)
        return envelope(QuoteSerializer(quote).data, message="Quote withdrawn.")

    @extend_schema(request=None)
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        quote = services.accept(self.get_object(), request.user)
        return envelope(QuoteSerializer(quote).data, message="Quote accepted.")

    @extend_schema(request=QuoteRejectSerializer)
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        serializer = QuoteRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quote = services.reject(
            self.get_object(),
            request.user,
            serializer.validated_data.get("reason", ""),
        )
        return envelope(QuoteSerializer(quote).data, message="Quote rejected.")

    @action(
        detail=False,
        methods=["get"],
        url_path=r"request/(?P<service_request_id>\d+)",
    )
    def for_request(self, request, service_request_id=None):
        service_request = get_object_or_404(ServiceRequest, pk=service_request_id)
        if not (
            request.user.is_admin_role or service_request.client_id == request.user.pk
        ):
            msg = "Only the client who created the request can see its quotes."
            raise PermissionDenied(msg)
        qs = (
            Quote.objects.filter(service_request=service_request)
            .exclude(status=Quote.Status.WITHDRAWN)
            .select_related("professional__user", "service_request")
            .order_by("price")
        )
        return envelope(QuoteSerializer(qs, many=True).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(services.quote_stats(request.user))
