from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from proserv.core.api.responses import envelope
from proserv.professionals.models import ServiceCategory
from proserv.service_requests import services
from proserv.service_requests.filters import ServiceRequestFilter
from proserv.service_requests.models import ServiceRequest
from proserv.users.api.permissions import IsClient

from .serializers import CancelSerializer
from .serializers import CompleteSerializer
from .serializers import DisputeSerializer
from .serializers import ServiceRequestDetailSerializer
from .serializers import ServiceRequestListSerializer
from .serializers import ServiceRequestUpdateSerializer
from .serializers import ServiceRequestWriteSerializer


@extend_schema_view(
    list=extend_schema(tags=["Service Requests"]),
    retrieve=extend_schema(tags=["Service Requests"]),
    create=extend_schema(
        tags=["Service Requests"],
        request=ServiceRequestWriteSerializer,
    ),
    partial_update=extend_schema(
        tags=["Service Requests"],
        request=ServiceRequestUpdateSerializer,
    ),
)
class ServiceRequestViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    GenericViewSet,
):
    """Service requests, scoped by role.

    - clients see their own requests
    - professionals see requests assigned to them or that they quoted
    - admins see everything
    """

    filterset_class = ServiceRequestFilter
    ordering_fields = ["created_at", "preferred_date", "urgency", "estimated_cost"]
    ordering = ["-created_at"]
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        if self.detail:
            return ServiceRequest.objects.select_related(
                "client",
                "assigned_professional__user",
            ).prefetch_related("status_history")
        return services.scoped_queryset(self.request.user)

    def get_permissions(self):
        if self.action == "create":
            return [IsClient()]
        return [IsAuthenticated()]

    def get_serializer_class(self):
        if self.action == "retrieve":
            return ServiceRequestDetailSerializer
        if self.action == "create":
            return ServiceRequestWriteSerializer
        if self.action == "partial_update":
            return ServiceRequestUpdateSerializer
        return ServiceRequestListSerializer

    def get_object(self):
        obj = super().get_object()
        if not services.can_view(obj, self.request.user):
            msg = "You do not have access to this service request."
            raise PermissionDenied(msg)
        return obj

    def _detail(self, service_request, message="", code=status.HTTP_200_OK):
        service_request.refresh_from_db()
        data = ServiceRequestDetailSerializer(
            service_request,
            context=self.get_serializer_context(),
        ).data
        return envelope(data, message=message, status=code)

    def create(self, request, *args, **kwargs):
        serializer = ServiceRequestWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service_request = services.create_service_request(
            request.user,
            serializer.validated_data,
        )
        return self._detail(
            service_request,
            "Service request created.",
            status.HTTP_201_CREATED,
        )

    def partial_update(self, request, *args, **kwargs):
        service_request = self.get_object()
        serializer = ServiceRequestUpdateSerializer(
            service_request,
            data=request.data,
            partial=True,
        )
        serializer.is_valid(raise_exception=True)
        services.update_service_request(
            service_request,
            request.user,
            serializer.validated_data,
        )
        return self._detail(service_request, "Service request updated.")

    def update(self, request, *args, **kwargs):
        return self.partial_update(request, *args, **kwargs)

    @extend_schema(request=CancelSerializer)
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        service_request = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.cancel(
            service_request,
            request.user,
            reason=serializer.validated_data["reason"],
            note=serializer.validated_data.get("note", ""),
        )
        return self._detail(service_request, "Service request cancelled.")

    @extend_schema(request=None)
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        service_request = self.get_object()
        services.confirm(service_request, request.user)
        return self._detail(service_request, "Service confirmed.")

    @extend_schema(request=None)
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        service_request = self.get_object()
        services.start(service_request, request.user)
        return self._detail(service_request, "Service started.")

    @extend_schema(request=CompleteSerializer)
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        service_request = self.get_object()
        serializer = CompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.complete(
            service_request,
            request.user,
            notes=serializer.validated_data.get("notes", ""),
            additional_costs=serializer.validated_data.get("additional_costs"),
        )
        return self._detail(service_request, "Service completed.")

    @extend_schema(request=DisputeSerializer)
    @action(detail=True, methods=["post"])
    def dispute(self, request, pk=None):
        service_request = self.get_object()
        serializer = DisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.dispute(
            service_request,
            request.user,
            reason=serializer.validated_data["reason"],
        )
        return self._detail(service_request, "Dispute opened.")

    @action(detail=False, methods=["get"])
    def categories(self, request):
        return envelope(
            [
                {"value": value, "label": str(label)}
                for value, label in ServiceCategory.choices
            ],
        )

    @action(detail=False, methods=["get"], url_path="urgency-levels")
    def urgency_levels(self, request):
        return envelope(
            [
                {"value": value, "label": str(label)}
                for value, label in ServiceRequest.Urgency.choices
            ],
        )

    @action(detail=False, methods=["get"])
    def nearby(self, request):
        try:
            lat = float(request.query_params["lat"])
            lng = float(request.query_params["lng"])
            radius = float(request.query_params.get("radius") or 0) or None
        except (KeyError, ValueError) as exc:
            raise ValidationError(
                {"detail": "lat and lng query parameters are required numbers."},
            ) from exc
        rows = services.nearby_open_requests(lat, lng, radius)
        page = self.paginate_queryset(rows)
        data = ServiceRequestListSerializer(
            page,
            many=True,
            context=self.get_serializer_context(),
        ).data
        return self.get_paginated_response(data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(services.request_stats(request.user))
