from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError
from rest_framework.mixins import ListModelMixin
from rest_framework.mixins import RetrieveModelMixin
from rest_framework.permissions import AllowAny
from rest_framework.viewsets import GenericViewSet
from rest_framework.viewsets import ModelViewSet

from proserv.core.api.responses import envelope
from proserv.professionals import services
from proserv.professionals.filters import ProfessionalFilter
from proserv.professionals.models import AvailabilityException
from proserv.professionals.models import Professional
from proserv.professionals.models import ServiceOffering
from proserv.service_requests.api.serializers import ServiceRequestListSerializer
from proserv.users.api.permissions import IsProfessional

from .serializers import AvailabilityExceptionSerializer
from .serializers import AvailabilitySerializer
from .serializers import CredentialSerializer
from .serializers import ProfessionalProfileSerializer
from .serializers import ProfessionalSerializer
from .serializers import ServiceOfferingSerializer
from .serializers import VerificationSubmitSerializer


def _float_param(request, name: str) -> float | None:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValidationError({name: "Must be a number."}) from exc


class OwnProfessionalMixin:
    def get_own_profile(self) -> Professional:
        profile = getattr(self.request.user, "professional_profile", None)
        if profile is None:
            msg = "Professional profile not found."
            raise NotFound(msg)
        return profile


@extend_schema_view(
    list=extend_schema(tags=["Professionals"]),
    retrieve=extend_schema(tags=["Professionals"]),
)
class ProfessionalViewSet(
    OwnProfessionalMixin,
    RetrieveModelMixin,
    ListModelMixin,
    GenericViewSet,
):
    """Public directory plus the authenticated professional's ``me`` area."""

    serializer_class = ProfessionalSerializer
    filterset_class = ProfessionalFilter
    ordering_fields = ["rating_average", "rating_count", "created_at"]
    ordering = ["-rating_average", "-rating_count"]

    def get_queryset(self):
        return (
            Professional.objects.filter(is_active=True, user__is_active=True)
            .select_related("user")
            .prefetch_related("offerings")
        )

    def get_permissions(self):
        if self.action in ("list", "retrieve", "top_rated", "availability_check"):
            return [AllowAny()]
        return [IsProfessional()]

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        lat = _float_param(request, "lat")
        lng = _float_param(request, "lng")
        if lat is not None and lng is not None:
            queryset = services.filter_by_distance(
                queryset,
                lat,
                lng,
                _float_param(request, "radius"),
            )
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=["get"], url_path="top-rated")
    def top_rated(self, request):
        try:
            limit = int(request.query_params.get("limit", "10"))
        except (TypeError, ValueError):
            limit = 10
        limit = max(1, min(limit, 50))
        data = self.get_serializer(services.top_rated(limit), many=True).data
        return envelope(data)

    @action(detail=True, methods=["get"], url_path="availability")
    def availability_check(self, request, pk=None):
        professional = self.get_object()
        moment = parse_datetime(request.query_params.get("at", "") or "")
        if moment is None:
            raise ValidationError({"at": "Provide an ISO 8601 datetime."})
        return envelope(
            {
                "at": moment.isoformat(),
                "available": professional.is_available_at(moment),
            },
        )

    @action(detail=False, methods=["get", "patch"])
    def me(self, request):
        profile = self.get_own_profile()
        if request.method == "PATCH":
            serializer = ProfessionalProfileSerializer(
                profile,
                data=request.data,
                partial=True,
            )
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return envelope(serializer.data, message="Profile updated.")
        return envelope(ProfessionalProfileSerializer(profile).data)

    @action(detail=False, methods=["put", "patch"], url_path="me/availability")
    def update_availability(self, request):
        profile = self.get_own_profile()
        serializer = AvailabilitySerializer(
            data=request.data,
            context={"current": profile.availability},
        )
        serializer.is_valid(raise_exception=True)
        profile.availability = {
            **profile.availability,
            **serializer.validated_data["schedule"],
        }
        if "time_zone" in request.data:
            tz = ProfessionalProfileSerializer().validate_time_zone(
                request.data["time_zone"],
            )
            profile.time_zone = tz
        profile.save(update_fields=["availability", "time_zone", "updated_at"])
        return envelope(
            {"availability": profile.availability, "time_zone": profile.time_zone},
            message="Availability updated.",
        )

    @action(
        detail=False,
        methods=["get", "post"],
        url_path="me/availability/exceptions",
    )
    def availability_exceptions(self, request):
        profile = self.get_own_profile()
        if request.method == "POST":
            serializer = AvailabilityExceptionSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            exception, _ = AvailabilityException.objects.update_or_create(
                professional=profile,
                date=serializer.validated_data["date"],
                defaults=serializer.validated_data,
            )
            return envelope(
                AvailabilityExceptionSerializer(exception).data,
                message="Availability exception saved.",
                status=201,
            )
        return envelope(
            AvailabilityExceptionSerializer(
                profile.availability_exceptions.all(),
                many=True,
            ).data,
        )

    @action(
        detail=False,
        methods=["delete"],
        url_path=r"me/availability/exceptions/(?P<exception_id>\d+)",
    )
    def delete_availability_exception(self, request, exception_id=None):
        profile = self.get_own_profile()
        exception = get_object_or_404(
            profile.availability_exceptions,
            pk=exception_id,
        )
        exception.delete()
        return envelope(None, message="Availability exception removed.")

    @action(detail=False, methods=["get"], url_path="me/open-requests")
    def open_requests(self, request):
        profile = self.get_own_profile()
        rows = services.open_requests_for(profile)
        page = self.paginate_queryset(rows)
        data = ServiceRequestListSerializer(
            page,
            many=True,
            context={"request": request},
        ).data
        return self.get_paginated_response(data)

    @action(detail=False, methods=["get", "post"], url_path="me/verification")
    def verification(self, request):
        profile = self.get_own_profile()
        if request.method == "POST":
            serializer = VerificationSubmitSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            services.submit_verification(
                profile,
                serializer.validated_data["documents"],
            )
            profile.refresh_from_db()
        return envelope(
            {
                "verification_status": profile.verification_status,
                "verification_notes": profile.verification_notes,
                "documents": CredentialSerializer(
                    profile.credentials.all(),
                    many=True,
                ).data,
            },
            message=(
                "Verification documents submitted."
                if request.method == "POST"
                else ""
            ),
            status=201 if request.method == "POST" else 200,
        )

    @action(detail=False, methods=["get"], url_path="me/stats")
    def stats(self, request):
        return envelope(services.professional_stats(self.get_own_profile()))


@extend_schema(tags=["Professionals"])
class ServiceOfferingViewSet(OwnProfessionalMixin, ModelViewSet):
    """CRUD over the authenticated professional's service offerings."""

    serializer_class = ServiceOfferingSerializer
    permission_classes = [IsProfessional]
    pagination_class = None

    def get_queryset(self):
        return ServiceOffering.objects.filter(
            professional__user=self.request.user,
        )

    def perform_create(self, serializer):
        serializer.save(professional=self.get_own_profile())
