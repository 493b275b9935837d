from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.db.models import Avg
from django.db.models import Count
from django.db.models import Exists
from django.db.models import OuterRef
from django.utils import timezone

from proserv.core.geo import bounding_box
from proserv.core.geo import within_radius
from proserv.notifications.services import notify
from proserv.professionals.models import TOP_RATED_MIN_REVIEWS
from proserv.professionals.models import Credential
from proserv.professionals.models import Professional
from proserv.quotes.models import Quote
from proserv.service_requests.models import ServiceRequest

if TYPE_CHECKING:
    from django.db.models import QuerySet

logger = logging.getLogger(__name__)


def filter_by_distance(
    queryset: QuerySet[Professional],
    lat: float,
    lng: float,
    radius_km: float | None = None,
) -> list[Professional]:
    """Professionals within ``radius_km`` of a point, nearest first.

    Each returned instance carries a ``distance_km`` attribute.
    """
    radius = radius_km or settings.DEFAULT_SEARCH_RADIUS_KM
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius)
    candidates = queryset.filter(
        latitude__range=(min_lat, max_lat),
        longitude__range=(min_lng, max_lng),
    )
    matched = []
    for professional, distance in within_radius(
        candidates,
        lat,
        lng,
        radius,
        lambda p: (p.latitude, p.longitude),
    ):
        professional.distance_km = distance
        matched.append(professional)
    matched.sort(key=lambda p: p.distance_km)
    return matched


def top_rated(limit: int = 10) -> QuerySet[Professional]:
    return (
        Professional.objects.filter(
            is_active=True,
            user__is_active=True,
            verification_status=Professional.VerificationStatus.VERIFIED,
            rating_count__gte=TOP_RATED_MIN_REVIEWS,
        )
        .select_related("user")
        .prefetch_related("offerings")
        .order_by("-rating_average", "-rating_count")[:limit]
    )


def open_requests_for(professional: Professional):
    """Open requests in the professional's categories and service area.

    Requests without coordinates are always included. Each row is annotated
    with ``has_quoted``.
    """
    categories = professional.categories()
    qs = (
        ServiceRequest.objects.filter(
            status__in=ServiceRequest.OPEN_STATUSES,
            category__in=categories,
        )
        .exclude(client=professional.user)
        .select_related("client")
        .annotate(
            has_quoted=Exists(
                Quote.objects.filter(
                    service_request=OuterRef("pk"),
                    professional=professional,
                ).exclude(status=Quote.Status.WITHDRAWN),
            ),
        )
        .order_by("-created_at")
    )
    if professional.latitude is None or professional.longitude is None:
        return list(qs)

    located = []
    for request in qs:
        if request.latitude is None or request.longitude is None:
            request.distance_km = None
            located.append(request)
    located.extend(
        _with_distance(
            within_radius(
                qs.filter(latitude__isnull=False, longitude__isnull=False),
                professional.latitude,
                professional.longitude,
                professional.service_radius_km,
                lambda r: (r.latitude, r.longitude),
            ),
        ),
    )
    return located


def _with_distance(pairs):
    for item, distance in pairs:
        item.distance_km = distance
        yield item


def professional_stats(professional: Professional) -> dict:
    quotes = Quote.objects.filter(professional=professional)
    by_status = dict(
        quotes.order_by()
        .values("status")
        .annotate(n=Count("id"))
        .values_list("status", "n"),
    )
    sent = sum(by_status.values())
    accepted = by_status.get(Quote.Status.ACCEPTED, 0)
    return {
        "jobs": {
            "total": professional.total_jobs,
            "completed": professional.completed_jobs,
            "cancelled": professional.cancelled_jobs,
            "completion_rate": professional.completion_rate,
            "active": ServiceRequest.objects.filter(
                assigned_professional=professional,
                status__in=ServiceRequest.ACTIVE_STATUSES,
            ).count(),
        },
        "quotes": {
            "total": sent,
            "by_status": by_status,
            "acceptance_rate": round(accepted / sent * 100, 2) if sent else 0,
            "average_price": quotes.aggregate(avg=Avg("price"))["avg"] or 0,
        },
        "earnings": {"total": professional.total_earnings},
        "rating": {
            "average": professional.rating_average,
            "count": professional.rating_count,
            "breakdown": professional.rating_breakdown,
        },
    }


@transaction.atomic
def submit_verification(professional: Professional, documents: list[dict]):
    created = [
        Credential.objects.create(professional=professional, **document)
        for document in documents
    ]
    if professional.verification_status != Professional.VerificationStatus.VERIFIED:
        professional.verification_status = Professional.VerificationStatus.IN_REVIEW
        professional.save(update_fields=["verification_status", "updated_at"])
    logger.info(
        "Professional %s submitted %d verification documents",
        professional.pk,
        len(created),
    )
    return created


@transaction.atomic
def decide_verification(
    professional: Professional,
    *,
    approve: bool,
    notes: str = "",
) -> Professional:
    status = (
        Professional.VerificationStatus.VERIFIED
        if approve
        else Professional.VerificationStatus.REJECTED
    )
    professional.verification_status = status
    professional.verification_notes = notes
    professional.verified_at = timezone.now() if approve else None
    professional.save(
        update_fields=[
            "verification_status",
            "verification_notes",
            "verified_at",
            "updated_at",
        ],
    )
    professional.credentials.filter(status=Credential.Status.PENDING).update(
        status=Credential.Status.APPROVED if approve else Credential.Status.REJECTED,
    )
    notify(
        professional.user,
        "verification_approved" if approve else "verification_rejected",
        context={"notes": notes},
        link="/professionals/me",
    )
    return professional
