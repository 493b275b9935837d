from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Avg
from django.db.models import Count
from django.db.models import F
from django.db.models import Q
from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from proserv.audit.utils import log_action
from proserv.chat import services as chat_services
from proserv.core.api.exceptions import Conflict
from proserv.core.geo import within_radius
from proserv.notifications.services import notify
from proserv.notifications.services import notify_many
from proserv.professionals.models import Professional
from proserv.quotes.models import Quote
from proserv.service_requests.models import ServiceRequest
from proserv.service_requests.models import StatusHistory
from proserv.service_requests.transitions import allowed_targets
from proserv.service_requests.transitions import can_transition

logger = logging.getLogger(__name__)

Status = ServiceRequest.Status

EDITABLE_FIELDS = (
    "title",
    "description",
    "subcategory",
    "urgency",
    "requirements",
    "address_street",
    "address_city",
    "address_state",
    "address_zip_code",
    "address_notes",
    "latitude",
    "longitude",
    "preferred_date",
    "preferred_time",
    "flexibility",
    "estimated_duration_minutes",
    "estimated_cost",
    "currency",
)


def record_status(service_request, from_status, to_status, actor=None, note=""):
    return StatusHistory.objects.create(
        service_request=service_request,
        from_status=from_status or "",
        to_status=to_status,
        changed_by=actor,
        note=note[:500],
    )


def transition(
    service_request: ServiceRequest,
    target: str,
    *,
    actor=None,
    note: str = "",
    force: bool = False,
) -> ServiceRequest:
    """Move a request to ``target``, recording history.

    Raises ``Conflict`` when the transition table does not allow the move,
    unless ``force`` is set (administrative override).
    """
    current = service_request.status
    if not force and not can_transition(current, target):
        msg = (
            f"Cannot move a {current} request to {target}. "
            f"Allowed: {', '.join(allowed_targets(current)) or 'none'}."
        )
        raise Conflict(msg)
    service_request.status = target
    service_request.save()
    record_status(service_request, current, target, actor, note)
    logger.info(
        "Service request %s: %s -> %s (by %s)",
        service_request.pk,
        current,
        target,
        getattr(actor, "pk", None),
    )
    return service_request


def matching_professionals(service_request: ServiceRequest):
    """Verified, active professionals offering the category and covering the area."""
    qs = (
        Professional.objects.filter(
            is_active=True,
            user__is_active=True,
            verification_status=Professional.VerificationStatus.VERIFIED,
            offerings__category=service_request.category,
            offerings__is_active=True,
        )
        .exclude(user=service_request.client)
        .select_related("user")
        .distinct()
    )
    if service_request.latitude is None or service_request.longitude is None:
        return list(qs)
    matched = []
    for professional in qs:
        if professional.latitude is None or professional.longitude is None:
            matched.append(professional)
            continue
        hits = within_radius(
            [professional],
            service_request.latitude,
            service_request.longitude,
            professional.service_radius_km,
            lambda p: (p.latitude, p.longitude),
        )
        if next(hits, None) is not None:
            matched.append(professional)
    return matched


def validate_preferred_schedule(preferred_date, preferred_time: str = "") -> None:
    today = timezone.localdate()
    if preferred_date < today:
        raise ValidationError(
            {"preferred_date": "Preferred date must be in the future."},
        )
    if preferred_date == today and preferred_time:
        now = timezone.localtime().strftime("%H:%M")
        if preferred_time <= now:
            raise ValidationError(
                {"preferred_time": "Preferred time must be in the future."},
            )


@transaction.atomic
def create_service_request(client, data: dict) -> ServiceRequest:
    validate_preferred_schedule(data["preferred_date"], data.get("preferred_time", ""))
    service_request = ServiceRequest.objects.create(client=client, **data)
    record_status(service_request, "", Status.PENDING, client, "Request created")

    professionals = matching_professionals(service_request)
    notify_many(
        [p.user for p in professionals],
        "new_service_request",
        context={
            "title": service_request.title,
            "category": service_request.get_category_display(),
            "city": service_request.address_city,
        },
        data={"service_request_id": service_request.pk},
        link=f"/services/{service_request.pk}",
    )
    log_action(
        "service_request_created",
        actor=client,
        target=service_request,
        after={"category": service_request.category, "title": service_request.title},
    )
    logger.info(
        "Service request %s created; %d professionals notified",
        service_request.pk,
        len(professionals),
    )
    return service_request


@transaction.atomic
def update_service_request(service_request: ServiceRequest, actor, data: dict):
    if service_request.client_id != actor.pk:
        msg = "Only the client who created the request can edit it."
        raise PermissionDenied(msg)
    if not service_request.is_open:
        msg = "Only pending or quoted requests can be edited."
        raise Conflict(msg)
    if "preferred_date" in data or "preferred_time" in data:
        validate_preferred_schedule(
            data.get("preferred_date", service_request.preferred_date),
            data.get("preferred_time", service_request.preferred_time),
        )
    for field, value in data.items():
        if field in EDITABLE_FIELDS:
            setattr(service_request, field, value)
    service_request.save()
    return service_request


def _other_party(service_request: ServiceRequest, actor):
    if actor.pk == service_request.client_id:
        professional = service_request.assigned_professional
        return professional.user if professional else None
    return service_request.client


@transaction.atomic
def cancel(service_request: ServiceRequest, actor, *, reason: str, note: str = ""):
    is_client = actor.pk == service_request.client_id
    professional = service_request.assigned_professional
    is_professional = bool(professional and professional.user_id == actor.pk)
    if not (is_client or is_professional or actor.is_admin_role):
        msg = "Only the client or the assigned professional can cancel."
        raise PermissionDenied(msg)

    transition(service_request, Status.CANCELLED, actor=actor, note=reason)
    service_request.cancellation_reason = reason
    service_request.cancellation_note = note
    service_request.cancelled_by = actor
    service_request.cancelled_at = timezone.now()
    service_request.save(
        update_fields=[
            "cancellation_reason",
            "cancellation_note",
            "cancelled_by",
            "cancelled_at",
            "updated_at",
        ],
    )
    service_request.quotes.filter(status=Quote.Status.PENDING).update(
        status=Quote.Status.REJECTED,
        responded_at=timezone.now(),
    )
    if professional is not None:
        Professional.objects.filter(pk=professional.pk).update(
            cancelled_jobs=F("cancelled_jobs") + 1,
        )

    recipient = _other_party(service_request, actor)
    if recipient is not None:
        notify(
            recipient,
            "service_cancelled",
            context={"title": service_request.title, "reason": reason},
            data={"service_request_id": service_request.pk},
            link=f"/services/{service_request.pk}",
        )
    chat_services.close_for_request(
        service_request,
        reason=chat_services.CloseReason.SERVICE_CANCELLED,
        actor=actor,
    )
    return service_request


def _require_assigned_professional(service_request: ServiceRequest, actor) -> None:
    professional = service_request.assigned_professional
    if not (professional and professional.user_id == actor.pk):
        msg = "Only the assigned professional can do this."
        raise PermissionDenied(msg)


def _announce(service_request: ServiceRequest, actor, template: str, **context):
    recipient = _other_party(service_request, actor)
    if recipient is not None:
        notify(
            recipient,
            template,
            context={"title": service_request.title, **context},
            data={"service_request_id": service_request.pk},
            link=f"/services/{service_request.pk}",
        )
    chat_services.post_service_update(
        service_request,
        f"Service status changed to {service_request.get_status_display()}.",
        {"status": service_request.status},
    )


@transaction.atomic
def confirm(service_request: ServiceRequest, actor):
    _require_assigned_professional(service_request, actor)
    transition(service_request, Status.CONFIRMED, actor=actor)
    _announce(service_request, actor, "service_confirmed")
    return service_request


@transaction.atomic
def start(service_request: ServiceRequest, actor):
    _require_assigned_professional(service_request, actor)
    transition(service_request, Status.IN_PROGRESS, actor=actor)
    service_request.actual_start = timezone.now()
    service_request.save(update_fields=["actual_start", "updated_at"])
    _announce(service_request, actor, "service_started")
    return service_request


@transaction.atomic
def complete(
    service_request: ServiceRequest,
    actor,
    *,
    notes: str = "",
    additional_costs: list | None = None,
):
    """Finish the job, or close a dispute on it again.

    Costs and the professional's job counters are settled once, on the first
    completion. Completing a disputed request only records the new status.
    """
    _require_assigned_professional(service_request, actor)
    first_completion = service_request.completed_at is None
    if additional_costs and not first_completion:
        msg = "Additional costs can only be added on the first completion."
        raise ValidationError({"additional_costs": msg})
    transition(service_request, Status.COMPLETED, actor=actor, note=notes)
    if not first_completion:
        _announce(
            service_request,
            actor,
            "service_completed",
            final_cost=service_request.final_cost,
        )
        return service_request

    now = timezone.now()
    service_request.actual_end = now
    service_request.completed_at = now
    service_request.completion_notes = notes
    if additional_costs:
        service_request.additional_costs = [
            *service_request.additional_costs,
            *additional_costs,
        ]
    service_request.calculate_final_cost()
    service_request.save()

    Professional.objects.filter(pk=service_request.assigned_professional_id).update(
        completed_jobs=F("completed_jobs") + 1,
        total_earnings=F("total_earnings") + service_request.professional_earnings,
    )
    _announce(
        service_request,
        actor,
        "service_completed",
        final_cost=service_request.final_cost,
    )
    return service_request


@transaction.atomic
def dispute(service_request: ServiceRequest, actor, *, reason: str):
    if not service_request.is_participant(actor):
        msg = "Only participants can open a dispute."
        raise PermissionDenied(msg)
    transition(service_request, Status.DISPUTED, actor=actor, note=reason)
    service_request.dispute_reason = reason
    service_request.save(update_fields=["dispute_reason", "updated_at"])
    _announce(service_request, actor, "service_disputed", reason=reason)
    log_action(
        "service_request_disputed",
        actor=actor,
        message=reason[:200],
        target=service_request,
    )
    return service_request


def nearby_open_requests(lat: float, lng: float, radius_km: float | None = None):
    radius = radius_km or settings.DEFAULT_SEARCH_RADIUS_KM
    qs = ServiceRequest.objects.filter(
        status__in=ServiceRequest.OPEN_STATUSES,
        latitude__isnull=False,
        longitude__isnull=False,
    ).select_related("client")
    rows = []
    for service_request, distance in within_radius(
        qs,
        lat,
        lng,
        radius,
        lambda r: (r.latitude, r.longitude),
    ):
        service_request.distance_km = distance
        rows.append(service_request)
    rows.sort(key=lambda r: r.distance_km)
    return rows


def scoped_queryset(user):
    qs = ServiceRequest.objects.select_related(
        "client",
        "assigned_professional__user",
    )
    if user.is_admin_role:
        return qs
    if user.is_professional:
        quoted = Quote.objects.filter(professional__user=user).values(
            "service_request_id",
        )
        return qs.filter(Q(assigned_professional__user=user) | Q(pk__in=quoted))
    return qs.filter(client=user)


def can_view(service_request: ServiceRequest, user) -> bool:
    if user.is_admin_role or service_request.is_participant(user):
        return True
    if not user.is_professional:
        return False
    if service_request.is_open:
        return True
    return service_request.quotes.filter(professional__user=user).exists()


def request_stats(user) -> dict:
    qs = scoped_queryset(user).order_by()
    by_status = dict(
        qs.values("status").annotate(n=Count("id")).values_list(
            "status",
            "n",
        ),
    )
    by_category = dict(
        qs.values("category").annotate(n=Count("id")).values_list(
            "category",
            "n",
        ),
    )
    completed = qs.filter(status=Status.COMPLETED)
    money = completed.aggregate(
        total=Sum("final_cost"),
        average=Avg("final_cost"),
        earnings=Sum("professional_earnings"),
    )
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_category": by_category,
        "completed_value": money["total"] or Decimal("0.00"),
        "average_final_cost": round(money["average"] or 0, 2),
        "professional_earnings": money["earnings"] or Decimal("0.00"),
        "overdue": sum(
            1
            for r in qs.filter(status__in=ServiceRequest.ACTIVE_STATUSES)
            if r.is_overdue
        ),
    }
