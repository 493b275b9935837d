from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Avg
from django.db.models import Count
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from proserv.chat import services as chat_services
from proserv.core.api.exceptions import Conflict
from proserv.notifications.services import notify
from proserv.professionals.models import Professional
from proserv.quotes.models import Quote
from proserv.service_requests import services as request_services
from proserv.service_requests.models import ServiceRequest

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "price",
    "description",
    "estimated_duration_minutes",
    "available_date",
    "available_time",
    "materials",
    "warranty_days",
    "terms",
    "valid_until",
)


def _professional_for(user) -> Professional:
    profile = getattr(user, "professional_profile", None)
    if profile is None:
        msg = "Only professionals can send quotes."
        raise PermissionDenied(msg)
    return profile


def _check_valid_until(valid_until) -> None:
    if valid_until is not None and valid_until <= timezone.now():
        raise ValidationError({"valid_until": "Must be in the future."})


@transaction.atomic
def send_quote(user, service_request: ServiceRequest, data: dict) -> Quote:
    professional = _professional_for(user)
    if not professional.is_verified:
        msg = "Only verified professionals can send quotes."
        raise PermissionDenied(msg)
    if service_request.category not in professional.categories():
        msg = "You do not offer services in this category."
        raise PermissionDenied(msg)
    if service_request.client_id == user.pk:
        msg = "You cannot quote your own request."
        raise PermissionDenied(msg)

    # Lock the request row so two quotes cannot race the status change.
    service_request = ServiceRequest.objects.select_for_update().get(
        pk=service_request.pk,
    )
    if not service_request.is_open:
        msg = "This request is no longer accepting quotes."
        raise Conflict(msg)
    if (
        Quote.objects.filter(service_request=service_request, professional=professional)
        .exclude(status=Quote.Status.WITHDRAWN)
        .exists()
    ):
        msg = "You already sent a quote for this request."
        raise Conflict(msg)
    _check_valid_until(data.get("valid_until"))

    quote = Quote.objects.create(
        service_request=service_request,
        professional=professional,
        currency=service_request.currency,
        **data,
    )
    if service_request.status == ServiceRequest.Status.PENDING:
        request_services.transition(
            service_request,
            ServiceRequest.Status.QUOTED,
            actor=user,
            note=f"Quote {quote.pk} received",
        )
    notify(
        service_request.client,
        "new_quote",
        context={
            "professional": str(professional),
            "title": service_request.title,
            "price": quote.price,
        },
        data={"service_request_id": service_request.pk, "quote_id": quote.pk},
        link=f"/services/{service_request.pk}/quotes",
    )
    logger.info(
        "Quote %s sent by professional %s for request %s",
        quote.pk,
        professional.pk,
        service_request.pk,
    )
    return quote


def _require_own_pending(quote: Quote, user) -> None:
    if quote.professional.user_id != user.pk:
        msg = "You can only modify your own quotes."
        raise PermissionDenied(msg)
    if quote.status != Quote.Status.PENDING:
        msg = f"A {quote.status} quote cannot be modified."
        raise Conflict(msg)


@transaction.atomic
def update_quote(quote: Quote, user, data: dict) -> Quote:
    _require_own_pending(quote, user)
    if not quote.service_request.is_open:
        msg = "The request is no longer accepting quotes."
        raise Conflict(msg)
    _check_valid_until(data.get("valid_until"))
    for field, value in data.items():
        if field in UPDATABLE_FIELDS:
            setattr(quote, field, value)
    quote.save()
    notify(
        quote.service_request.client,
        "quote_updated",
        context={"professional": str(quote.professional), "price": quote.price},
        data={"service_request_id": quote.service_request_id, "quote_id": quote.pk},
        link=f"/services/{quote.service_request_id}/quotes",
    )
    return quote


@transaction.atomic
def withdraw(quote: Quote, user) -> Quote:
    _require_own_pending(quote, user)
    quote.status = Quote.Status.WITHDRAWN
    quote.responded_at = timezone.now()
    quote.save(update_fields=["status", "responded_at", "updated_at"])

    service_request = quote.service_request
    still_quoted = service_request.quotes.filter(status=Quote.Status.PENDING).exists()
    if service_request.status == ServiceRequest.Status.QUOTED and not still_quoted:
        request_services.transition(
            service_request,
            ServiceRequest.Status.PENDING,
            actor=user,
            note="All quotes withdrawn",
        )
    logger.info("Quote %s withdrawn", quote.pk)
    return quote


def _require_request_owner(quote: Quote, user) -> None:
    if quote.service_request.client_id != user.pk:
        msg = "Only the client who created the request can respond to quotes."
        raise PermissionDenied(msg)


@transaction.atomic
def accept(quote: Quote, user) -> Quote:
    """Accept ``quote``: assign the professional and reject competing quotes."""
    _require_request_owner(quote, user)
    if quote.status != Quote.Status.PENDING:
        msg = f"A {quote.status} quote cannot be accepted."
        raise Conflict(msg)
    if quote.is_expired:
        msg = "This quote has expired."
        raise Conflict(msg)

    service_request = ServiceRequest.objects.select_for_update().get(
        pk=quote.service_request_id,
    )
    if not service_request.is_open:
        msg = "This request already has an accepted quote or is closed."
        raise Conflict(msg)

    now = timezone.now()
    quote.status = Quote.Status.ACCEPTED
    quote.responded_at = now
    quote.save(update_fields=["status", "responded_at", "updated_at"])

    service_request.assigned_professional = quote.professional
    service_request.quoted_cost = quote.price
    if quote.estimated_duration_minutes:
        service_request.estimated_duration_minutes = quote.estimated_duration_minutes
    service_request.save()
    request_services.transition(
        service_request,
        ServiceRequest.Status.ACCEPTED,
        actor=user,
        note=f"Quote {quote.pk} accepted",
    )
    Professional.objects.filter(pk=quote.professional_id).update(
        total_jobs=F("total_jobs") + 1,
    )

    losing = list(
        service_request.quotes.filter(status=Quote.Status.PENDING)
        .exclude(pk=quote.pk)
        .select_related("professional__user"),
    )
    service_request.quotes.filter(pk__in=[q.pk for q in losing]).update(
        status=Quote.Status.REJECTED,
        responded_at=now,
        rejection_reason="Another quote was accepted",
    )
    for other in losing:
        notify(
            other.professional.user,
            "quote_rejected",
            context={"title": service_request.title},
            data={"service_request_id": service_request.pk, "quote_id": other.pk},
        )

    chat_services.open_service_chat(service_request)
    notify(
        quote.professional.user,
        "quote_accepted",
        context={"title": service_request.title, "price": quote.price},
        data={"service_request_id": service_request.pk, "quote_id": quote.pk},
        link=f"/services/{service_request.pk}",
    )
    logger.info(
        "Quote %s accepted for request %s (%d others rejected)",
        quote.pk,
        service_request.pk,
        len(losing),
    )
    return quote


@transaction.atomic
def reject(quote: Quote, user, reason: str = "") -> Quote:
    _require_request_owner(quote, user)
    if quote.status != Quote.Status.PENDING:
        msg = f"A {quote.status} quote cannot be rejected."
        raise Conflict(msg)
    quote.status = Quote.Status.REJECTED
    quote.rejection_reason = reason
    quote.responded_at = timezone.now()
    quote.save(
        update_fields=["status", "rejection_reason", "responded_at", "updated_at"],
    )
    notify(
        quote.professional.user,
        "quote_rejected",
        context={"title": quote.service_request.title},
        data={"service_request_id": quote.service_request_id, "quote_id": quote.pk},
    )
    return quote


def scoped_queryset(user):
    qs = Quote.objects.select_related("professional__user", "service_request")
    if user.is_admin_role:
        return qs
    if user.is_professional:
        return qs.filter(professional__user=user)
    return qs.filter(service_request__client=user)


def quote_stats(user) -> dict:
    qs = scoped_queryset(user).order_by()
    by_status = dict(
        qs.values("status").annotate(n=Count("id")).values_list("status", "n"),
    )
    total = sum(by_status.values())
    accepted = by_status.get(Quote.Status.ACCEPTED, 0)
    decided = accepted + by_status.get(Quote.Status.REJECTED, 0)
    return {
        "total": total,
        "by_status": by_status,
        "acceptance_rate": round(accepted / decided * 100, 2) if decided else 0,
        "average_price": round(qs.aggregate(avg=Avg("price"))["avg"] or 0, 2),
    }


def expire_stale_quotes() -> int:
    return Quote.objects.filter(
        status=Quote.Status.PENDING,
        valid_until__lt=timezone.now(),
    ).update(status=Quote.Status.EXPIRED, updated_at=timezone.now())
