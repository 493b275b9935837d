from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError
from django.db import transaction
from django.db.models import Avg
from django.db.models import Count
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from proserv.core.api.exceptions import Conflict
from proserv.notifications.services import notify
from proserv.professionals.models import RATING_ASPECTS
from proserv.professionals.models import Professional
from proserv.reviews.models import Review
from proserv.reviews.models import ReviewFlag
from proserv.service_requests.models import ServiceRequest

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("rating", "aspects", "comment", "tags", "is_public")


def _refresh_rating(reviewee) -> None:
    professional = Professional.objects.filter(user=reviewee).first()
    if professional is not None:
        professional.recompute_rating()


def _parties(service_request: ServiceRequest, user):
    """Return ``(reviewer_type, reviewee)`` for ``user`` on ``service_request``."""
    professional = service_request.assigned_professional
    if service_request.client_id == user.pk:
        if professional is None:
            msg = "The service has no assigned professional."
            raise ValidationError(msg)
        return Review.ReviewerType.CLIENT, professional.user
    if professional is not None and professional.user_id == user.pk:
        return Review.ReviewerType.PROFESSIONAL, service_request.client
    msg = "Only participants of the service can review it."
    raise PermissionDenied(msg)


@transaction.atomic
def create_review(user, service_request: ServiceRequest, data: dict) -> Review:
    service_request = (
        ServiceRequest.objects.select_for_update()
        .select_related("client", "assigned_professional__user")
        .get(pk=service_request.pk)
    )
    reviewer_type, reviewee = _parties(service_request, user)
    if service_request.status != ServiceRequest.Status.COMPLETED:
        msg = "Only completed services can be reviewed."
        raise ValidationError(msg)
    requested = data.pop("reviewee", None)
    if requested is not None and requested.pk != reviewee.pk:
        raise ValidationError(
            {"reviewee": "The reviewee must be the other party of the service."},
        )
    if Review.objects.filter(service_request=service_request, reviewer=user).exists():
        msg = "You have already reviewed this service."
        raise Conflict(msg)

    try:
        with transaction.atomic():
            review = Review.objects.create(
                service_request=service_request,
                reviewer=user,
                reviewee=reviewee,
                reviewer_type=reviewer_type,
                **data,
            )
    except IntegrityError as exc:
        msg = "You have already reviewed this service."
        raise Conflict(msg) from exc

    if reviewer_type == Review.ReviewerType.CLIENT:
        service_request.client_review_submitted = True
        service_request.save(update_fields=["client_review_submitted", "updated_at"])
    else:
        service_request.professional_review_submitted = True
        service_request.save(
            update_fields=["professional_review_submitted", "updated_at"],
        )
    _refresh_rating(reviewee)
    notify(
        reviewee,
        "new_review",
        context={"reviewer": user.name or user.email, "rating": review.rating},
        data={"review_id": review.pk, "service_request_id": service_request.pk},
        link=f"/reviews/{review.pk}",
    )
    logger.info(
        "Review %s created for request %s by user %s",
        review.pk,
        service_request.pk,
        user.pk,
    )
    return review


def _within(review: Review, hours: int) -> bool:
    return timezone.now() - review.created_at < timedelta(hours=hours)


@transaction.atomic
def update_review(review: Review, user, data: dict) -> Review:
    if review.reviewer_id != user.pk:
        msg = "You can only edit your own reviews."
        raise PermissionDenied(msg)
    if not _within(review, settings.REVIEW_EDIT_WINDOW_HOURS):
        msg = "The edit window for this review has closed."
        raise PermissionDenied(msg)
    changes = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    if not changes:
        return review
    review.edit_history = [
        *review.edit_history,
        {
            "rating": review.rating,
            "aspects": review.aspects,
            "comment": review.comment,
            "edited_at": timezone.now().isoformat(),
        },
    ]
    for field, value in changes.items():
        setattr(review, field, value)
    review.is_edited = True
    review.save()
    _refresh_rating(review.reviewee)
    return review


@transaction.atomic
def delete_review(review: Review, user) -> None:
    if not user.is_admin_role:
        if review.reviewer_id != user.pk:
            msg = "You can only delete your own reviews."
            raise PermissionDenied(msg)
        if not _within(review, settings.REVIEW_DELETE_WINDOW_HOURS):
            msg = "The delete window for this review has closed."
            raise PermissionDenied(msg)
    review.status = Review.Status.DELETED
    review.save(update_fields=["status", "updated_at"])
    _refresh_rating(review.reviewee)
    logger.info("Review %s deleted by user %s", review.pk, user.pk)


@transaction.atomic
def respond(review: Review, user, text: str) -> Review:
    if review.reviewee_id != user.pk:
        msg = "Only the reviewed user can respond."
        raise PermissionDenied(msg)
    if review.response:
        msg = "This review already has a response."
        raise Conflict(msg)
    review.response = text
    review.responded_at = timezone.now()
    review.save(update_fields=["response", "responded_at", "updated_at"])
    notify(
        review.reviewer,
        "review_response",
        context={"reviewee": user.name or user.email},
        data={"review_id": review.pk},
        link=f"/reviews/{review.pk}",
    )
    return review


@transaction.atomic
def mark_helpful(review: Review, user) -> Review:
    if review.reviewer_id == user.pk:
        msg = "You cannot vote on your own review."
        raise ValidationError(msg)
    if review.helpful_by.filter(pk=user.pk).exists():
        msg = "You already marked this review as helpful."
        raise Conflict(msg)
    review.helpful_by.add(user)
    Review.objects.filter(pk=review.pk).update(helpful_votes=F("helpful_votes") + 1)
    review.refresh_from_db(fields=["helpful_votes"])
    return review


@transaction.atomic
def unmark_helpful(review: Review, user) -> Review:
    if not review.helpful_by.filter(pk=user.pk).exists():
        msg = "You have not marked this review as helpful."
        raise ValidationError(msg)
    review.helpful_by.remove(user)
    Review.objects.filter(pk=review.pk, helpful_votes__gt=0).update(
        helpful_votes=F("helpful_votes") - 1,
    )
    review.refresh_from_db(fields=["helpful_votes"])
    return review


@transaction.atomic
def flag(review: Review, user, reason: str, description: str = "") -> ReviewFlag:
    """Report ``review``; enough reports take it out of the public listing."""
    if review.reviewer_id == user.pk:
        msg = "You cannot report your own review."
        raise ValidationError(msg)
    if ReviewFlag.objects.filter(review=review, reported_by=user).exists():
        msg = "You already reported this review."
        raise Conflict(msg)
    report = ReviewFlag.objects.create(
        review=review,
        reported_by=user,
        reason=reason,
        description=description,
    )
    open_reports = review.flags.filter(status=ReviewFlag.Status.PENDING).count()
    if (
        review.status == Review.Status.ACTIVE
        and open_reports >= settings.REVIEW_FLAG_THRESHOLD
    ):
        review.status = Review.Status.FLAGGED
        review.save(update_fields=["status", "updated_at"])
        _refresh_rating(review.reviewee)
        logger.warning("Review %s flagged after %s reports", review.pk, open_reports)
    return report


@transaction.atomic
def moderate(review: Review, actor, status: str, notes: str = "") -> Review:
    review.status = status
    if notes:
        review.admin_notes = notes
    review.save(update_fields=["status", "admin_notes", "updated_at"])
    review.flags.filter(status=ReviewFlag.Status.PENDING).update(
        status=ReviewFlag.Status.RESOLVED,
    )
    _refresh_rating(review.reviewee)
    logger.info("Review %s moderated to %s by user %s", review.pk, status, actor.pk)
    return review


def summary(qs) -> dict:
    totals = qs.order_by().aggregate(average=Avg("rating"), total=Count("id"))
    return {
        "average": round(totals["average"] or 0, 2),
        "total": totals["total"],
    }


def review_stats(user, reviewer_type: str | None = None) -> dict:
    qs = Review.objects.visible().filter(reviewee=user)
    if reviewer_type:
        qs = qs.filter(reviewer_type=reviewer_type)
    counts = dict(
        qs.order_by()
        .values("rating")
        .annotate(n=Count("id"))
        .values_list("rating", "n"),
    )
    aspects = {}
    rows = list(qs.values_list("aspects", flat=True))
    for aspect in RATING_ASPECTS:
        scores = [a[aspect] for a in rows if a and a.get(aspect)]
        aspects[aspect] = round(sum(scores) / len(scores), 2) if scores else 0
    return {
        **summary(qs),
        "distribution": {str(star): counts.get(star, 0) for star in range(1, 6)},
        "aspects": aspects,
        "with_response": qs.exclude(response="").count(),
    }


def pending_reviews(user):
    """Completed requests where ``user`` still owes a review."""
    completed = ServiceRequest.objects.filter(
        status=ServiceRequest.Status.COMPLETED,
    ).select_related("client", "assigned_professional__user")
    if user.is_professional:
        return completed.filter(
            assigned_professional__user=user,
            professional_review_submitted=False,
        )
    return completed.filter(client=user, client_review_submitted=False)
