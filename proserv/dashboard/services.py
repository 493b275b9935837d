"""Aggregates behind the administration dashboard."""

from __future__ import annotations

from datetime import timedelta

from django.db.models import Avg
from django.db.models import Count
from django.db.models.functions import TruncMonth
from django.utils import timezone

from proserv.audit.models import AuditLog
from proserv.payments.models import Payment
from proserv.payments.services import payment_stats
from proserv.professionals.models import Professional
from proserv.reviews.models import Review
from proserv.service_requests.models import ServiceRequest
from proserv.users.models import User

ACTIVITY_MONTHS = 6
ACTIVE_USER_DAYS = 30
RECENT_ACTIONS = 10


def _counts(qs, field: str) -> dict:
    return dict(
        qs.order_by().values(field).annotate(n=Count("id")).values_list(field, "n"),
    )


def monthly_signups(months: int = ACTIVITY_MONTHS) -> list[dict]:
    since = timezone.now() - timedelta(days=31 * months)
    users = _counts(
        User.objects.exclude(role=User.Role.ADMIN)
        .filter(date_joined__gte=since)
        .annotate(month=TruncMonth("date_joined")),
        "month",
    )
    professionals = _counts(
        Professional.objects.filter(created_at__gte=since).annotate(
            month=TruncMonth("created_at"),
        ),
        "month",
    )
    return [
        {
            "date": month.strftime("%Y-%m"),
            "users": users.get(month, 0),
            "professionals": professionals.get(month, 0),
        }
        for month in sorted(set(users) | set(professionals))
    ]


def overview() -> dict:
    users = User.objects.exclude(role=User.Role.ADMIN)
    active_since = timezone.now() - timedelta(days=ACTIVE_USER_DAYS)
    requests = ServiceRequest.objects.all()
    return {
        "users": {
            "total": users.count(),
            "active": users.filter(is_active=True).count(),
            "recently_active": requests.filter(created_at__gte=active_since)
            .order_by()
            .values("client")
            .distinct()
            .count(),
            "by_role": _counts(User.objects.all(), "role"),
        },
        "professionals": {
            "total": Professional.objects.count(),
            "by_verification": _counts(
                Professional.objects.all(),
                "verification_status",
            ),
        },
        "service_requests": {
            "total": requests.count(),
            "by_status": _counts(requests, "status"),
            "by_category": _counts(requests, "category"),
        },
        "payments": payment_stats(Payment.objects.all()),
        "reviews": {
            "total": Review.objects.visible().count(),
            "average_rating": round(
                Review.objects.visible().aggregate(avg=Avg("rating"))["avg"] or 0,
                2,
            ),
        },
    }


def dashboard() -> dict:
    data = overview()
    data["activity"] = monthly_signups()
    data["recent_actions"] = list(
        AuditLog.objects.select_related("actor")
        .values("id", "action", "message", "actor__email", "created_at")[
            :RECENT_ACTIONS
        ],
    )
    return data
