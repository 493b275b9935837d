from __future__ import annotations

from datetime import datetime
from datetime import time
from decimal import ROUND_HALF_UP
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.conf import settings
from django.core.validators import MinValueValidator
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from proserv.professionals.models import ServiceCategory

CENT = Decimal("0.01")
hhmm_validator = RegexValidator(
    r"^([01]\d|2[0-3]):[0-5]\d$",
    "Time must use the HH:MM format.",
)


class ServiceRequest(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        QUOTED = "quoted", _("Quoted")
        ACCEPTED = "accepted", _("Accepted")
        CONFIRMED = "confirmed", _("Confirmed")
        IN_PROGRESS = "in_progress", _("In progress")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")
        DISPUTED = "disputed", _("Disputed")

    class Urgency(models.TextChoices):
        LOW = "low", _("Low")
        MEDIUM = "medium", _("Medium")
        HIGH = "high", _("High")
        EMERGENCY = "emergency", _("Emergency")

    class Flexibility(models.TextChoices):
        STRICT = "strict", _("Strict")
        FLEXIBLE = "flexible", _("Flexible")
        ASAP = "asap", _("As soon as possible")

    class CancellationReason(models.TextChoices):
        CLIENT_REQUEST = "client_request", _("Client request")
        PROFESSIONAL_UNAVAILABLE = "professional_unavailable", _(
            "Professional unavailable",
        )
        WEATHER = "weather_conditions", _("Weather conditions")
        EMERGENCY = "emergency", _("Emergency")
        PAYMENT_ISSUES = "payment_issues", _("Payment issues")
        OTHER = "other", _("Other")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        PAID = "paid", _("Paid")
        REFUNDED = "refunded", _("Refunded")

    OPEN_STATUSES = (Status.PENDING, Status.QUOTED)
    ACTIVE_STATUSES = (Status.ACCEPTED, Status.CONFIRMED, Status.IN_PROGRESS)
    PAYABLE_STATUSES = (
        Status.ACCEPTED,
        Status.CONFIRMED,
        Status.IN_PROGRESS,
        Status.COMPLETED,
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="service_requests",
    )
    assigned_professional = models.ForeignKey(
        "professionals.Professional",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_requests",
    )
    category = models.CharField(max_length=32, choices=ServiceCategory.choices)
    subcategory = models.CharField(max_length=100, blank=True)
    title = models.CharField(max_length=150)
    description = models.TextField(max_length=2000)
    urgency = models.CharField(
        max_length=10,
        choices=Urgency.choices,
        default=Urgency.MEDIUM,
    )
    requirements = models.JSONField(default=list, blank=True)

    address_street = models.CharField(max_length=255)
    address_city = models.CharField(max_length=100)
    address_state = models.CharField(max_length=100, blank=True)
    address_zip_code = models.CharField(max_length=20, blank=True)
    address_notes = models.CharField(max_length=255, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    preferred_date = models.DateField()
    preferred_time = models.CharField(
        max_length=5,
        blank=True,
        validators=[hhmm_validator],
    )
    flexibility = models.CharField(
        max_length=10,
        choices=Flexibility.choices,
        default=Flexibility.FLEXIBLE,
    )
    estimated_duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    actual_start = models.DateTimeField(null=True, blank=True)
    actual_end = models.DateTimeField(null=True, blank=True)

    estimated_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    quoted_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    final_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    currency = models.CharField(max_length=3, default="COP")
    additional_costs = models.JSONField(default=list, blank=True)
    platform_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    professional_earnings = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    payment_method = models.CharField(max_length=20, blank=True)
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    cancellation_reason = models.CharField(
        max_length=32,
        choices=CancellationReason.choices,
        blank=True,
    )
    cancellation_note = models.TextField(blank=True, max_length=500)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completion_notes = models.TextField(blank=True, max_length=1000)
    completed_at = models.DateTimeField(null=True, blank=True)
    dispute_reason = models.TextField(blank=True, max_length=1000)

    client_review_submitted = models.BooleanField(default=False)
    professional_review_submitted = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["category", "status"],
                name="request_category_status_idx",
            ),
            models.Index(fields=["client", "status"], name="request_client_status_idx"),
        ]

    def __str__(self) -> str:
        return f"#{self.pk} {self.title}"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def preferred_datetime(self) -> datetime:
        hours, minutes = (self.preferred_time or "00:00").split(":")
        return datetime.combine(
            self.preferred_date,
            time(int(hours), int(minutes)),
            tzinfo=ZoneInfo(settings.TIME_ZONE),
        )

    @property
    def is_overdue(self) -> bool:
        if self.status not in self.ACTIVE_STATUSES:
            return False
        return self.preferred_datetime < timezone.now()

    @property
    def actual_duration_minutes(self) -> int | None:
        if not (self.actual_start and self.actual_end):
            return None
        return int((self.actual_end - self.actual_start).total_seconds() // 60)

    def additional_costs_total(self) -> Decimal:
        return sum(
            (Decimal(str(item.get("amount", 0))) for item in self.additional_costs),
            Decimal("0.00"),
        )

    def calculate_final_cost(self) -> Decimal:
        """Set final cost and the platform / professional split from the price."""
        base = self.quoted_cost or self.estimated_cost or Decimal("0.00")
        total = (Decimal(base) + self.additional_costs_total()).quantize(CENT)
        rate = Decimal(str(settings.PLATFORM_COMMISSION_RATE))
        fee = (total * rate).quantize(CENT, rounding=ROUND_HALF_UP)
        self.final_cost = total
        self.platform_fee = fee
        self.professional_earnings = total - fee
        return total

    def is_participant(self, user) -> bool:
        if user.pk == self.client_id:
            return True
        professional = self.assigned_professional
        return bool(professional and professional.user_id == user.pk)


class StatusHistory(models.Model):
    service_request = models.ForeignKey(
        ServiceRequest,
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    note = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "pk"]
        verbose_name_plural = "status history"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.service_request_id}: {self.from_status} -> {self.to_status}"
