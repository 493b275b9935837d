from __future__ import annotations

from datetime import datetime
from datetime import time
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.conf import settings
from django.core.validators import MaxValueValidator
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
RATING_ASPECTS = ("punctuality", "quality", "communication", "value")
TOP_RATED_MIN_REVIEWS = 5


class ServiceCategory(models.TextChoices):
    HOME_SERVICES = "home_services", _("Home services")
    TECHNICAL_SERVICES = "technical_services", _("Technical services")
    PROFESSIONAL_SERVICES = "professional_services", _("Professional services")
    BEAUTY_WELLNESS = "beauty_wellness", _("Beauty and wellness")
    AUTOMOTIVE = "automotive", _("Automotive")
    EDUCATION = "education", _("Education")
    HEALTH = "health", _("Health")
    CLEANING = "cleaning", _("Cleaning")
    OTHER = "other", _("Other")


def default_availability() -> dict:
    weekday = {"available": True, "start": "09:00", "end": "18:00"}
    weekend = {"available": False, "start": "10:00", "end": "16:00"}
    return {
        day: dict(weekend if day in ("saturday", "sunday") else weekday)
        for day in WEEKDAYS
    }


def default_rating_breakdown() -> dict:
    return dict.fromkeys(RATING_ASPECTS, 0)


def default_professional_preferences() -> dict:
    return {
        "instant_booking": False,
        "advance_notice_hours": 24,
        "max_daily_jobs": 5,
    }


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


class Professional(models.Model):
    class VerificationStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        IN_REVIEW = "in_review", _("In review")
        VERIFIED = "verified", _("Verified")
        REJECTED = "rejected", _("Rejected")

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="professional_profile",
    )
    business_name = models.CharField(max_length=200, blank=True)
    description = models.TextField(blank=True, max_length=2000)
    years_of_experience = models.PositiveSmallIntegerField(default=0)
    website = models.URLField(blank=True)

    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    service_radius_km = models.PositiveSmallIntegerField(
        default=25,
        validators=[MinValueValidator(1), MaxValueValidator(100)],
    )

    availability = models.JSONField(default=default_availability)
    time_zone = models.CharField(max_length=64, default="America/Bogota")
    preferences = models.JSONField(default=default_professional_preferences)

    rating_average = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    rating_count = models.PositiveIntegerField(default=0)
    rating_breakdown = models.JSONField(default=default_rating_breakdown)

    total_jobs = models.PositiveIntegerField(default=0)
    completed_jobs = models.PositiveIntegerField(default=0)
    cancelled_jobs = models.PositiveIntegerField(default=0)
    total_earnings = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    verification_status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
    )
    verification_notes = models.TextField(blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-rating_average", "-rating_count"]

    def __str__(self) -> str:
        return self.business_name or self.user.name or self.user.email

    @property
    def is_verified(self) -> bool:
        return self.verification_status == self.VerificationStatus.VERIFIED

    @property
    def is_top_rated(self) -> bool:
        return (
            self.is_verified
            and self.rating_count >= TOP_RATED_MIN_REVIEWS
            and self.rating_average >= Decimal("4.50")
        )

    @property
    def completion_rate(self) -> float:
        if not self.total_jobs:
            return 0.0
        return round(self.completed_jobs / self.total_jobs * 100, 2)

    def categories(self) -> set[str]:
        return set(
            self.offerings.filter(is_active=True).values_list("category", flat=True),
        )

    def is_available_at(self, moment: datetime) -> bool:
        """Whether the weekly schedule (or a dated exception) covers ``moment``."""
        local = timezone.localtime(moment, ZoneInfo(self.time_zone))
        exception = self.availability_exceptions.filter(date=local.date()).first()
        if exception is not None:
            if not exception.is_available:
                return False
            if exception.start_time and exception.end_time:
                return exception.start_time <= local.time() < exception.end_time
            return True

        day = (self.availability or {}).get(WEEKDAYS[local.weekday()]) or {}
        if not day.get("available"):
            return False
        start = parse_hhmm(day.get("start", "00:00"))
        end = parse_hhmm(day.get("end", "23:59"))
        return start <= local.time() < end

    def recompute_rating(self) -> None:
        """Refresh average, count and per-aspect averages from visible reviews."""
        from proserv.reviews.models import Review  # noqa: PLC0415

        reviews = list(
            Review.objects.visible()
            .filter(reviewee=self.user)
            .values_list("rating", "aspects"),
        )
        self.rating_count = len(reviews)
        if not reviews:
            self.rating_average = Decimal("0.00")
            self.rating_breakdown = default_rating_breakdown()
        else:
            total = sum(rating for rating, _ in reviews)
            self.rating_average = (Decimal(total) / len(reviews)).quantize(
                Decimal("0.01"),
            )
            breakdown = {}
            for aspect in RATING_ASPECTS:
                scores = [a[aspect] for _, a in reviews if a and a.get(aspect)]
                breakdown[aspect] = (
                    round(sum(scores) / len(scores), 2) if scores else 0
                )
            self.rating_breakdown = breakdown
        self.save(
            update_fields=[
                "rating_average",
                "rating_count",
                "rating_breakdown",
                "updated_at",
            ],
        )


class ServiceOffering(models.Model):
    class PricingType(models.TextChoices):
        FIXED = "fixed", _("Fixed")
        HOURLY = "hourly", _("Hourly")
        QUOTE = "quote", _("On quote")

    professional = models.ForeignKey(
        Professional,
        on_delete=models.CASCADE,
        related_name="offerings",
    )
    category = models.CharField(max_length=32, choices=ServiceCategory.choices)
    subcategory = models.CharField(max_length=100, blank=True)
    title = models.CharField(max_length=150)
    description = models.TextField(blank=True, max_length=1000)
    pricing_type = models.CharField(
        max_length=10,
        choices=PricingType.choices,
        default=PricingType.QUOTE,
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    currency = models.CharField(max_length=3, default="COP")
    unit = models.CharField(max_length=30, blank=True)
    estimated_duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category", "title"]

    def __str__(self) -> str:
        return f"{self.title} ({self.get_category_display()})"


class Credential(models.Model):
    """A document submitted for professional verification."""

    class DocumentType(models.TextChoices):
        ID_DOCUMENT = "id_document", _("Identity document")
        LICENSE = "professional_license", _("Professional license")
        CERTIFICATION = "certification", _("Certification")
        INSURANCE = "insurance", _("Insurance")
        BACKGROUND_CHECK = "background_check", _("Background check")
        OTHER = "other", _("Other")

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    professional = models.ForeignKey(
        Professional,
        on_delete=models.CASCADE,
        related_name="credentials",
    )
    document_type = models.CharField(max_length=32, choices=DocumentType.choices)
    document_number = models.CharField(max_length=100, blank=True)
    issuing_authority = models.CharField(max_length=200, blank=True)
    document_url = models.URLField(max_length=500)
    issued_at = models.DateField(null=True, blank=True)
    expires_at = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.get_document_type_display()} for {self.professional_id}"


class AvailabilityException(models.Model):
    """Overrides the weekly schedule on a given date (holiday, extra shift)."""

    professional = models.ForeignKey(
        Professional,
        on_delete=models.CASCADE,
        related_name="availability_exceptions",
    )
    date = models.DateField()
    is_available = models.BooleanField(default=False)
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    reason = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ["date"]
        constraints = [
            models.UniqueConstraint(
                fields=["professional", "date"],
                name="unique_availability_exception_per_day",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.professional_id} @ {self.date}"
