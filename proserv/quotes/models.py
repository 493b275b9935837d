from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from proserv.service_requests.models import hhmm_validator


def default_valid_until():
    return timezone.now() + timedelta(days=settings.QUOTE_VALIDITY_DAYS)


class Quote(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        ACCEPTED = "accepted", _("Accepted")
        REJECTED = "rejected", _("Rejected")
        WITHDRAWN = "withdrawn", _("Withdrawn")
        EXPIRED = "expired", _("Expired")

    service_request = models.ForeignKey(
        "service_requests.ServiceRequest",
        on_delete=models.CASCADE,
        related_name="quotes",
    )
    professional = models.ForeignKey(
        "professionals.Professional",
        on_delete=models.CASCADE,
        related_name="quotes",
    )
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    currency = models.CharField(max_length=3, default="COP")
    description = models.TextField(max_length=1000)
    estimated_duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    available_date = models.DateField(null=True, blank=True)
    available_time = models.CharField(
        max_length=5,
        blank=True,
        validators=[hhmm_validator],
    )
    materials = models.JSONField(default=list, blank=True)
    warranty_days = models.PositiveIntegerField(default=0)
    terms = models.TextField(blank=True, max_length=1000)
    valid_until = models.DateTimeField(default=default_valid_until)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    rejection_reason = models.CharField(max_length=500, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["service_request", "professional"],
                condition=~Q(status="withdrawn"),
                name="one_live_quote_per_professional",
            ),
        ]

    def __str__(self) -> str:
        return f"Quote {self.pk} on request {self.service_request_id}"

    @property
    def is_expired(self) -> bool:
        return self.status == self.Status.EXPIRED or (
            self.status == self.Status.PENDING and self.valid_until < timezone.now()
        )

    def materials_total(self) -> Decimal:
        return sum(
            (
                Decimal(str(m.get("cost", 0))) * Decimal(str(m.get("quantity", 1)))
                for m in self.materials
            ),
            Decimal("0.00"),
        )
