from django.conf import settings
from django.core.validators import MaxLengthValidator
from django.core.validators import MaxValueValidator
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class ReviewQuerySet(models.QuerySet):
    def visible(self):
        return self.filter(status=Review.Status.ACTIVE, is_public=True)


class Review(models.Model):
    """A rating left by one party of a completed service request for the other."""

    class ReviewerType(models.TextChoices):
        CLIENT = "client", _("Client")
        PROFESSIONAL = "professional", _("Professional")

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        HIDDEN = "hidden", _("Hidden")
        FLAGGED = "flagged", _("Flagged")
        DELETED = "deleted", _("Deleted")

    service_request = models.ForeignKey(
        "service_requests.ServiceRequest",
        on_delete=models.CASCADE,
        related_name="reviews",
    )
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reviews_given",
    )
    reviewee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reviews_received",
    )
    reviewer_type = models.CharField(max_length=15, choices=ReviewerType.choices)
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    aspects = models.JSONField(default=dict, blank=True)
    comment = models.TextField(blank=True, validators=[MaxLengthValidator(1000)])
    tags = models.JSONField(default=list, blank=True)
    is_public = models.BooleanField(default=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    admin_notes = models.CharField(max_length=500, blank=True)

    response = models.TextField(blank=True, validators=[MaxLengthValidator(500)])
    responded_at = models.DateTimeField(null=True, blank=True)

    helpful_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="helpful_reviews",
        blank=True,
    )
    helpful_votes = models.PositiveIntegerField(default=0)

    is_edited = models.BooleanField(default=False)
    edit_history = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReviewQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["service_request", "reviewer"],
                name="one_review_per_request_and_reviewer",
            ),
            models.CheckConstraint(
                condition=~models.Q(reviewer=models.F("reviewee")),
                name="reviewer_is_not_reviewee",
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=1, rating__lte=5),
                name="rating_between_1_and_5",
            ),
        ]
        indexes = [
            models.Index(
                fields=["reviewee", "status"],
                name="review_reviewee_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.rating}/5 by {self.reviewer_id} for {self.reviewee_id}"

    @property
    def aspects_average(self) -> float | None:
        scores = [v for v in (self.aspects or {}).values() if v]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 1)


class ReviewFlag(models.Model):
    class Reason(models.TextChoices):
        INAPPROPRIATE = "inappropriate_content", _("Inappropriate content")
        FAKE = "fake_review", _("Fake review")
        SPAM = "spam", _("Spam")
        HARASSMENT = "harassment", _("Harassment")
        DISCRIMINATION = "discrimination", _("Discrimination")
        OTHER = "other", _("Other")

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        REVIEWED = "reviewed", _("Reviewed")
        RESOLVED = "resolved", _("Resolved")

    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name="flags")
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="review_flags",
    )
    reason = models.CharField(max_length=30, choices=Reason.choices)
    description = models.CharField(max_length=500, blank=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["review", "reported_by"],
                name="one_flag_per_user_and_review",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.reason} on review {self.review_id}"
