import django.core.validators
import django.db.models.deletion
from decimal import Decimal

from django.conf import settings
from django.db import migrations
from django.db import models

CATEGORY_CHOICES = [
    ("home_services", "Home services"),
    ("technical_services", "Technical services"),
    ("professional_services", "Professional services"),
    ("beauty_wellness", "Beauty and wellness"),
    ("automotive", "Automotive"),
    ("education", "Education"),
    ("health", "Health"),
    ("cleaning", "Cleaning"),
    ("other", "Other"),
]

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("quoted", "Quoted"),
    ("accepted", "Accepted"),
    ("confirmed", "Confirmed"),
    ("in_progress", "In progress"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("disputed", "Disputed"),
]


def _id():
    return models.BigAutoField(
        auto_created=True,
        primary_key=True,
        serialize=False,
        verbose_name="ID",
    )


def _money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=12, **kwargs)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("professionals", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ServiceRequest",
            fields=[
                ("id", _id()),
                ("category", models.CharField(choices=CATEGORY_CHOICES, max_length=32)),
                ("subcategory", models.CharField(blank=True, max_length=100)),
                ("title", models.CharField(max_length=150)),
                ("description", models.TextField(max_length=2000)),
                (
                    "urgency",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("emergency", "Emergency"),
                        ],
                        default="medium",
                        max_length=10,
                    ),
                ),
                ("requirements", models.JSONField(blank=True, default=list)),
                ("address_street", models.CharField(max_length=255)),
                ("address_city", models.CharField(max_length=100)),
                ("address_state", models.CharField(blank=True, max_length=100)),
                ("address_zip_code", models.CharField(blank=True, max_length=20)),
                ("address_notes", models.CharField(blank=True, max_length=255)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("preferred_date", models.DateField()),
                (
                    "preferred_time",
                    models.CharField(
                        blank=True,
                        max_length=5,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^([01]\\d|2[0-3]):[0-5]\\d$",
                                "Time must use the HH:MM format.",
                            ),
                        ],
                    ),
                ),
                (
                    "flexibility",
                    models.CharField(
                        choices=[
                            ("strict", "Strict"),
                            ("flexible", "Flexible"),
                            ("asap", "As soon as possible"),
                        ],
                        default="flexible",
                        max_length=10,
                    ),
                ),
                (
                    "estimated_duration_minutes",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                ("actual_start", models.DateTimeField(blank=True, null=True)),
                ("actual_end", models.DateTimeField(blank=True, null=True)),
                (
                    "estimated_cost",
                    _money(
                        blank=True,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                        ],
                    ),
                ),
                ("quoted_cost", _money(blank=True, null=True)),
                ("final_cost", _money(blank=True, null=True)),
                ("currency", models.CharField(default="COP", max_length=3)),
                ("additional_costs", models.JSONField(blank=True, default=list)),
                ("platform_fee", _money(default=Decimal("0.00"))),
                ("professional_earnings", _money(default=Decimal("0.00"))),
                ("payment_method", models.CharField(blank=True, max_length=20)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "cancellation_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("client_request", "Client request"),
                            ("professional_unavailable", "Professional unavailable"),
                            ("weather_conditions", "Weather conditions"),
                            ("emergency", "Emergency"),
                            ("payment_issues", "Payment issues"),
                            ("other", "Other"),
                        ],
                        max_length=32,
                    ),
                ),
                ("cancellation_note", models.TextField(blank=True, max_length=500)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("completion_notes", models.TextField(blank=True, max_length=1000)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("dispute_reason", models.TextField(blank=True, max_length=1000)),
                ("client_review_submitted", models.BooleanField(default=False)),
                ("professional_review_submitted", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assigned_professional",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_requests",
                        to="professionals.professional",
                    ),
                ),
                (
                    "cancelled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="service_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["category", "status"],
                        name="request_category_status_idx",
                    ),
                    models.Index(
                        fields=["client", "status"],
                        name="request_client_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StatusHistory",
            fields=[
                ("id", _id()),
                ("from_status", models.CharField(blank=True, max_length=20)),
                ("to_status", models.CharField(max_length=20)),
                ("note", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "service_request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="service_requests.servicerequest",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "pk"],
                "verbose_name_plural": "status history",
            },
        ),
    ]
