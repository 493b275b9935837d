import django.core.validators
import django.db.models.deletion
from decimal import Decimal

from django.conf import settings
from django.db import migrations
from django.db import models

import proserv.professionals.models

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


def _id():
    return models.BigAutoField(
        auto_created=True,
        primary_key=True,
        serialize=False,
        verbose_name="ID",
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Professional",
            fields=[
                ("id", _id()),
                ("business_name", models.CharField(blank=True, max_length=200)),
                ("description", models.TextField(blank=True, max_length=2000)),
                ("years_of_experience", models.PositiveSmallIntegerField(default=0)),
                ("website", models.URLField(blank=True)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("state", models.CharField(blank=True, max_length=100)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                (
                    "service_radius_km",
                    models.PositiveSmallIntegerField(
                        default=25,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                (
                    "availability",
                    models.JSONField(
                        default=proserv.professionals.models.default_availability,
                    ),
                ),
                (
                    "time_zone",
                    models.CharField(default="America/Bogota", max_length=64),
                ),
                (
                    "preferences",
                    models.JSONField(
                        default=proserv.professionals.models.default_professional_preferences,
                    ),
                ),
                (
                    "rating_average",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=3,
                    ),
                ),
                ("rating_count", models.PositiveIntegerField(default=0)),
                (
                    "rating_breakdown",
                    models.JSONField(
                        default=proserv.professionals.models.default_rating_breakdown,
                    ),
                ),
                ("total_jobs", models.PositiveIntegerField(default=0)),
                ("completed_jobs", models.PositiveIntegerField(default=0)),
                ("cancelled_jobs", models.PositiveIntegerField(default=0)),
                (
                    "total_earnings",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=14,
                    ),
                ),
                (
                    "verification_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_review", "In review"),
                            ("verified", "Verified"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("verification_notes", models.TextField(blank=True)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="professional_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-rating_average", "-rating_count"],
            },
        ),
        migrations.CreateModel(
            name="ServiceOffering",
            fields=[
                ("id", _id()),
                (
                    "category",
                    models.CharField(choices=CATEGORY_CHOICES, max_length=32),
                ),
                ("subcategory", models.CharField(blank=True, max_length=100)),
                ("title", models.CharField(max_length=150)),
                ("description", models.TextField(blank=True, max_length=1000)),
                (
                    "pricing_type",
                    models.CharField(
                        choices=[
                            ("fixed", "Fixed"),
                            ("hourly", "Hourly"),
                            ("quote", "On quote"),
                        ],
                        default="quote",
                        max_length=10,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                        ],
                    ),
                ),
                ("currency", models.CharField(default="COP", max_length=3)),
                ("unit", models.CharField(blank=True, max_length=30)),
                (
                    "estimated_duration_minutes",
                    models.PositiveIntegerField(blank=True, null=True),
                ),
                ("tags", models.JSONField(blank=True, default=list)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="offerings",
                        to="professionals.professional",
                    ),
                ),
            ],
            options={
                "ordering": ["category", "title"],
            },
        ),
        migrations.CreateModel(
            name="Credential",
            fields=[
                ("id", _id()),
                (
                    "document_type",
                    models.CharField(
                        choices=[
                            ("id_document", "Identity document"),
                            ("professional_license", "Professional license"),
                            ("certification", "Certification"),
                            ("insurance", "Insurance"),
                            ("background_check", "Background check"),
                            ("other", "Other"),
                        ],
                        max_length=32,
                    ),
                ),
                ("document_number", models.CharField(blank=True, max_length=100)),
                ("issuing_authority", models.CharField(blank=True, max_length=200)),
                ("document_url", models.URLField(max_length=500)),
                ("issued_at", models.DateField(blank=True, null=True)),
                ("expires_at", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credentials",
                        to="professionals.professional",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="AvailabilityException",
            fields=[
                ("id", _id()),
                ("date", models.DateField()),
                ("is_available", models.BooleanField(default=False)),
                ("start_time", models.TimeField(blank=True, null=True)),
                ("end_time", models.TimeField(blank=True, null=True)),
                ("reason", models.CharField(blank=True, max_length=200)),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="availability_exceptions",
                        to="professionals.professional",
                    ),
                ),
            ],
            options={
                "ordering": ["date"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("professional", "date"),
                        name="unique_availability_exception_per_day",
                    ),
                ],
            },
        ),
    ]
