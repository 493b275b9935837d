import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal

from django.conf import settings
from django.db import migrations
from django.db import models

METHOD_CHOICES = [
    ("card", "Card"),
    ("bank_transfer", "Bank transfer"),
    ("digital_wallet", "Digital wallet"),
    ("cash", "Cash"),
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
        ("service_requests", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                ("id", _id()),
                ("method_type", models.CharField(choices=METHOD_CHOICES[:3], max_length=20)),
                ("provider_token", models.CharField(blank=True, max_length=255)),
                (
                    "brand",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("visa", "Visa"),
                            ("mastercard", "Mastercard"),
                            ("amex", "American Express"),
                            ("diners", "Diners"),
                            ("discover", "Discover"),
                            ("jcb", "JCB"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "last4",
                    models.CharField(
                        blank=True,
                        max_length=4,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^\\d{4}$",
                                "Must be exactly 4 digits.",
                            ),
                        ],
                    ),
                ),
                (
                    "exp_month",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(12),
                        ],
                    ),
                ),
                ("exp_year", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("holder_name", models.CharField(blank=True, max_length=150)),
                ("bank_name", models.CharField(blank=True, max_length=100)),
                (
                    "wallet_provider",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("nequi", "Nequi"),
                            ("daviplata", "Daviplata"),
                            ("paypal", "PayPal"),
                            ("apple_pay", "Apple Pay"),
                            ("google_pay", "Google Pay"),
                        ],
                        max_length=20,
                    ),
                ),
                ("nickname", models.CharField(blank=True, max_length=50)),
                ("is_default", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("last_used_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_methods",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-is_default", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", _id()),
                ("amount", _money()),
                ("platform_fee", _money()),
                ("professional_amount", _money()),
                ("taxes", _money(default=Decimal("0.00"))),
                ("total_amount", _money()),
                ("currency", models.CharField(default="COP", max_length=3)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("method", models.CharField(choices=METHOD_CHOICES, max_length=20)),
                ("provider", models.CharField(blank=True, max_length=50)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(blank=True, db_index=True, max_length=100),
                ),
                ("provider_response", models.JSONField(blank=True, default=dict)),
                ("failure_reason", models.CharField(blank=True, max_length=500)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "refund_status",
                    models.CharField(
                        choices=[
                            ("none", "None"),
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="none",
                        max_length=20,
                    ),
                ),
                ("refund_amount", _money(blank=True, null=True)),
                ("refund_reason", models.CharField(blank=True, max_length=500)),
                (
                    "refund_transaction_id",
                    models.CharField(blank=True, max_length=100),
                ),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="professionals.professional",
                    ),
                ),
                (
                    "refunded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "saved_method",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="payments.paymentmethod",
                    ),
                ),
                (
                    "service_request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="service_requests.servicerequest",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["client", "status"],
                        name="payment_client_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", _id()),
                ("number", models.CharField(max_length=20, unique=True)),
                ("client_info", models.JSONField(blank=True, default=dict)),
                ("professional_info", models.JSONField(blank=True, default=dict)),
                ("items", models.JSONField(default=list)),
                ("subtotal", _money()),
                ("taxes", _money()),
                ("total", _money()),
                ("currency", models.CharField(default="COP", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("issued", "Issued"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                        ],
                        default="draft",
                        max_length=10,
                    ),
                ),
                (
                    "issued_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("due_date", models.DateField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoice",
                        to="payments.payment",
                    ),
                ),
                (
                    "professional",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="professionals.professional",
                    ),
                ),
                (
                    "service_request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="service_requests.servicerequest",
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
            },
        ),
    ]
