from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator
from django.core.validators import MinValueValidator
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class PaymentMethodType(models.TextChoices):
    CARD = "card", _("Card")
    BANK_TRANSFER = "bank_transfer", _("Bank transfer")
    DIGITAL_WALLET = "digital_wallet", _("Digital wallet")
    CASH = "cash", _("Cash")


class Payment(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        PROCESSING = "processing", _("Processing")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")
        CANCELLED = "cancelled", _("Cancelled")

    class RefundStatus(models.TextChoices):
        NONE = "none", _("None")
        PENDING = "pending", _("Pending")
        PROCESSING = "processing", _("Processing")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")

    service_request = models.ForeignKey(
        "service_requests.ServiceRequest",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    professional = models.ForeignKey(
        "professionals.Professional",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2)
    professional_amount = models.DecimalField(max_digits=12, decimal_places=2)
    taxes = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="COP")
    description = models.CharField(max_length=255, blank=True)

    method = models.CharField(max_length=20, choices=PaymentMethodType.choices)
    saved_method = models.ForeignKey(
        "payments.PaymentMethod",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    provider = models.CharField(max_length=50, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    transaction_id = models.CharField(max_length=100, blank=True, db_index=True)
    provider_response = models.JSONField(default=dict, blank=True)
    failure_reason = models.CharField(max_length=500, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    refund_status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.NONE,
    )
    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    refund_reason = models.CharField(max_length=500, blank=True)
    refund_transaction_id = models.CharField(max_length=100, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"], name="payment_client_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment {self.pk} ({self.status})"

    def mark_completed(self, transaction_id: str, response: dict) -> None:
        self.status = self.Status.COMPLETED
        self.transaction_id = transaction_id
        self.provider_response = response
        self.paid_at = timezone.now()

    def mark_failed(self, reason: str, response: dict | None = None) -> None:
        self.status = self.Status.FAILED
        self.failure_reason = reason[:500]
        self.provider_response = response or {}


class Invoice(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        ISSUED = "issued", _("Issued")
        PAID = "paid", _("Paid")
        CANCELLED = "cancelled", _("Cancelled")
        REFUNDED = "refunded", _("Refunded")

    number = models.CharField(max_length=20, unique=True)
    payment = models.OneToOneField(
        Payment,
        on_delete=models.PROTECT,
        related_name="invoice",
    )
    service_request = models.ForeignKey(
        "service_requests.ServiceRequest",
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    professional = models.ForeignKey(
        "professionals.Professional",
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    client_info = models.JSONField(default=dict, blank=True)
    professional_info = models.JSONField(default=dict, blank=True)
    items = models.JSONField(default=list)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    taxes = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="COP")
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    issued_at = models.DateTimeField(default=timezone.now)
    due_date = models.DateField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-issued_at"]

    def __str__(self) -> str:
        return self.number


last4_validator = RegexValidator(r"^\d{4}$", "Must be exactly 4 digits.")


class PaymentMethod(models.Model):
    """A saved, tokenized payment instrument."""

    class Brand(models.TextChoices):
        VISA = "visa", "Visa"
        MASTERCARD = "mastercard", "Mastercard"
        AMEX = "amex", "American Express"
        DINERS = "diners", "Diners"
        DISCOVER = "discover", "Discover"
        JCB = "jcb", "JCB"

    class WalletProvider(models.TextChoices):
        NEQUI = "nequi", "Nequi"
        DAVIPLATA = "daviplata", "Daviplata"
        PAYPAL = "paypal", "PayPal"
        APPLE_PAY = "apple_pay", "Apple Pay"
        GOOGLE_PAY = "google_pay", "Google Pay"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payment_methods",
    )
    method_type = models.CharField(
        max_length=20,
        choices=[
            c for c in PaymentMethodType.choices if c[0] != PaymentMethodType.CASH
        ],
    )
    provider_token = models.CharField(max_length=255, blank=True)
    brand = models.CharField(max_length=20, choices=Brand.choices, blank=True)
    last4 = models.CharField(max_length=4, blank=True, validators=[last4_validator])
    exp_month = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(12)],
    )
    exp_year = models.PositiveSmallIntegerField(null=True, blank=True)
    holder_name = models.CharField(max_length=150, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    wallet_provider = models.CharField(
        max_length=20,
        choices=WalletProvider.choices,
        blank=True,
    )
    nickname = models.CharField(max_length=50, blank=True)
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-is_default", "-created_at"]

    def __str__(self) -> str:
        label = self.brand or self.bank_name or self.wallet_provider or self.method_type
        return f"{label} ****{self.last4}" if self.last4 else label

    @property
    def is_expired(self) -> bool:
        if not (self.exp_month and self.exp_year):
            return False
        today = timezone.localdate()
        return (self.exp_year, self.exp_month) < (today.year, today.month)

    def save(self, *args, **kwargs):
        # A user's first method becomes the default.
        if (
            not self.pk
            and not self.user.payment_methods.filter(is_active=True).exists()
        ):
            self.is_default = True
        super().save(*args, **kwargs)
        if self.is_default:
            self.user.payment_methods.exclude(pk=self.pk).filter(
                is_default=True,
            ).update(is_default=False)
