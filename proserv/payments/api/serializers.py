from django.utils import timezone
from rest_framework import serializers

from proserv.payments.models import Invoice
from proserv.payments.models import Payment
from proserv.payments.models import PaymentMethod
from proserv.payments.models import PaymentMethodType


class InvoiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = [
            "id",
            "number",
            "payment",
            "service_request",
            "client_info",
            "professional_info",
            "items",
            "subtotal",
            "taxes",
            "total",
            "currency",
            "status",
            "issued_at",
            "due_date",
            "paid_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    service_request_title = serializers.CharField(
        source="service_request.title",
        read_only=True,
    )
    client_name = serializers.CharField(source="client.name", read_only=True)
    professional_name = serializers.CharField(
        source="professional.business_name",
        read_only=True,
    )
    invoice_number = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "service_request",
            "service_request_title",
            "client",
            "client_name",
            "professional",
            "professional_name",
            "amount",
            "platform_fee",
            "professional_amount",
            "taxes",
            "total_amount",
            "currency",
            "description",
            "method",
            "provider",
            "status",
            "transaction_id",
            "failure_reason",
            "paid_at",
            "refund_status",
            "refund_amount",
            "refund_reason",
            "refunded_at",
            "invoice_number",
            "created_at",
        ]
        read_only_fields = fields

    def get_invoice_number(self, obj) -> str | None:
        invoice = getattr(obj, "invoice", None)
        return invoice.number if invoice else None


class ProcessPaymentSerializer(serializers.Serializer):
    method = serializers.ChoiceField(
        choices=PaymentMethodType.choices,
        required=False,
    )
    payment_method_id = serializers.IntegerField(required=False)
    token = serializers.CharField(required=False, allow_blank=True, max_length=255)
    currency = serializers.CharField(required=False, min_length=3, max_length=3)

    def validate(self, attrs):
        if not attrs.get("method") and attrs.get("payment_method_id") is None:
            raise serializers.ValidationError(
                "Provide a payment method or a saved payment_method_id.",
            )
        if attrs.get("currency"):
            attrs["currency"] = attrs["currency"].upper()
        return attrs


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
    )
    reason = serializers.CharField(max_length=500)


class PaymentMethodSerializer(serializers.ModelSerializer):
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = PaymentMethod
        fields = [
            "id",
            "method_type",
            "provider_token",
            "brand",
            "last4",
            "exp_month",
            "exp_year",
            "holder_name",
            "bank_name",
            "wallet_provider",
            "nickname",
            "is_default",
            "is_expired",
            "last_used_at",
            "created_at",
        ]
        read_only_fields = ["id", "last_used_at", "created_at"]
        extra_kwargs = {"provider_token": {"write_only": True}}

    def validate(self, attrs):
        method_type = attrs.get(
            "method_type",
            getattr(self.instance, "method_type", None),
        )
        if method_type == PaymentMethodType.CARD:
            missing = [
                name
                for name in ("last4", "exp_month", "exp_year")
                if not attrs.get(name, getattr(self.instance, name, None))
            ]
            if missing:
                raise serializers.ValidationError(
                    {name: "Required for cards." for name in missing},
                )
            exp_year = attrs.get("exp_year", getattr(self.instance, "exp_year", None))
            exp_month = attrs.get(
                "exp_month",
                getattr(self.instance, "exp_month", None),
            )
            today = timezone.localdate()
            if (exp_year, exp_month) < (today.year, today.month):
                raise serializers.ValidationError({"exp_year": "Card has expired."})
        elif method_type == PaymentMethodType.BANK_TRANSFER and not attrs.get(
            "bank_name",
            getattr(self.instance, "bank_name", ""),
        ):
            raise serializers.ValidationError({"bank_name": "Required."})
        elif method_type == PaymentMethodType.DIGITAL_WALLET and not attrs.get(
            "wallet_provider",
            getattr(self.instance, "wallet_provider", ""),
        ):
            raise serializers.ValidationError({"wallet_provider": "Required."})
        return attrs
