from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Avg
from django.db.models import Count
from django.db.models import Q
from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from proserv.audit.utils import log_action
from proserv.chat import services as chat_services
from proserv.core.api.exceptions import Conflict
from proserv.notifications.services import notify
from proserv.payments.gateways import PaymentGatewayError
from proserv.payments.gateways import get_gateway
from proserv.payments.models import Invoice
from proserv.payments.models import Payment
from proserv.payments.models import PaymentMethod
from proserv.service_requests.models import ServiceRequest

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _pct(amount: Decimal, rate) -> Decimal:
    return (amount * Decimal(str(rate))).quantize(CENT, rounding=ROUND_HALF_UP)


def breakdown(amount: Decimal) -> dict:
    """Split a service amount into platform fee, professional share and taxes."""
    amount = Decimal(amount).quantize(CENT)
    fee = _pct(amount, settings.PAYMENT_PLATFORM_FEE_RATE)
    taxes = _pct(amount, settings.PAYMENT_TAX_RATE)
    return {
        "amount": amount,
        "platform_fee": fee,
        "professional_amount": amount - fee,
        "taxes": taxes,
        "total_amount": amount + taxes,
    }


def service_amount(service_request: ServiceRequest) -> Decimal:
    return (
        service_request.final_cost
        or service_request.quoted_cost
        or service_request.estimated_cost
        or ZERO
    )


def next_invoice_number(now=None) -> str:
    now = now or timezone.now()
    prefix = f"INV-{now:%Y%m}-"
    last = (
        Invoice.objects.filter(number__startswith=prefix)
        .order_by("-number")
        .values_list("number", flat=True)
        .first()
    )
    sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


def create_invoice(payment: Payment) -> Invoice:
    service_request = payment.service_request
    client = payment.client
    professional = payment.professional
    return Invoice.objects.create(
        number=next_invoice_number(),
        payment=payment,
        service_request=service_request,
        client=client,
        professional=professional,
        client_info={
            "name": client.name,
            "email": client.email,
            "phone": client.phone,
            "address": {
                "street": service_request.address_street,
                "city": service_request.address_city,
                "state": service_request.address_state,
                "zip_code": service_request.address_zip_code,
            },
        },
        professional_info={
            "business_name": str(professional),
            "email": professional.user.email,
            "phone": professional.user.phone,
            "city": professional.city,
        },
        items=[
            {
                "description": service_request.title,
                "quantity": 1,
                "unit_price": str(payment.amount),
                "total": str(payment.amount),
            },
        ],
        subtotal=payment.amount,
        taxes=payment.taxes,
        total=payment.total_amount,
        currency=payment.currency,
        status=Invoice.Status.PAID,
        due_date=timezone.localdate(),
        paid_at=payment.paid_at,
    )


def _resolve_method(user, method: str | None, saved_method_id: int | None):
    saved = None
    if saved_method_id is not None:
        saved = PaymentMethod.objects.filter(
            pk=saved_method_id,
            user=user,
            is_active=True,
        ).first()
        if saved is None:
            raise ValidationError({"payment_method_id": "Payment method not found."})
        if saved.is_expired:
            raise ValidationError({"payment_method_id": "Payment method has expired."})
        method = method or saved.method_type
    if not method:
        raise ValidationError({"method": "This field is required."})
    return method, saved


@transaction.atomic
def process_payment(
    user,
    service_request: ServiceRequest,
    *,
    method: str | None = None,
    payment_method_id: int | None = None,
    token: str = "",
    currency: str | None = None,
) -> Payment:
    """Charge the client for ``service_request``.

    A declined charge is stored as a failed payment and returned; callers
    check ``payment.status``.
    """
    service_request = (
        ServiceRequest.objects.select_for_update()
        .select_related("client", "assigned_professional__user")
        .get(pk=service_request.pk)
    )
    if service_request.client_id != user.pk:
        msg = "You can only pay for your own services."
        raise PermissionDenied(msg)
    if service_request.status not in ServiceRequest.PAYABLE_STATUSES:
        msg = f"A {service_request.status} service cannot be paid."
        raise ValidationError(msg)
    if service_request.assigned_professional is None:
        msg = "The service has no assigned professional."
        raise ValidationError(msg)
    if Payment.objects.filter(
        service_request=service_request,
        status=Payment.Status.COMPLETED,
    ).exists():
        msg = "This service has already been paid."
        raise Conflict(msg)
    amount = service_amount(service_request)
    if amount <= 0:
        msg = "The service has no price to charge."
        raise ValidationError(msg)

    method, saved = _resolve_method(user, method, payment_method_id)
    gateway = get_gateway()
    payment = Payment.objects.create(
        service_request=service_request,
        client=user,
        professional=service_request.assigned_professional,
        currency=currency or service_request.currency,
        description=f"Payment for service: {service_request.title}"[:255],
        method=method,
        saved_method=saved,
        provider=gateway.name,
        status=Payment.Status.PROCESSING,
        **breakdown(amount),
    )

    try:
        result = gateway.charge(
            payment.total_amount,
            payment.currency,
            method,
            token=token or (saved.provider_token if saved else ""),
            customer={"id": user.pk, "email": user.email, "name": user.name},
            metadata={
                "payment_id": payment.pk,
                "service_request_id": service_request.pk,
            },
            description=payment.description,
        )
    except PaymentGatewayError as exc:
        payment.mark_failed(str(exc), exc.response)
        payment.save()
        notify(
            user,
            "payment_failed",
            context={"reason": str(exc)},
            data={"payment_id": payment.pk, "service_request_id": service_request.pk},
        )
        logger.warning(
            "Payment %s for request %s failed: %s",
            payment.pk,
            service_request.pk,
            exc,
        )
        return payment

    payment.mark_completed(result.transaction_id, result.raw)
    payment.save()
    if saved is not None:
        saved.last_used_at = timezone.now()
        saved.save(update_fields=["last_used_at"])

    service_request.payment_status = ServiceRequest.PaymentStatus.PAID
    service_request.payment_method = method
    service_request.save(
        update_fields=["payment_status", "payment_method", "updated_at"],
    )
    invoice = create_invoice(payment)

    money = {"amount": payment.total_amount, "currency": payment.currency}
    notify(
        user,
        "payment_processed",
        context=money,
        data={"payment_id": payment.pk, "invoice": invoice.number},
        link=f"/payments/{payment.pk}",
    )
    notify(
        service_request.assigned_professional.user,
        "payment_received",
        context={
            "amount": payment.professional_amount,
            "currency": payment.currency,
            "title": service_request.title,
        },
        data={"payment_id": payment.pk, "service_request_id": service_request.pk},
    )
    notify(
        user,
        "invoice_generated",
        context={"number": invoice.number},
        data={"invoice_id": invoice.pk},
        link=f"/payments/invoices/{invoice.pk}",
    )
    chat_services.post_service_update(
        service_request,
        f"Payment of {payment.total_amount} {payment.currency} received.",
        {"payment_id": payment.pk, "status": payment.status},
    )
    logger.info(
        "Payment %s completed for request %s (%s %s)",
        payment.pk,
        service_request.pk,
        payment.total_amount,
        payment.currency,
    )
    return payment


REFUNDABLE_REQUEST_STATUSES = (
    ServiceRequest.Status.CANCELLED,
    ServiceRequest.Status.DISPUTED,
)


@transaction.atomic
def refund(payment: Payment, actor, *, amount=None, reason: str = "") -> Payment:
    """Refund ``payment`` fully or partially.

    A gateway failure is stored on the payment (``refund_status=failed``) and
    returned.
    """
    payment = (
        Payment.objects.select_for_update()
        .select_related("service_request", "client", "professional__user")
        .get(pk=payment.pk)
    )
    if not actor.is_admin_role:
        is_owner = payment.client_id == actor.pk
        if not (
            is_owner
            and payment.service_request.status in REFUNDABLE_REQUEST_STATUSES
        ):
            msg = "You are not allowed to refund this payment."
            raise PermissionDenied(msg)
    if payment.status != Payment.Status.COMPLETED:
        msg = "Only completed payments can be refunded."
        raise ValidationError(msg)
    if payment.refund_status == Payment.RefundStatus.COMPLETED:
        msg = "This payment has already been refunded."
        raise Conflict(msg)

    amount = Decimal(amount if amount is not None else payment.total_amount)
    if amount <= 0 or amount > payment.total_amount:
        raise ValidationError(
            {"amount": "Refund must be positive and not exceed the amount paid."},
        )

    payment.refund_amount = amount
    payment.refund_reason = reason
    payment.refunded_by = actor
    try:
        result = get_gateway().refund(
            payment.transaction_id,
            amount,
            reason=reason,
            metadata={"payment_id": payment.pk, "processed_by": actor.pk},
        )
    except PaymentGatewayError as exc:
        payment.refund_status = Payment.RefundStatus.FAILED
        payment.failure_reason = f"Refund failed: {exc}"[:500]
        payment.save()
        logger.warning("Refund of payment %s failed: %s", payment.pk, exc)
        return payment

    payment.refund_status = Payment.RefundStatus.COMPLETED
    payment.refund_transaction_id = result.transaction_id
    payment.refunded_at = timezone.now()
    payment.save()

    if amount == payment.total_amount:
        service_request = payment.service_request
        service_request.payment_status = ServiceRequest.PaymentStatus.REFUNDED
        service_request.save(update_fields=["payment_status", "updated_at"])
        Invoice.objects.filter(payment=payment).update(status=Invoice.Status.REFUNDED)

    money = {"amount": amount, "currency": payment.currency}
    notify(
        payment.client,
        "payment_refunded",
        context=money,
        data={"payment_id": payment.pk},
    )
    notify(
        payment.professional.user,
        "payment_refunded",
        context=money,
        data={"payment_id": payment.pk},
    )
    log_action(
        "payment_refunded",
        actor=actor,
        message=reason[:200],
        target=payment,
        after={"amount": str(amount)},
    )
    logger.info("Payment %s refunded (%s) by user %s", payment.pk, amount, actor.pk)
    return payment


def scoped_queryset(user):
    qs = Payment.objects.select_related(
        "service_request",
        "client",
        "professional__user",
        "invoice",
    )
    if user.is_admin_role:
        return qs
    if user.is_professional:
        return qs.filter(professional__user=user)
    return qs.filter(client=user)


def can_view(payment: Payment, user) -> bool:
    return bool(
        user.is_admin_role
        or payment.client_id == user.pk
        or payment.professional.user_id == user.pk,
    )


def payment_stats(qs) -> dict:
    qs = qs.order_by()
    completed = Q(status=Payment.Status.COMPLETED)
    totals = qs.aggregate(
        total_payments=Count("id"),
        completed_payments=Count("id", filter=completed),
        failed_payments=Count("id", filter=Q(status=Payment.Status.FAILED)),
        total_revenue=Sum("total_amount", filter=completed),
        total_platform_fees=Sum("platform_fee", filter=completed),
        total_professional_amount=Sum("professional_amount", filter=completed),
        total_refunds=Sum(
            "refund_amount",
            filter=Q(refund_status=Payment.RefundStatus.COMPLETED),
        ),
        average_payment=Avg("total_amount", filter=completed),
    )
    for key in (
        "total_revenue",
        "total_platform_fees",
        "total_professional_amount",
        "total_refunds",
    ):
        totals[key] = totals[key] or ZERO
    totals["average_payment"] = round(totals["average_payment"] or 0, 2)
    count = totals["total_payments"]
    totals["success_rate"] = (
        round(totals["completed_payments"] / count * 100, 2) if count else 0
    )
    totals["net_revenue"] = totals["total_revenue"] - totals["total_refunds"]
    totals["by_method"] = dict(
        qs.filter(completed)
        .values("method")
        .annotate(n=Count("id"))
        .values_list("method", "n"),
    )
    return totals


@transaction.atomic
def set_default_method(method: PaymentMethod) -> PaymentMethod:
    method.is_default = True
    method.save()
    return method
