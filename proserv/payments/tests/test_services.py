from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from django.test import override_settings

from proserv.payments.gateways import PaymentGatewayError
from proserv.payments.gateways import SimulatedGateway
from proserv.payments.models import Invoice
from proserv.payments.models import Payment
from proserv.payments.services import breakdown
from proserv.payments.services import create_invoice
from proserv.payments.services import next_invoice_number
from proserv.payments.services import payment_stats
from proserv.payments.services import service_amount
from tests.factories import create_accepted_request
from tests.factories import create_payment
from tests.factories import create_professional
from tests.factories import create_user


def test_breakdown_uses_fee_and_tax_rates():
    parts = breakdown(Decimal("100000"))
    assert parts == {
        "amount": Decimal("100000.00"),
        "platform_fee": Decimal("5000.00"),
        "professional_amount": Decimal("95000.00"),
        "taxes": Decimal("19000.00"),
        "total_amount": Decimal("119000.00"),
    }


@override_settings(PAYMENT_PLATFORM_FEE_RATE=0.1, PAYMENT_TAX_RATE=0)
def test_breakdown_follows_settings():
    parts = breakdown(Decimal("50.55"))
    assert parts["platform_fee"] == Decimal("5.06")
    assert parts["taxes"] == Decimal("0.00")
    assert parts["total_amount"] == Decimal("50.55")


def test_simulated_gateway_declines_marked_tokens():
    gateway = SimulatedGateway()
    result = gateway.charge(Decimal("10.00"), "COP", "card", token="tok_visa")
    assert result.transaction_id.startswith("sim_")
    with pytest.raises(PaymentGatewayError) as exc_info:
        gateway.charge(Decimal("10.00"), "COP", "card", token="tok_decline_funds")
    assert exc_info.value.response["code"] == "card_declined"


@pytest.mark.django_db
def test_service_amount_prefers_final_then_quoted_cost():
    request = create_accepted_request(create_user("ana"), create_professional("pro"))
    assert service_amount(request) == Decimal("100000.00")
    request.final_cost = Decimal("120000.00")
    assert service_amount(request) == Decimal("120000.00")


@pytest.mark.django_db
def test_invoice_numbers_are_sequential_per_month():
    now = datetime(2026, 3, 14, tzinfo=dt_timezone.utc)
    assert next_invoice_number(now) == "INV-202603-0001"

    request = create_accepted_request(create_user("ana"), create_professional("pro"))
    invoice = create_invoice(create_payment(request))
    assert invoice.status == Invoice.Status.PAID
    assert invoice.total == Decimal("119000.00")
    assert invoice.items[0]["description"] == request.title
    prefix, sequence = invoice.number.rsplit("-", 1)
    assert next_invoice_number() == f"{prefix}-{int(sequence) + 1:04d}"


@pytest.mark.django_db
def test_payment_stats():
    professional = create_professional("pro")
    client = create_user("ana")
    create_payment(create_accepted_request(client, professional))
    create_payment(
        create_accepted_request(client, professional),
        amount=Decimal("50000.00"),
        method="cash",
    )
    create_payment(
        create_accepted_request(client, professional),
        status=Payment.Status.FAILED,
    )

    stats = payment_stats(Payment.objects.all())

    assert stats["total_payments"] == 3
    assert stats["completed_payments"] == 2
    assert stats["failed_payments"] == 1
    assert stats["total_revenue"] == Decimal("178500.00")
    assert stats["total_platform_fees"] == Decimal("7500.00")
    assert stats["success_rate"] == 66.67
    assert stats["by_method"] == {"card": 1, "cash": 1}
    assert stats["net_revenue"] == stats["total_revenue"]
