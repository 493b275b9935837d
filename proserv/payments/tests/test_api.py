from decimal import Decimal

from proserv.audit.models import AuditLog
from proserv.notifications.models import Notification
from proserv.payments.models import Invoice
from proserv.payments.models import Payment
from proserv.payments.models import PaymentMethod
from proserv.payments.services import create_invoice
from proserv.service_requests.models import ServiceRequest
from tests.factories import create_accepted_request
from tests.factories import create_payment
from tests.factories import create_service_request
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_OTHER_CLIENT
from tests.mixins import ROLE_OTHER_PROFESSIONAL
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class TestProcessPayment(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.request = create_accepted_request(
            self.users[ROLE_CLIENT],
            self.professional,
        )

    def pay(self, role=ROLE_CLIENT, request=None, **payload):
        if "payment_method_id" not in payload:
            payload.setdefault("method", "card")
        return self.post(
            "api_v1:payment-pay",
            role=role,
            reverse_kwargs={"service_request_id": (request or self.request).pk},
            payload=payload,
        )

    def test_successful_payment_issues_invoice(self):
        res = self.pay(token="tok_visa")
        self.assert_http_status(res, 201)
        assert res.data["status"] == Payment.Status.COMPLETED
        assert Decimal(res.data["total_amount"]) == Decimal("119000.00")
        assert res.data["invoice_number"].startswith("INV-")

        self.request.refresh_from_db()
        assert self.request.payment_status == ServiceRequest.PaymentStatus.PAID
        templates = set(
            Notification.objects.values_list("data__template", flat=True),
        )
        assert {
            "payment_processed",
            "payment_received",
            "invoice_generated",
        } <= templates

    def test_declined_payment_is_recorded_and_reported(self):
        res = self.pay(token="tok_decline_insufficient")
        self.assert_http_status(res, 400)
        assert res.data["success"] is False
        assert res.data["message"].startswith("Payment failed")
        payment = Payment.objects.get(pk=res.data["errors"]["payment_id"])
        assert payment.status == Payment.Status.FAILED
        assert not Invoice.objects.filter(payment=payment).exists()

    def test_second_payment_is_a_conflict(self):
        self.assert_http_status(self.pay(), 201)
        self.assert_http_status(self.pay(), 409)

    def test_pending_request_cannot_be_paid(self):
        pending = create_service_request(self.users[ROLE_CLIENT])
        self.assert_http_status(self.pay(request=pending), 400)

    def test_only_the_owner_pays(self):
        self.assert_denied(self.pay(role=ROLE_OTHER_CLIENT))
        self.assert_denied(self.pay(role=ROLE_PROFESSIONAL))

    def test_method_or_saved_method_required(self):
        res = self.post(
            "api_v1:payment-pay",
            role=ROLE_CLIENT,
            reverse_kwargs={"service_request_id": self.request.pk},
            payload={"token": "tok_visa"},
        )
        self.assert_http_status(res, 400)

    def test_pay_with_saved_method(self):
        method = PaymentMethod.objects.create(
            user=self.users[ROLE_CLIENT],
            method_type="card",
            brand="visa",
            last4="4242",
            exp_month=12,
            exp_year=2099,
            provider_token="tok_saved",
        )
        res = self.pay(payment_method_id=method.pk)
        self.assert_http_status(res, 201)
        assert res.data["method"] == "card"
        method.refresh_from_db()
        assert method.last_used_at is not None


class TestPaymentHistory(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.payment = create_payment(
            create_accepted_request(self.users[ROLE_CLIENT], self.professional),
        )
        self.foreign = create_payment(
            create_accepted_request(
                self.users[ROLE_OTHER_CLIENT],
                self.other_professional,
            ),
        )

    def test_history_is_scoped(self):
        for role, expected in (
            (ROLE_CLIENT, [self.payment.pk]),
            (ROLE_PROFESSIONAL, [self.payment.pk]),
            (ROLE_OTHER_PROFESSIONAL, [self.foreign.pk]),
        ):
            res = self.get("api_v1:payment-list", role=role)
            self.assert_http_status(res, 200)
            assert [p["id"] for p in self.extract_results(res)] == expected

        res = self.get("api_v1:payment-list", role=ROLE_ADMIN)
        assert len(self.extract_results(res)) == 2

    def test_filter_by_status(self):
        res = self.get(
            "api_v1:payment-list",
            role=ROLE_ADMIN,
            data={"status": "failed"},
        )
        assert self.extract_results(res) == []

    def test_detail_of_foreign_payment_is_hidden(self):
        res = self.get(
            "api_v1:payment-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.foreign.pk},
        )
        self.assert_http_status(res, 404)

    def test_invoice_endpoint(self):
        res = self.get(
            "api_v1:payment-invoice",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.payment.pk},
        )
        self.assert_http_status(res, 404)

        invoice = create_invoice(self.payment)
        res = self.get(
            "api_v1:payment-invoice",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs={"pk": self.payment.pk},
        )
        self.assert_http_status(res, 200)
        assert res.data["number"] == invoice.number

        res = self.get("api_v1:invoice-list", role=ROLE_OTHER_CLIENT)
        assert self.extract_results(res) == []

    def test_stats(self):
        res = self.get("api_v1:payment-stats", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert res.data["completed_payments"] == 1
        assert Decimal(res.data["total_revenue"]) == Decimal("119000.00")


class TestRefund(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.request = create_accepted_request(
            self.users[ROLE_CLIENT],
            self.professional,
        )
        self.payment = create_payment(self.request)

    def refund(self, role=ROLE_ADMIN, **payload):
        payload.setdefault("reason", "Service not delivered")
        return self.post(
            "api_v1:payment-refund",
            role=role,
            reverse_kwargs={"pk": self.payment.pk},
            payload=payload,
        )

    def test_admin_full_refund(self):
        res = self.refund()
        self.assert_http_status(res, 200)
        assert res.data["refund_status"] == Payment.RefundStatus.COMPLETED
        assert Decimal(res.data["refund_amount"]) == Decimal("119000.00")
        self.request.refresh_from_db()
        assert self.request.payment_status == ServiceRequest.PaymentStatus.REFUNDED
        assert AuditLog.objects.filter(
            action="payment_refunded",
            record_id=self.payment.pk,
        ).exists()
        assert (
            Notification.objects.filter(data__template="payment_refunded").count()
            == 2
        )

    def test_double_refund_is_a_conflict(self):
        self.assert_http_status(self.refund(), 200)
        self.assert_http_status(self.refund(), 409)

    def test_refund_amount_cannot_exceed_total(self):
        self.assert_http_status(self.refund(amount="200000.00"), 400)
        self.assert_http_status(self.refund(amount="0"), 400)

    def test_partial_refund_keeps_paid_status(self):
        res = self.refund(amount="19000.00")
        self.assert_http_status(res, 200)
        self.request.refresh_from_db()
        assert self.request.payment_status == ServiceRequest.PaymentStatus.PAID

    def test_client_refund_requires_cancelled_or_disputed_request(self):
        self.assert_denied(self.refund(role=ROLE_CLIENT))
        ServiceRequest.objects.filter(pk=self.request.pk).update(
            status=ServiceRequest.Status.DISPUTED,
        )
        self.assert_http_status(self.refund(role=ROLE_CLIENT), 200)

    def test_failed_payment_cannot_be_refunded(self):
        Payment.objects.filter(pk=self.payment.pk).update(
            status=Payment.Status.FAILED,
        )
        self.assert_http_status(self.refund(), 400)

    def test_stranger_gets_not_found(self):
        self.assert_http_status(self.refund(role=ROLE_OTHER_CLIENT), 404)


class TestPaymentMethods(MarketplaceAPITestCase):
    def add_card(self, last4="4242", **extra):
        payload = {
            "method_type": "card",
            "brand": "visa",
            "last4": last4,
            "exp_month": 12,
            "exp_year": 2099,
            "provider_token": f"tok_{last4}",
        }
        payload.update(extra)
        return self.post(
            "api_v1:payment-method-list",
            role=ROLE_CLIENT,
            payload=payload,
        )

    def test_first_method_becomes_default(self):
        res = self.add_card()
        self.assert_http_status(res, 201)
        assert res.data["is_default"] is True
        assert "provider_token" not in res.data

        res = self.add_card("1881")
        assert res.data["is_default"] is False

    def test_card_validation(self):
        self.assert_http_status(self.add_card(exp_year=2001), 400)
        res = self.post(
            "api_v1:payment-method-list",
            role=ROLE_CLIENT,
            payload={"method_type": "card", "brand": "visa"},
        )
        self.assert_http_status(res, 400)
        assert {"last4", "exp_month", "exp_year"} <= set(res.data["errors"])

    def test_bank_transfer_requires_bank_name(self):
        res = self.post(
            "api_v1:payment-method-list",
            role=ROLE_CLIENT,
            payload={"method_type": "bank_transfer"},
        )
        self.assert_http_status(res, 400)

    def test_set_default_and_delete_promotes_replacement(self):
        first = self.add_card().data["id"]
        second = self.add_card("1881").data["id"]

        res = self.post(
            "api_v1:payment-method-set-default",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": second},
        )
        self.assert_http_status(res, 200)
        assert PaymentMethod.objects.get(pk=second).is_default
        assert not PaymentMethod.objects.get(pk=first).is_default

        res = self.delete(
            "api_v1:payment-method-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": second},
        )
        self.assert_http_status(res, 204)
        assert not PaymentMethod.objects.get(pk=second).is_active
        assert PaymentMethod.objects.get(pk=first).is_default

    def test_methods_are_private(self):
        method_id = self.add_card().data["id"]
        res = self.get(
            "api_v1:payment-method-detail",
            role=ROLE_OTHER_CLIENT,
            reverse_kwargs={"pk": method_id},
        )
        self.assert_http_status(res, 404)
