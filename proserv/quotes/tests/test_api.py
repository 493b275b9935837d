from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from proserv.chat.models import Chat
from proserv.notifications.models import Notification
from proserv.professionals.models import Professional
from proserv.quotes.models import Quote
from proserv.service_requests.models import ServiceRequest
from tests.factories import create_quote
from tests.factories import create_service_request
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_OTHER_CLIENT
from tests.mixins import ROLE_OTHER_PROFESSIONAL
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class TestSendQuote(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.request = create_service_request(self.users[ROLE_CLIENT])

    def send(self, role=ROLE_PROFESSIONAL, **overrides):
        payload = {
            "service_request": self.request.pk,
            "price": "120000.00",
            "description": "Two people, four hours.",
            "warranty_days": 15,
        }
        payload.update(overrides)
        return self.post("api_v1:quote-list", role=role, payload=payload)

    def test_send_quote_moves_request_to_quoted_and_notifies_client(self):
        res = self.send()
        self.assert_http_status(res, 201)
        assert res.data["status"] == Quote.Status.PENDING
        self.request.refresh_from_db()
        assert self.request.status == ServiceRequest.Status.QUOTED
        assert Notification.objects.filter(
            recipient=self.users[ROLE_CLIENT],
            data__template="new_quote",
        ).exists()

    def test_duplicate_quote_is_a_conflict(self):
        self.assert_http_status(self.send(), 201)
        res = self.send(price="110000.00")
        self.assert_http_status(res, 409)

    def test_unverified_professional_cannot_quote(self):
        Professional.objects.filter(pk=self.professional.pk).update(
            verification_status=Professional.VerificationStatus.PENDING,
        )
        self.assert_denied(self.send())

    def test_category_must_be_offered(self):
        self.request.category = "automotive"
        self.request.save()
        self.assert_denied(self.send())

    def test_clients_cannot_quote(self):
        self.assert_denied(self.send(role=ROLE_CLIENT))

    def test_closed_request_rejects_quotes(self):
        ServiceRequest.objects.filter(pk=self.request.pk).update(
            status=ServiceRequest.Status.CANCELLED,
        )
        self.assert_http_status(self.send(), 409)

    def test_valid_until_must_be_in_the_future(self):
        res = self.send(valid_until=(timezone.now() - timedelta(hours=1)).isoformat())
        self.assert_http_status(res, 400)


class TestQuoteDecisions(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.request = create_service_request(
            self.users[ROLE_CLIENT],
            status=ServiceRequest.Status.QUOTED,
        )
        self.quote = create_quote(
            self.request,
            self.professional,
            price=Decimal("90000.00"),
        )
        self.competing = create_quote(self.request, self.other_professional)

    def test_accept_assigns_professional_and_rejects_others(self):
        res = self.post(
            "api_v1:quote-accept",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.quote.pk},
        )
        self.assert_http_status(res, 200)
        assert res.data["status"] == Quote.Status.ACCEPTED

        self.request.refresh_from_db()
        assert self.request.status == ServiceRequest.Status.ACCEPTED
        assert self.request.assigned_professional == self.professional
        assert self.request.quoted_cost == Decimal("90000.00")

        self.competing.refresh_from_db()
        assert self.competing.status == Quote.Status.REJECTED

        chat = Chat.objects.get(service_request=self.request)
        assert set(chat.participant_user_ids()) == {
            self.users[ROLE_CLIENT].pk,
            self.professional.user_id,
        }
        self.professional.refresh_from_db()
        assert self.professional.total_jobs == 1

    def test_only_request_owner_accepts(self):
        res = self.post(
            "api_v1:quote-accept",
            role=ROLE_OTHER_CLIENT,
            reverse_kwargs={"pk": self.quote.pk},
        )
        # Quotes of foreign requests are outside the caller's scope.
        self.assert_http_status(res, 404)

    def test_expired_quote_cannot_be_accepted(self):
        Quote.objects.filter(pk=self.quote.pk).update(
            valid_until=timezone.now() - timedelta(days=1),
        )
        res = self.post(
            "api_v1:quote-accept",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.quote.pk},
        )
        self.assert_http_status(res, 409)

    def test_reject_records_reason(self):
        res = self.post(
            "api_v1:quote-reject",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.quote.pk},
            payload={"reason": "Too expensive"},
        )
        self.assert_http_status(res, 200)
        self.quote.refresh_from_db()
        assert self.quote.status == Quote.Status.REJECTED
        assert self.quote.rejection_reason == "Too expensive"

    def test_withdraw_last_quote_reopens_request(self):
        for quote, role in (
            (self.quote, ROLE_PROFESSIONAL),
            (self.competing, ROLE_OTHER_PROFESSIONAL),
        ):
            res = self.post(
                "api_v1:quote-withdraw",
                role=role,
                reverse_kwargs={"pk": quote.pk},
            )
            self.assert_http_status(res, 200)
        self.request.refresh_from_db()
        assert self.request.status == ServiceRequest.Status.PENDING

    def test_withdrawn_quote_can_be_sent_again(self):
        self.post(
            "api_v1:quote-withdraw",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs={"pk": self.quote.pk},
        )
        res = self.post(
            "api_v1:quote-list",
            role=ROLE_PROFESSIONAL,
            payload={
                "service_request": self.request.pk,
                "price": "85000.00",
                "description": "Better price.",
            },
        )
        self.assert_http_status(res, 201)

    def test_update_own_pending_quote(self):
        res = self.patch(
            "api_v1:quote-detail",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs={"pk": self.quote.pk},
            payload={"price": "80000.00"},
        )
        self.assert_http_status(res, 200)
        assert Decimal(res.data["price"]) == Decimal("80000.00")
        assert Notification.objects.filter(data__template="quote_updated").exists()

    def test_quotes_for_request_are_visible_to_owner_only(self):
        res = self.get(
            "api_v1:quote-for-request",
            role=ROLE_CLIENT,
            reverse_kwargs={"service_request_id": self.request.pk},
        )
        self.assert_http_status(res, 200)
        assert [q["id"] for q in res.data] == [self.quote.pk, self.competing.pk]

        res = self.get(
            "api_v1:quote-for-request",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs={"service_request_id": self.request.pk},
        )
        self.assert_denied(res)

    def test_stats(self):
        self.post(
            "api_v1:quote-accept",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.quote.pk},
        )
        res = self.get("api_v1:quote-stats", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert res.data["total"] == 2
        assert res.data["acceptance_rate"] == 50.0
