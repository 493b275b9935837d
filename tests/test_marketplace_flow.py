from datetime import timedelta

from django.utils import timezone

from proserv.chat.models import Chat
from proserv.notifications.models import Notification
from proserv.payments.models import Payment
from proserv.service_requests.models import ServiceRequest
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class TestMarketplaceFlow(MarketplaceAPITestCase):
    """A request travels from creation to review through the public API."""

    def test_request_to_review(self):
        res = self.post(
            "api_v1:service-request-list",
            role=ROLE_CLIENT,
            payload={
                "category": "cleaning",
                "title": "Post-party cleanup",
                "description": "Living room and kitchen.",
                "address_street": "Calle 85 # 11-53",
                "address_city": "Bogota",
                "preferred_date": str(timezone.localdate() + timedelta(days=2)),
                "preferred_time": "14:00",
            },
        )
        self.assert_http_status(res, 201)
        request_id = res.data["id"]

        res = self.post(
            "api_v1:quote-list",
            role=ROLE_PROFESSIONAL,
            payload={
                "service_request": request_id,
                "price": "90000.00",
                "description": "Three hours with two people.",
            },
        )
        self.assert_http_status(res, 201)
        res = self.post(
            "api_v1:quote-accept",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": res.data["id"]},
        )
        self.assert_http_status(res, 200)

        chat = Chat.objects.get(service_request_id=request_id)
        res = self.post(
            "api_v1:chat-messages",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": chat.pk},
            payload={"text": "The doorman has the keys."},
        )
        self.assert_http_status(res, 201)

        for action in ("confirm", "start", "complete"):
            res = self.post(
                f"api_v1:service-request-{action}",
                role=ROLE_PROFESSIONAL,
                reverse_kwargs={"pk": request_id},
            )
            self.assert_http_status(res, 200)

        res = self.post(
            "api_v1:payment-pay",
            role=ROLE_CLIENT,
            reverse_kwargs={"service_request_id": request_id},
            payload={"method": "card", "token": "tok_visa"},
        )
        self.assert_http_status(res, 201)
        assert res.data["status"] == Payment.Status.COMPLETED

        res = self.post(
            "api_v1:review-list",
            role=ROLE_CLIENT,
            payload={"service_request": request_id, "rating": 5},
        )
        self.assert_http_status(res, 201)

        service_request = ServiceRequest.objects.get(pk=request_id)
        assert service_request.status == ServiceRequest.Status.COMPLETED
        assert service_request.payment_status == ServiceRequest.PaymentStatus.PAID
        assert service_request.client_review_submitted

        self.professional.refresh_from_db()
        assert self.professional.completed_jobs == 1
        assert self.professional.rating_count == 1

        templates = set(
            Notification.objects.filter(
                recipient=self.users[ROLE_PROFESSIONAL],
            ).values_list("data__template", flat=True),
        )
        assert {
            "new_service_request",
            "quote_accepted",
            "payment_received",
            "new_review",
        } <= templates
