from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from proserv.notifications.models import Notification
from proserv.professionals.models import Professional
from proserv.quotes.models import Quote
from proserv.service_requests.models import ServiceRequest
from proserv.service_requests.models import StatusHistory
from tests.factories import create_accepted_request
from tests.factories import create_quote
from tests.factories import create_service_request
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_OTHER_CLIENT
from tests.mixins import ROLE_OTHER_PROFESSIONAL
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase

Status = ServiceRequest.Status


def request_payload(**overrides):
    payload = {
        "category": "cleaning",
        "title": "Move-out cleaning",
        "description": "Empty apartment, three rooms.",
        "address_street": "Carrera 7 # 72-41",
        "address_city": "Bogota",
        "preferred_date": str(timezone.localdate() + timedelta(days=5)),
        "preferred_time": "09:30",
        "estimated_cost": "150000.00",
    }
    payload.update(overrides)
    return payload


class TestCreateServiceRequest(MarketplaceAPITestCase):
    def test_client_creates_request_and_matching_professionals_are_notified(self):
        res = self.post(
            "api_v1:service-request-list",
            role=ROLE_CLIENT,
            payload=request_payload(),
        )
        self.assert_http_status(res, 201)
        request = ServiceRequest.objects.get(pk=res.data["id"])
        assert request.status == Status.PENDING
        assert request.client == self.users[ROLE_CLIENT]
        assert StatusHistory.objects.filter(service_request=request).count() == 1

        notified = set(
            Notification.objects.filter(
                data__template="new_service_request",
            ).values_list("recipient_id", flat=True),
        )
        assert notified == {self.professional.user_id, self.other_professional.user_id}

    def test_unverified_professionals_are_not_notified(self):
        Professional.objects.filter(pk=self.other_professional.pk).update(
            verification_status=Professional.VerificationStatus.PENDING,
        )
        self.post(
            "api_v1:service-request-list",
            role=ROLE_CLIENT,
            payload=request_payload(),
        )
        notified = Notification.objects.filter(data__template="new_service_request")
        assert list(notified.values_list("recipient_id", flat=True)) == [
            self.professional.user_id,
        ]

    def test_preferred_date_must_be_in_the_future(self):
        res = self.post(
            "api_v1:service-request-list",
            role=ROLE_CLIENT,
            payload=request_payload(
                preferred_date=str(timezone.localdate() - timedelta(days=1)),
            ),
        )
        self.assert_http_status(res, 400)
        assert "preferred_date" in res.data["errors"]

    def test_preferred_time_uses_hhmm(self):
        res = self.post(
            "api_v1:service-request-list",
            role=ROLE_CLIENT,
            payload=request_payload(preferred_time="9am"),
        )
        self.assert_http_status(res, 400)

    def test_professionals_cannot_create_requests(self):
        res = self.post(
            "api_v1:service-request-list",
            role=ROLE_PROFESSIONAL,
            payload=request_payload(),
        )
        self.assert_denied(res)


class TestServiceRequestVisibility(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.own = create_service_request(self.users[ROLE_CLIENT])
        self.foreign = create_service_request(self.users[ROLE_OTHER_CLIENT])

    def test_list_is_scoped_by_role(self):
        res = self.get("api_v1:service-request-list", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert [r["id"] for r in self.extract_results(res)] == [self.own.pk]

        create_quote(self.foreign, self.professional)
        res = self.get("api_v1:service-request-list", role=ROLE_PROFESSIONAL)
        assert [r["id"] for r in self.extract_results(res)] == [self.foreign.pk]

        res = self.get("api_v1:service-request-list", role=ROLE_ADMIN)
        assert len(self.extract_results(res)) == 2

    def test_other_client_cannot_read_request(self):
        res = self.get(
            "api_v1:service-request-detail",
            role=ROLE_OTHER_CLIENT,
            reverse_kwargs={"pk": self.own.pk},
        )
        self.assert_denied(res)

    def test_professional_can_read_open_request(self):
        res = self.get(
            "api_v1:service-request-detail",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs={"pk": self.own.pk},
        )
        self.assert_http_status(res, 200)
        assert res.data["allowed_transitions"] == ["cancelled", "quoted"]

    def test_owner_updates_open_request_only(self):
        res = self.patch(
            "api_v1:service-request-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.own.pk},
            payload={"title": "Kitchen only"},
        )
        self.assert_http_status(res, 200)
        assert res.data["title"] == "Kitchen only"

        ServiceRequest.objects.filter(pk=self.own.pk).update(status=Status.ACCEPTED)
        res = self.patch(
            "api_v1:service-request-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": self.own.pk},
            payload={"title": "Too late"},
        )
        self.assert_http_status(res, 409)


class TestServiceLifecycle(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.request = create_accepted_request(
            self.users[ROLE_CLIENT],
            self.professional,
            quoted_cost=Decimal("100000.00"),
        )
        self.kwargs = {"pk": self.request.pk}

    def test_full_lifecycle(self):
        for action, expected in (
            ("confirm", Status.CONFIRMED),
            ("start", Status.IN_PROGRESS),
        ):
            res = self.post(
                f"api_v1:service-request-{action}",
                role=ROLE_PROFESSIONAL,
                reverse_kwargs=self.kwargs,
            )
            self.assert_http_status(res, 200)
            assert res.data["status"] == expected

        res = self.post(
            "api_v1:service-request-complete",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
            payload={
                "notes": "All rooms done.",
                "additional_costs": [{"description": "Supplies", "amount": "10000"}],
            },
        )
        self.assert_http_status(res, 200)
        assert res.data["status"] == Status.COMPLETED
        assert Decimal(res.data["final_cost"]) == Decimal("110000.00")
        assert Decimal(res.data["platform_fee"]) == Decimal("16500.00")

        self.professional.refresh_from_db()
        assert self.professional.completed_jobs == 1
        assert self.professional.total_earnings == Decimal("93500.00")
        history = list(
            StatusHistory.objects.filter(service_request=self.request)
            .order_by("pk")
            .values_list("to_status", flat=True),
        )
        assert history == [Status.CONFIRMED, Status.IN_PROGRESS, Status.COMPLETED]

    def test_completing_after_a_dispute_does_not_count_the_job_twice(self):
        ServiceRequest.objects.filter(pk=self.request.pk).update(
            status=Status.IN_PROGRESS,
        )

        def complete(**payload):
            return self.post(
                "api_v1:service-request-complete",
                role=ROLE_PROFESSIONAL,
                reverse_kwargs=self.kwargs,
                payload=payload,
            )

        def dispute():
            res = self.post(
                "api_v1:service-request-dispute",
                role=ROLE_PROFESSIONAL,
                reverse_kwargs=self.kwargs,
                payload={"reason": "Client refuses to sign off."},
            )
            self.assert_http_status(res, 200)

        extra = [{"description": "Supplies", "amount": "10000"}]
        self.assert_http_status(complete(additional_costs=extra), 200)
        dispute()
        res = complete(notes="Resolved with the client.")
        self.assert_http_status(res, 200)
        assert res.data["status"] == Status.COMPLETED
        assert Decimal(res.data["final_cost"]) == Decimal("110000.00")

        dispute()
        self.assert_http_status(complete(additional_costs=extra), 400)

        self.professional.refresh_from_db()
        assert self.professional.completed_jobs == 1
        assert self.professional.total_earnings == Decimal("93500.00")
        self.request.refresh_from_db()
        assert self.request.status == Status.DISPUTED
        assert len(self.request.additional_costs) == 1

    def test_only_assigned_professional_moves_the_request(self):
        res = self.post(
            "api_v1:service-request-confirm",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
        )
        self.assert_denied(res)

    def test_illegal_transition_is_a_conflict(self):
        res = self.post(
            "api_v1:service-request-complete",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
        )
        self.assert_http_status(res, 409)
        assert res.data["success"] is False

    def test_cancel_by_client_rejects_pending_quotes(self):
        quote = create_quote(self.request, self.other_professional)
        res = self.post(
            "api_v1:service-request-cancel",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
            payload={"reason": "client_request", "note": "Plans changed"},
        )
        self.assert_http_status(res, 200)
        assert res.data["status"] == Status.CANCELLED
        assert res.data["cancellation_reason"] == "client_request"
        quote.refresh_from_db()
        assert quote.status == Quote.Status.REJECTED
        self.professional.refresh_from_db()
        assert self.professional.cancelled_jobs == 1
        assert Notification.objects.filter(
            recipient=self.professional.user,
            data__template="service_cancelled",
        ).exists()

    def test_completed_request_cannot_be_cancelled(self):
        ServiceRequest.objects.filter(pk=self.request.pk).update(
            status=Status.COMPLETED,
        )
        res = self.post(
            "api_v1:service-request-cancel",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
            payload={"reason": "client_request"},
        )
        self.assert_http_status(res, 409)

    def test_unrelated_professional_cannot_cancel(self):
        res = self.post(
            "api_v1:service-request-cancel",
            role=ROLE_OTHER_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
            payload={"reason": "other"},
        )
        self.assert_denied(res)

    def test_dispute_by_client(self):
        ServiceRequest.objects.filter(pk=self.request.pk).update(
            status=Status.COMPLETED,
        )
        res = self.post(
            "api_v1:service-request-dispute",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
            payload={"reason": "Bathroom was skipped."},
        )
        self.assert_http_status(res, 200)
        assert res.data["status"] == Status.DISPUTED
        assert res.data["dispute_reason"] == "Bathroom was skipped."


class TestServiceRequestCatalog(MarketplaceAPITestCase):
    def test_categories_and_urgency_levels(self):
        res = self.get("api_v1:service-request-categories", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert {"value": "cleaning", "label": "Cleaning"} in res.data

        res = self.get("api_v1:service-request-urgency-levels", role=ROLE_CLIENT)
        assert [row["value"] for row in res.data] == [
            "low",
            "medium",
            "high",
            "emergency",
        ]

    def test_nearby_requires_coordinates(self):
        res = self.get("api_v1:service-request-nearby", role=ROLE_PROFESSIONAL)
        self.assert_http_status(res, 400)

    def test_nearby_returns_open_requests_by_distance(self):
        near = create_service_request(
            self.users[ROLE_CLIENT],
            latitude=4.70,
            longitude=-74.05,
        )
        create_service_request(
            self.users[ROLE_CLIENT],
            latitude=6.24,
            longitude=-75.58,
        )
        res = self.get(
            "api_v1:service-request-nearby",
            role=ROLE_PROFESSIONAL,
            data={"lat": 4.711, "lng": -74.0721, "radius": 20},
        )
        self.assert_http_status(res, 200)
        rows = self.extract_results(res)
        assert [row["id"] for row in rows] == [near.pk]
        assert rows[0]["distance_km"] < 5

    def test_stats_for_client(self):
        create_service_request(self.users[ROLE_CLIENT])
        create_accepted_request(self.users[ROLE_CLIENT], self.professional)
        res = self.get("api_v1:service-request-stats", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert res.data["total"] == 2
        assert res.data["by_status"] == {"pending": 1, "accepted": 1}
