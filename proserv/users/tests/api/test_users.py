from decimal import Decimal

from proserv.audit.models import AuditLog
from proserv.service_requests.models import ServiceRequest
from proserv.users.models import Address
from tests.factories import create_accepted_request
from tests.factories import create_payment
from tests.factories import create_review
from tests.factories import create_service_request
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_OTHER_CLIENT
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class TestOwnProfile(MarketplaceAPITestCase):
    def test_get_me(self):
        res = self.get("api_v1:user-me", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert res.data["full_name"] == "Client Perez"
        assert res.data["preferences"]["language"] == "es"

    def test_update_me_is_audited(self):
        res = self.patch(
            "api_v1:user-me",
            role=ROLE_CLIENT,
            payload={"first_name": "Camila", "phone": "+57 300 000 0000"},
        )
        self.assert_http_status(res, 200)
        assert res.data["full_name"] == "Camila Perez"
        log = AuditLog.objects.get(action="user_updated")
        assert log.message == "fields=first_name,phone"

    def test_identity_fields_are_immutable(self):
        res = self.patch(
            "api_v1:user-me",
            role=ROLE_CLIENT,
            payload={"email": "new@example.com", "role": "admin"},
        )
        self.assert_http_status(res, 400)
        assert set(res.data["errors"]) == {"email", "role"}
        self.users[ROLE_CLIENT].refresh_from_db()
        assert self.users[ROLE_CLIENT].role == "client"

    def test_anonymous_is_rejected(self):
        self.assert_denied(self.get("api_v1:user-me", role=None), 401)

    def test_preferences_are_merged(self):
        res = self.patch(
            "api_v1:user-preferences",
            role=ROLE_CLIENT,
            payload={"language": "en", "notifications": {"sms": True}},
        )
        self.assert_http_status(res, 200)
        assert res.data["language"] == "en"
        assert res.data["notifications"] == {
            "email": True,
            "push": True,
            "sms": True,
        }

    def test_unknown_preference_keys(self):
        res = self.patch(
            "api_v1:user-preferences",
            role=ROLE_CLIENT,
            payload={"notifications": {"pigeon": True}},
        )
        self.assert_http_status(res, 400)
        res = self.patch(
            "api_v1:user-preferences",
            role=ROLE_CLIENT,
            payload={"currency": "EUR"},
        )
        self.assert_http_status(res, 400)


class TestActivity(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        client = self.users[ROLE_CLIENT]
        self.done = create_accepted_request(
            client,
            self.professional,
            status=ServiceRequest.Status.COMPLETED,
        )
        self.open = create_service_request(client)
        create_service_request(self.users[ROLE_OTHER_CLIENT])

    def test_service_history_for_both_sides(self):
        res = self.get("api_v1:user-service-history", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        ids = {row["id"] for row in self.extract_results(res)}
        assert ids == {self.done.pk, self.open.pk}

        res = self.get(
            "api_v1:user-service-history",
            role=ROLE_CLIENT,
            data={"status": "completed"},
        )
        assert [row["id"] for row in self.extract_results(res)] == [self.done.pk]

        res = self.get("api_v1:user-service-history", role=ROLE_PROFESSIONAL)
        assert [row["id"] for row in self.extract_results(res)] == [self.done.pk]

    def test_reviews_received_with_summary(self):
        create_review(self.done, rating=4)
        res = self.get(
            "api_v1:user-reviews",
            role=ROLE_OTHER_CLIENT,
            reverse_kwargs={"pk": self.professional.user.pk},
        )
        self.assert_http_status(res, 200)
        assert len(self.extract_results(res)) == 1
        assert res.data["summary"] == {"average": 4.0, "total": 1}

    def test_stats(self):
        create_payment(self.done)
        create_review(self.done, rating=5)

        res = self.get("api_v1:user-stats", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert res.data["requests"]["total"] == 2
        assert res.data["requests"]["by_status"] == {"completed": 1, "pending": 1}
        assert Decimal(str(res.data["payments"]["spent"])) == Decimal("119000.00")
        assert res.data["reviews"]["given"] == 1

        res = self.get("api_v1:user-stats", role=ROLE_PROFESSIONAL)
        assert res.data["requests"]["total"] == 1
        assert Decimal(str(res.data["payments"]["earned"])) > 0
        assert res.data["reviews"]["received"] == 1
        assert res.data["reviews"]["average_rating"] == 5.0


class TestDirectory(MarketplaceAPITestCase):
    def test_list_is_admin_only(self):
        self.assert_denied(self.get("api_v1:user-list", role=ROLE_CLIENT))
        res = self.get("api_v1:user-list", role=ROLE_ADMIN)
        self.assert_http_status(res, 200)
        assert len(self.extract_results(res)) == 5
        assert "login_attempts" in self.extract_results(res)[0]

    def test_admin_filters(self):
        res = self.get(
            "api_v1:user-list",
            role=ROLE_ADMIN,
            data={"role": "professional"},
        )
        assert len(self.extract_results(res)) == 2

        res = self.get("api_v1:user-list", role=ROLE_ADMIN, data={"q": "perez"})
        rows = self.extract_results(res)
        assert [row["id"] for row in rows] == [self.users[ROLE_CLIENT].pk]

    def test_public_profile_honours_privacy(self):
        pro = self.professional.user
        res = self.get(
            "api_v1:user-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": pro.pk},
        )
        self.assert_http_status(res, 200)
        assert res.data["email"] is None
        assert res.data["phone"] is None
        assert res.data["professional_id"] == self.professional.pk

        pro.preferences = {
            **pro.preferences,
            "privacy": {"show_phone": False, "show_email": True},
        }
        pro.save()
        res = self.get(
            "api_v1:user-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": pro.pk},
        )
        assert res.data["email"] == pro.email

    def test_inactive_profiles_are_hidden(self):
        other = self.users[ROLE_OTHER_CLIENT]
        other.is_active = False
        other.save()
        res = self.get(
            "api_v1:user-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": other.pk},
        )
        self.assert_http_status(res, 404)


class TestAddresses(MarketplaceAPITestCase):
    def add(self, street, role=ROLE_CLIENT, **extra):
        return self.post(
            "api_v1:address-list",
            role=role,
            payload={"street": street, "city": "Bogota", **extra},
        )

    def test_first_address_is_default(self):
        res = self.add("Calle 1")
        self.assert_http_status(res, 201)
        assert res.data["is_default"] is True
        assert self.add("Calle 2").data["is_default"] is False

    def test_list_is_private_and_unpaginated(self):
        self.add("Calle 1")
        self.add("Carrera 7", role=ROLE_OTHER_CLIENT)
        res = self.get("api_v1:address-list", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert [row["street"] for row in res.data] == ["Calle 1"]

    def test_set_default(self):
        first = self.add("Calle 1").data["id"]
        second = self.add("Calle 2").data["id"]
        res = self.post(
            "api_v1:address-set-default",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": second},
        )
        self.assert_http_status(res, 200)
        assert Address.objects.get(pk=second).is_default
        assert not Address.objects.get(pk=first).is_default

    def test_deleting_default_promotes_another(self):
        first = self.add("Calle 1").data["id"]
        second = self.add("Calle 2").data["id"]
        res = self.delete(
            "api_v1:address-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": first},
        )
        self.assert_http_status(res, 204)
        assert Address.objects.get(pk=second).is_default

    def test_coordinates_are_validated(self):
        self.assert_http_status(self.add("Calle 1", latitude=120), 400)
