from decimal import Decimal

from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken
from rest_framework_simplejwt.tokens import RefreshToken

from proserv.audit.models import AuditLog
from proserv.notifications.models import Notification
from proserv.payments.models import Payment
from proserv.professionals.models import Credential
from proserv.professionals.models import Professional
from proserv.service_requests.models import ServiceRequest
from tests.factories import create_accepted_request
from tests.factories import create_payment
from tests.factories import create_review
from tests.factories import create_service_request
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_OTHER_CLIENT
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class TestDashboard(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        done = create_accepted_request(
            self.users[ROLE_CLIENT],
            self.professional,
            status=ServiceRequest.Status.COMPLETED,
        )
        create_payment(done)
        create_review(done, rating=4)
        create_service_request(self.users[ROLE_OTHER_CLIENT])

    def test_admin_only(self):
        for role in (ROLE_CLIENT, ROLE_PROFESSIONAL):
            self.assert_denied(self.get("api_v1:dashboard:dashboard", role=role))
            self.assert_denied(self.get("api_v1:dashboard:stats", role=role))
        self.assert_denied(self.get("api_v1:dashboard:stats", role=None), 401)

    def test_stats(self):
        res = self.get("api_v1:dashboard:stats", role=ROLE_ADMIN)
        self.assert_http_status(res, 200)
        data = res.data
        assert data["users"]["total"] == 4
        assert data["users"]["by_role"] == {
            "admin": 1,
            "client": 2,
            "professional": 2,
        }
        assert data["users"]["recently_active"] == 2
        assert data["professionals"]["by_verification"] == {"verified": 2}
        assert data["service_requests"]["by_status"] == {
            "completed": 1,
            "pending": 1,
        }
        assert data["payments"]["completed_payments"] == 1
        assert data["payments"]["total_revenue"] == Decimal("119000.00")
        assert data["reviews"] == {"total": 1, "average_rating": 4.0}

    def test_dashboard_adds_activity_and_recent_actions(self):
        AuditLog.objects.create(action="login", actor=self.users[ROLE_CLIENT])
        res = self.get("api_v1:dashboard:dashboard", role=ROLE_ADMIN)
        self.assert_http_status(res, 200)
        assert sum(month["users"] for month in res.data["activity"]) == 4
        assert sum(month["professionals"] for month in res.data["activity"]) == 2
        assert res.data["recent_actions"][0]["actor__email"] == "client@example.com"


class TestUserManagement(MarketplaceAPITestCase):
    def test_toggle_active_revokes_tokens(self):
        target = self.users[ROLE_OTHER_CLIENT]
        refresh = RefreshToken.for_user(target)
        res = self.post(
            "api_v1:dashboard:user-toggle-active",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": target.pk},
            payload={"reason": "Spam"},
        )
        self.assert_http_status(res, 200)
        assert res.data["is_active"] is False
        assert BlacklistedToken.objects.filter(token__jti=refresh["jti"]).exists()
        log = AuditLog.objects.get(action="user_deactivated")
        assert log.message == "Spam"
        assert log.before == {"is_active": True}
        assert log.after == {"is_active": False}

        res = self.post(
            "api_v1:dashboard:user-toggle-active",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": target.pk},
            payload={"is_active": True},
        )
        assert res.data["is_active"] is True

    def test_admin_cannot_deactivate_self(self):
        admin = self.users[ROLE_ADMIN]
        res = self.post(
            "api_v1:dashboard:user-toggle-active",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": admin.pk},
        )
        self.assert_http_status(res, 400)
        admin.refresh_from_db()
        assert admin.is_active

    def test_password_reset_unlocks_and_is_audited(self):
        target = self.users[ROLE_CLIENT]
        target.login_attempts = 5
        target.save()
        res = self.post(
            "api_v1:dashboard:user-password",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": target.pk},
            payload={"new_password": "Quiet-Harbor-2026"},
        )
        self.assert_http_status(res, 200)
        target.refresh_from_db()
        assert target.check_password("Quiet-Harbor-2026")
        assert target.login_attempts == 0
        assert AuditLog.objects.filter(
            action="password_reset_by_admin",
            record_id=target.pk,
        ).exists()

    def test_password_reset_validates_strength(self):
        res = self.post(
            "api_v1:dashboard:user-password",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": self.users[ROLE_CLIENT].pk},
            payload={"new_password": "12345678"},
        )
        self.assert_http_status(res, 400)

    def test_user_search(self):
        res = self.get(
            "api_v1:dashboard:user-list",
            role=ROLE_ADMIN,
            data={"role": "client"},
        )
        self.assert_http_status(res, 200)
        assert len(self.extract_results(res)) == 2


class TestModeration(MarketplaceAPITestCase):
    def test_verification_decision(self):
        Professional.objects.filter(pk=self.other_professional.pk).update(
            verification_status=Professional.VerificationStatus.IN_REVIEW,
        )
        Credential.objects.create(
            professional=self.other_professional,
            document_type="id_document",
            document_number="1020304050",
        )
        res = self.post(
            "api_v1:dashboard:professional-verification",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": self.other_professional.pk},
            payload={"approve": False, "notes": "Blurry scan"},
        )
        self.assert_http_status(res, 200)
        assert res.data["verification_status"] == "rejected"
        assert not Credential.objects.filter(
            status=Credential.Status.PENDING,
        ).exists()
        assert Notification.objects.filter(
            recipient=self.other_professional.user,
            data__template="verification_rejected",
        ).exists()
        log = AuditLog.objects.get(action="verification_decided")
        assert log.after == {"verification_status": "rejected"}

    def test_force_status(self):
        request = create_service_request(self.users[ROLE_CLIENT])
        res = self.post(
            "api_v1:dashboard:service-request-status",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": request.pk},
            payload={"status": "completed", "note": "Closed by support"},
        )
        self.assert_http_status(res, 200)
        request.refresh_from_db()
        assert request.status == ServiceRequest.Status.COMPLETED
        assert request.status_history.filter(to_status="completed").exists()
        assert AuditLog.objects.filter(action="service_status_overridden").exists()

    def test_force_status_rejects_unknown(self):
        request = create_service_request(self.users[ROLE_CLIENT])
        res = self.post(
            "api_v1:dashboard:service-request-status",
            role=ROLE_ADMIN,
            reverse_kwargs={"pk": request.pk},
            payload={"status": "teleported"},
        )
        self.assert_http_status(res, 400)

    def test_payment_stats_follow_filters(self):
        create_payment(
            create_accepted_request(self.users[ROLE_CLIENT], self.professional),
        )
        create_payment(
            create_accepted_request(self.users[ROLE_CLIENT], self.professional),
            status=Payment.Status.FAILED,
        )
        res = self.get("api_v1:dashboard:payment-stats", role=ROLE_ADMIN)
        self.assert_http_status(res, 200)
        assert res.data["total_payments"] == 2
        assert res.data["success_rate"] == 50.0

        res = self.get(
            "api_v1:dashboard:payment-stats",
            role=ROLE_ADMIN,
            data={"status": "failed"},
        )
        assert res.data["total_payments"] == 1
        assert res.data["total_revenue"] == 0
