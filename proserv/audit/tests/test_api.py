from datetime import timedelta

from django.utils import timezone

from proserv.audit.models import AuditLog
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class TestRecentAuditEndpoint(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        base = timezone.now()
        for i in range(6):
            row = AuditLog.objects.create(
                action="payment_refunded" if i % 2 else "user_updated",
                actor=self.users[ROLE_ADMIN] if i < 3 else None,
                message=str(i),
            )
            AuditLog.objects.filter(pk=row.pk).update(
                created_at=base + timedelta(seconds=i),
            )

    def test_recent_audit_requires_admin(self):
        for role in (ROLE_CLIENT, ROLE_PROFESSIONAL):
            self.assert_denied(self.get("api_v1:audit:recent", role=role))
        res = self.get("api_v1:audit:recent", role=None)
        self.assert_http_status(res, 401)

    def test_recent_audit_returns_latest_5(self):
        res = self.get("api_v1:audit:recent", role=ROLE_ADMIN)
        self.assert_http_status(res, 200)
        assert res.data["limit"] == 5
        assert [r["message"] for r in res.data["results"]] == ["5", "4", "3", "2", "1"]

    def test_limit_is_clamped(self):
        res = self.get("api_v1:audit:recent", role=ROLE_ADMIN, data={"limit": "500"})
        assert res.data["limit"] == 50
        assert len(res.data["results"]) == 6

        res = self.get("api_v1:audit:recent", role=ROLE_ADMIN, data={"limit": "x"})
        assert res.data["limit"] == 5

    def test_filters(self):
        res = self.get(
            "api_v1:audit:recent",
            role=ROLE_ADMIN,
            data={"action": "payment_refunded", "limit": 10},
        )
        assert [r["message"] for r in res.data["results"]] == ["5", "3", "1"]

        res = self.get(
            "api_v1:audit:recent",
            role=ROLE_ADMIN,
            data={"actor": self.users[ROLE_ADMIN].pk, "limit": 10},
        )
        rows = res.data["results"]
        assert [r["message"] for r in rows] == ["2", "1", "0"]
        assert rows[0]["actor"]["id"] == self.users[ROLE_ADMIN].pk

    def test_record_filter(self):
        payment_log = AuditLog.objects.create(
            action="payment_refunded",
            model_name="payments.Payment",
            record_id=42,
            user_agent="pytest",
        )
        AuditLog.objects.create(
            action="payment_refunded",
            model_name="payments.Payment",
            record_id=43,
        )
        res = self.get(
            "api_v1:audit:recent",
            role=ROLE_ADMIN,
            data={"model": "payments.payment", "record": 42},
        )
        rows = res.data["results"]
        assert [r["id"] for r in rows] == [payment_log.pk]
        assert rows[0]["user_agent"] == "pytest"
