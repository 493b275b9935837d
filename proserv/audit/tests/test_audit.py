import pytest
from django.contrib.auth.signals import user_logged_in
from django.test import RequestFactory

from proserv.audit.models import AuditLog
from proserv.audit.utils import client_ip
from proserv.audit.utils import log_action
from proserv.users.models import User

pytestmark = pytest.mark.django_db


def test_audit_log_points_at_target(user: User):
    log = log_action("user_updated", actor=user, target=user, message="hello")
    assert log.actor == user
    assert log.model_name == "users.User"
    assert log.record_id == user.pk
    assert str(log).endswith(f"user_updated users.User#{user.pk}")


def test_non_user_actor_is_stored_as_system():
    log = log_action("cron", actor="scheduler")
    assert log.actor is None
    assert log.model_name == ""
    assert log.record_id is None
    assert str(log).endswith("system: cron")


def test_request_metadata_is_captured():
    request = RequestFactory().get(
        "/",
        HTTP_USER_AGENT="x" * 400,
        HTTP_X_FORWARDED_FOR="203.0.113.7",
    )
    log = log_action("probe", request=request)
    assert log.ip_address == "203.0.113.7"
    assert len(log.user_agent) == 255


def test_client_ip_prefers_forwarded_header():
    rf = RequestFactory()
    request = rf.get("/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1")
    assert client_ip(request) == "203.0.113.7"
    assert client_ip(rf.get("/", REMOTE_ADDR="198.51.100.2")) == "198.51.100.2"
    assert client_ip(None) == ""


def test_login_signal_is_audited(user: User):
    request = RequestFactory().get("/", HTTP_USER_AGENT="pytest")
    user_logged_in.send(sender=User, request=request, user=user)

    log = AuditLog.objects.get(action="login")
    assert log.actor == user
    assert log.record_id == user.pk
    assert log.user_agent == "pytest"
    assert log.ip_address == "127.0.0.1"
