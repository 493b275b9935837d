from datetime import timedelta

import pytest
from django.utils import timezone

from proserv.users.models import Address
from proserv.users.models import DeviceToken
from proserv.users.models import User
from tests.factories import create_user

pytestmark = pytest.mark.django_db


def test_name_is_built_from_first_and_last(user: User):
    assert user.name == "Client"
    user.last_name = "Gomez"
    user.save()
    assert user.name == "Client Gomez"


def test_admin_role_implies_staff(admin_user: User):
    assert admin_user.is_staff
    assert admin_user.is_admin_role
    assert not create_user("plain").is_admin_role


def test_default_preferences(user: User):
    assert user.preferences["currency"] == "COP"
    assert user.notification_channels() == {"email": True, "push": True, "sms": False}


def test_lockout_after_max_attempts(user: User, settings):
    settings.LOGIN_MAX_ATTEMPTS = 3
    for _ in range(2):
        user.register_failed_login()
    assert not user.is_locked

    user.register_failed_login()
    assert user.is_locked
    assert user.lock_until > timezone.now()

    user.reset_login_attempts()
    user.refresh_from_db()
    assert user.login_attempts == 0
    assert not user.is_locked


def test_expired_lock_restarts_count(user: User):
    user.login_attempts = 5
    user.lock_until = timezone.now() - timedelta(minutes=1)
    user.save()

    user.register_failed_login()
    assert user.login_attempts == 1
    assert user.lock_until is None


def test_first_address_becomes_default(user: User):
    home = Address.objects.create(user=user, street="Calle 1", city="Bogota")
    office = Address.objects.create(user=user, street="Carrera 7", city="Bogota")
    assert home.is_default
    assert not office.is_default

    office.is_default = True
    office.save()
    home.refresh_from_db()
    assert not home.is_default


def test_device_tokens_keep_most_recent(user: User, settings):
    settings.MAX_DEVICE_TOKENS = 3
    for i in range(4):
        DeviceToken.register(user, f"token-{i}")
    DeviceToken.register(user, "token-1", DeviceToken.Platform.ANDROID)

    tokens = list(user.device_tokens.values_list("token", "platform"))
    assert tokens == [
        ("token-1", "android"),
        ("token-3", "web"),
        ("token-2", "web"),
    ]
