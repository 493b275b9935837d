import pytest
from rest_framework.test import APIClient

from proserv.realtime.presence import registry
from proserv.users.models import User
from tests.factories import create_admin
from tests.factories import create_professional
from tests.factories import create_user


@pytest.fixture(autouse=True)
def _media_storage(settings, tmpdir) -> None:
    settings.MEDIA_ROOT = tmpdir.strpath


@pytest.fixture
def user(db) -> User:
    return create_user("client")


@pytest.fixture
def admin_user(db) -> User:
    return create_admin()


@pytest.fixture
def professional(db):
    return create_professional("pro")


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def _presence_registry():
    registry.clear()
    yield
    registry.clear()
