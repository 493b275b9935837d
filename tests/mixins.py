from __future__ import annotations

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from tests.factories import create_admin
from tests.factories import create_professional
from tests.factories import create_user

ROLE_CLIENT = "client"
ROLE_OTHER_CLIENT = "other_client"
ROLE_PROFESSIONAL = "professional"
ROLE_OTHER_PROFESSIONAL = "other_professional"
ROLE_ADMIN = "admin"


class MarketplaceAPITestCase(APITestCase):
    """Base test case with one account per marketplace role and request helpers."""

    def setUp(self):
        super().setUp()
        self.professional = create_professional("pro")
        self.other_professional = create_professional("otherpro")
        self.users = {
            ROLE_CLIENT: create_user("client", last_name="Perez"),
            ROLE_OTHER_CLIENT: create_user("otherclient"),
            ROLE_PROFESSIONAL: self.professional.user,
            ROLE_OTHER_PROFESSIONAL: self.other_professional.user,
            ROLE_ADMIN: create_admin(),
        }

    # Utilities -------------------------------------------------------------
    def authenticate(self, role: str | None):
        if role is None:
            self.client.force_authenticate(user=None)
        else:
            # Reload so views see rows changed through queryset updates.
            user = type(self.users[role]).objects.get(pk=self.users[role].pk)
            self.client.force_authenticate(user=user)

    def assert_http_status(self, response, expected_status: int):
        msg = getattr(response, "data", response)
        assert response.status_code == expected_status, msg

    def get(self, url_name: str, *, role: str | None, reverse_kwargs=None, **kwargs):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.get(url, **kwargs)

    def post(
        self, url_name: str, *, role: str | None, payload=None, reverse_kwargs=None
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.post(url, data=payload or {}, format="json")

    def patch(self, url_name: str, *, role: str, payload=None, reverse_kwargs=None):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.patch(url, data=payload or {}, format="json")

    def put(self, url_name: str, *, role: str, payload=None, reverse_kwargs=None):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.put(url, data=payload or {}, format="json")

    def delete(self, url_name: str, *, role: str, reverse_kwargs=None):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.delete(url)

    def assert_denied(self, response, code=status.HTTP_403_FORBIDDEN):
        assert response.status_code == code, response.data

    def extract_results(self, response):
        data = response.data
        if isinstance(data, dict) and "results" in data:
            return data["results"]
        return data if isinstance(data, list) else []
