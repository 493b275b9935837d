from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from proserv.service_requests.models import ServiceRequest
from tests.factories import create_accepted_request
from tests.factories import create_professional
from tests.factories import create_user

pytestmark = pytest.mark.django_db


def test_calculate_final_cost_applies_commission():
    client = create_user("ana")
    request = create_accepted_request(
        client,
        create_professional("pro"),
        quoted_cost=Decimal("100000.00"),
        additional_costs=[{"description": "Materials", "amount": "20000.00"}],
    )
    total = request.calculate_final_cost()
    assert total == Decimal("120000.00")
    assert request.platform_fee == Decimal("18000.00")
    assert request.professional_earnings == Decimal("102000.00")


def test_is_overdue_only_for_active_requests():
    client = create_user("ana")
    request = create_accepted_request(client, create_professional("pro"))
    ServiceRequest.objects.filter(pk=request.pk).update(
        preferred_date=timezone.localdate() - timedelta(days=2),
    )
    request.refresh_from_db()
    assert request.is_overdue

    request.status = ServiceRequest.Status.COMPLETED
    assert not request.is_overdue


def test_actual_duration_minutes():
    client = create_user("ana")
    request = create_accepted_request(client, create_professional("pro"))
    assert request.actual_duration_minutes is None
    request.actual_start = timezone.now()
    request.actual_end = request.actual_start + timedelta(hours=2, minutes=30)
    assert request.actual_duration_minutes == 150


def test_is_participant():
    client = create_user("ana")
    professional = create_professional("pro")
    request = create_accepted_request(client, professional)
    assert request.is_participant(client)
    assert request.is_participant(professional.user)
    assert not request.is_participant(create_user("mallory"))
