from datetime import timedelta

import pytest
from django.utils import timezone

from proserv.quotes.models import Quote
from proserv.quotes.tasks import expire_stale_quotes
from tests.factories import create_professional
from tests.factories import create_quote
from tests.factories import create_service_request
from tests.factories import create_user

pytestmark = pytest.mark.django_db


def test_expire_stale_quotes_only_touches_pending_past_validity():
    request = create_service_request(create_user("ana"))
    stale = create_quote(
        request,
        create_professional("pro"),
        valid_until=timezone.now() - timedelta(hours=1),
    )
    fresh = create_quote(request, create_professional("pro2"))
    accepted = create_quote(
        request,
        create_professional("pro3"),
        status=Quote.Status.ACCEPTED,
        valid_until=timezone.now() - timedelta(hours=1),
    )

    assert expire_stale_quotes() == 1

    stale.refresh_from_db()
    fresh.refresh_from_db()
    accepted.refresh_from_db()
    assert stale.status == Quote.Status.EXPIRED
    assert stale.is_expired
    assert fresh.status == Quote.Status.PENDING
    assert accepted.status == Quote.Status.ACCEPTED
