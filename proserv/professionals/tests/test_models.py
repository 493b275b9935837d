from datetime import date
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from proserv.professionals.models import AvailabilityException
from proserv.reviews.models import Review
from tests.factories import create_accepted_request
from tests.factories import create_professional
from tests.factories import create_review
from tests.factories import create_user

pytestmark = pytest.mark.django_db

BOGOTA = ZoneInfo("America/Bogota")


def test_professional_profile_created_with_account():
    professional = create_professional("plumber")
    assert professional.user.professional_profile == professional
    assert professional.is_verified
    assert professional.categories() == {"cleaning"}


def test_completion_rate():
    professional = create_professional("plumber")
    assert professional.completion_rate == 0.0
    professional.total_jobs = 8
    professional.completed_jobs = 6
    assert professional.completion_rate == 75.0


def test_is_available_at_follows_weekly_schedule():
    professional = create_professional("plumber")
    # 2026-10-19 is a Monday, 2026-10-18 a Sunday.
    assert professional.is_available_at(datetime(2026, 10, 19, 10, 0, tzinfo=BOGOTA))
    assert not professional.is_available_at(
        datetime(2026, 10, 19, 19, 0, tzinfo=BOGOTA),
    )
    assert not professional.is_available_at(
        datetime(2026, 10, 18, 11, 0, tzinfo=BOGOTA),
    )


def test_is_available_at_honours_exceptions():
    professional = create_professional("plumber")
    AvailabilityException.objects.create(
        professional=professional,
        date=date(2026, 10, 19),
        is_available=False,
        reason="Holiday",
    )
    assert not professional.is_available_at(
        datetime(2026, 10, 19, 10, 0, tzinfo=BOGOTA),
    )


def test_recompute_rating_uses_visible_reviews_only():
    professional = create_professional("plumber")
    first = create_accepted_request(create_user("ana"), professional)
    second = create_accepted_request(create_user("luis"), professional)
    create_review(first, rating=5, aspects={"quality": 5, "punctuality": 4})
    create_review(second, rating=2, aspects={"quality": 3})
    Review.objects.filter(service_request=second).update(
        status=Review.Status.HIDDEN,
    )

    professional.recompute_rating()

    assert professional.rating_count == 1
    assert professional.rating_average == Decimal("5.00")
    assert professional.rating_breakdown["quality"] == 5
    assert professional.rating_breakdown["value"] == 0
