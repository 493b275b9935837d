import pytest
from django.db import IntegrityError
from django.db import transaction

from proserv.reviews.models import Review
from tests.factories import create_accepted_request
from tests.factories import create_professional
from tests.factories import create_review
from tests.factories import create_user

pytestmark = pytest.mark.django_db


def test_reviewer_and_reviewee_must_differ():
    client = create_user("ana")
    request = create_accepted_request(client, create_professional("pro"))
    with pytest.raises(IntegrityError), transaction.atomic():
        Review.objects.create(
            service_request=request,
            reviewer=client,
            reviewee=client,
            reviewer_type=Review.ReviewerType.CLIENT,
            rating=5,
        )


def test_one_review_per_request_and_reviewer():
    request = create_accepted_request(create_user("ana"), create_professional("pro"))
    create_review(request)
    with pytest.raises(IntegrityError), transaction.atomic():
        create_review(request, rating=1)


def test_visible_hides_private_and_moderated_reviews():
    professional = create_professional("pro")
    shown = create_review(create_accepted_request(create_user("a"), professional))
    create_review(
        create_accepted_request(create_user("b"), professional),
        is_public=False,
    )
    create_review(
        create_accepted_request(create_user("c"), professional),
        status=Review.Status.HIDDEN,
    )
    assert list(Review.objects.visible()) == [shown]


def test_aspects_average():
    request = create_accepted_request(create_user("ana"), create_professional("pro"))
    review = create_review(request, aspects={"quality": 5, "punctuality": 3})
    assert review.aspects_average == 4.0
