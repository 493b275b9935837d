import pytest

from proserv.service_requests.models import ServiceRequest
from proserv.service_requests.transitions import allowed_targets
from proserv.service_requests.transitions import can_transition

Status = ServiceRequest.Status


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (Status.PENDING, Status.QUOTED),
        (Status.QUOTED, Status.ACCEPTED),
        (Status.ACCEPTED, Status.CONFIRMED),
        (Status.CONFIRMED, Status.IN_PROGRESS),
        (Status.IN_PROGRESS, Status.COMPLETED),
        (Status.COMPLETED, Status.DISPUTED),
        (Status.DISPUTED, Status.CANCELLED),
    ],
)
def test_forward_moves_are_allowed(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (Status.PENDING, Status.COMPLETED),
        (Status.COMPLETED, Status.CANCELLED),
        (Status.CANCELLED, Status.PENDING),
        (Status.ACCEPTED, Status.IN_PROGRESS),
    ],
)
def test_skipping_or_reviving_is_refused(current, target):
    assert not can_transition(current, target)


def test_cancelled_is_terminal():
    assert allowed_targets(Status.CANCELLED) == []
