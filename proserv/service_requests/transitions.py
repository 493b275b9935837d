"""Allowed moves between service request states."""

from proserv.service_requests.models import ServiceRequest

Status = ServiceRequest.Status

TRANSITIONS: dict[str, frozenset[str]] = {
    Status.PENDING: frozenset({Status.QUOTED, Status.CANCELLED}),
    Status.QUOTED: frozenset({Status.PENDING, Status.ACCEPTED, Status.CANCELLED}),
    Status.ACCEPTED: frozenset({Status.CONFIRMED, Status.CANCELLED}),
    Status.CONFIRMED: frozenset({Status.IN_PROGRESS, Status.CANCELLED}),
    Status.IN_PROGRESS: frozenset(
        {Status.COMPLETED, Status.DISPUTED, Status.CANCELLED},
    ),
    Status.COMPLETED: frozenset({Status.DISPUTED}),
    Status.DISPUTED: frozenset({Status.COMPLETED, Status.CANCELLED}),
    Status.CANCELLED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def allowed_targets(current: str) -> list[str]:
    return sorted(TRANSITIONS.get(current, frozenset()))
