import json

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from proserv.core.api.exceptions import Conflict
from proserv.core.api.exceptions import build_error_body
from proserv.core.api.exceptions import envelope_exception_handler
from proserv.core.api.renderers import EnvelopeJSONRenderer
from proserv.core.api.responses import envelope
from proserv.core.api.responses import error_response


def render(response: Response) -> dict:
    response.exception = getattr(response, "exception", False)
    body = EnvelopeJSONRenderer().render(
        response.data,
        renderer_context={"response": response},
    )
    return json.loads(body)


def test_success_payload_is_wrapped():
    body = render(Response({"id": 1}))
    assert body["success"] is True
    assert body["message"] == "OK"
    assert body["data"] == {"id": 1}
    assert "timestamp" in body


def test_created_gets_default_message_and_custom_message_wins():
    assert render(Response({}, status=201))["message"] == "Created successfully."
    assert render(envelope(None, message="Done."))["message"] == "Done."


def test_paginated_payload_is_lifted_with_extras_in_meta():
    body = render(
        Response(
            {
                "results": [1, 2],
                "pagination": {"page": 1, "total": 2},
                "summary": {"average": 4.5},
            },
        ),
    )
    assert body["data"] == [1, 2]
    assert body["pagination"] == {"page": 1, "total": 2}
    assert body["meta"] == {"summary": {"average": 4.5}}


def test_error_bodies_pass_through():
    body = render(error_response(400, "Payment failed: declined", {"payment_id": 7}))
    assert body["success"] is False
    assert body["message"] == "Payment failed: declined"
    assert body["errors"] == {"payment_id": 7}


def test_no_content_is_not_wrapped():
    response = Response(status=status.HTTP_204_NO_CONTENT)
    response.exception = False
    rendered = EnvelopeJSONRenderer().render(
        None,
        renderer_context={"response": response},
    )
    assert rendered == b""


def test_error_body_prefers_detail_then_field_errors():
    body = build_error_body(400, {"email": ["This field is required."]})
    assert body["message"] == "Validation failed."
    assert body["errors"] == {"email": ["This field is required."]}

    body = build_error_body(400, {"non_field_errors": ["Dates overlap."]})
    assert body["message"] == "Dates overlap."


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (Conflict("Already paid."), 409),
        (NotFound(), 404),
        (DjangoValidationError({"rating": ["Too high."]}), 400),
    ],
)
def test_exception_handler_envelopes_known_errors(exc, code):
    response = envelope_exception_handler(exc, {})
    assert response.status_code == code
    assert response.data["success"] is False
    assert response.data["message"]


@pytest.mark.django_db
def test_unhandled_errors_become_500():
    response = envelope_exception_handler(RuntimeError("boom"), {})
    assert response.status_code == 500
    assert response.data["message"] == "Internal server error."
