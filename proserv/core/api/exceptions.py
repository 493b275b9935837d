from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler
from rest_framework.views import set_rollback

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The resource is in a conflicting state."
    default_code = "conflict"


DEFAULT_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "Validation failed.",
    status.HTTP_401_UNAUTHORIZED: "Authentication required.",
    status.HTTP_403_FORBIDDEN: "You do not have permission to perform this action.",
    status.HTTP_404_NOT_FOUND: "Resource not found.",
    status.HTTP_409_CONFLICT: "Conflict.",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error.",
}


def _first_message(detail: Any) -> str | None:
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    if isinstance(detail, dict):
        if "detail" in detail:
            return _first_message(detail["detail"])
        if "non_field_errors" in detail:
            return _first_message(detail["non_field_errors"])
    return None


def build_error_body(status_code: int, data: Any) -> dict[str, Any]:
    message = _first_message(data) or DEFAULT_MESSAGES.get(status_code, "Error.")
    errors = None
    if isinstance(data, dict) and set(data) - {"detail"}:
        errors = {k: v for k, v in data.items() if k != "detail"}
    elif isinstance(data, list):
        errors = data
    return {
        "success": False,
        "message": str(message),
        "errors": errors,
        "timestamp": timezone.now().isoformat(),
    }


def envelope_exception_handler(exc, context):
    """Render every API error as ``{success: false, message, errors, timestamp}``.

    Model-level ``ValidationError`` is mapped to a 400 like its DRF cousin.
    Anything DRF does not know about becomes a 500 after being logged.
    """
    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, "error_dict") else exc.messages
        exc = ValidationError(detail=detail)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(
            "Unhandled error in %s",
            view.__class__.__name__ if view else "view",
            exc_info=exc,
        )
        set_rollback()
        response = Response(status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        response.data = build_error_body(response.status_code, None)
        return response

    response.data = build_error_body(response.status_code, response.data)
    return response
