from rest_framework import status as http_status
from rest_framework.response import Response

from proserv.core.api.exceptions import build_error_body


def envelope(data=None, *, message: str = "", status: int = http_status.HTTP_200_OK):
    """Response whose envelope carries ``message`` instead of the default."""
    response = Response(data, status=status)
    if message:
        response.envelope_message = message
    return response


def error_response(status: int, message: str, errors=None):
    """Error envelope returned without raising, so the request still commits."""
    data = {"detail": message}
    if errors:
        data.update(errors)
    return Response(build_error_body(status, data), status=status)
