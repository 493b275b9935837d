from django.utils import timezone
from rest_framework import status
from rest_framework.renderers import JSONRenderer


def _default_message(response) -> str:
    if response.status_code == status.HTTP_201_CREATED:
        return "Created successfully."
    return "OK"


class EnvelopeJSONRenderer(JSONRenderer):
    """Wrap successful payloads into ``{success, message, data, timestamp}``.

    Paginated payloads (``{results, pagination}``) are lifted so that the list
    lands in ``data`` and the page metadata in a sibling ``pagination`` key.
    Error bodies produced by the exception handler are already enveloped and
    pass through untouched.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        renderer_context = renderer_context or {}
        response = renderer_context.get("response")
        if response is None or response.status_code == status.HTTP_204_NO_CONTENT:
            return super().render(data, accepted_media_type, renderer_context)
        if response.exception or (
            isinstance(data, dict) and data.get("success") is False
        ):
            return super().render(data, accepted_media_type, renderer_context)

        body = {
            "success": True,
            "message": getattr(response, "envelope_message", None)
            or _default_message(response),
            "data": data,
        }
        if isinstance(data, dict) and {"results", "pagination"} <= set(data):
            body["data"] = data["results"]
            body["pagination"] = data["pagination"]
            extra = {
                k: v
                for k, v in data.items()
                if k not in ("results", "pagination")
            }
            if extra:
                body["meta"] = extra
        body["timestamp"] = timezone.now().isoformat()
        return super().render(body, accepted_media_type, renderer_context)
