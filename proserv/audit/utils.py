from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db import models

from .models import AuditLog

USER_AGENT_MAX_LENGTH = 255


def client_ip(request) -> str:
    if request is None:
        return ""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


def log_action(  # noqa: PLR0913
    action: str,
    *,
    actor: object | None = None,
    target: models.Model | None = None,
    request=None,
    message: str = "",
    before: dict | list | None = None,
    after: dict | list | None = None,
) -> AuditLog:
    """Record ``action`` against ``target``.

    Anything that is not a user (Celery tasks, anonymous requests) is stored
    as a system entry. Address and user agent come from ``request`` when given.
    """
    user_model = get_user_model()
    meta = request.META if request is not None else {}
    return AuditLog.objects.create(
        action=action,
        actor=actor if isinstance(actor, user_model) else None,
        message=message,
        model_name=target._meta.label if target is not None else "",
        record_id=target.pk if target is not None else None,
        before=before,
        after=after,
        ip_address=client_ip(request),
        user_agent=meta.get("HTTP_USER_AGENT", "")[:USER_AGENT_MAX_LENGTH],
    )
