"""Template-based in-app notifications.

``notify`` stores a :class:`Notification` row; the post_save signal pushes it
to the recipient's Socket.IO room once the transaction commits. Delivery over
email/SMS/push is left to external workers reading the same rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db import transaction

from proserv.notifications.models import Notification

logger = logging.getLogger(__name__)

User = get_user_model()

Type = Notification.Type
Priority = Notification.Priority

# Types a user can never mute.
MANDATORY_TYPES = frozenset({Type.SECURITY, Type.SYSTEM})


@dataclass(frozen=True)
class Template:
    title: str
    message: str
    type: str
    priority: str = Priority.NORMAL


TEMPLATES: dict[str, Template] = {
    "new_service_request": Template(
        "New service request",
        "A new {category} request is available in {city}: {title}.",
        Type.SERVICE_REQUEST,
        Priority.HIGH,
    ),
    "service_cancelled": Template(
        "Service cancelled",
        "The service '{title}' was cancelled.",
        Type.SERVICE_REQUEST,
    ),
    "service_confirmed": Template(
        "Service confirmed",
        "The professional confirmed '{title}'.",
        Type.SERVICE_REQUEST,
        Priority.HIGH,
    ),
    "service_started": Template(
        "Service started",
        "Work on '{title}' has started.",
        Type.SERVICE_REQUEST,
    ),
    "service_completed": Template(
        "Service completed",
        "'{title}' was marked as completed. Final cost: {final_cost}.",
        Type.SERVICE_REQUEST,
        Priority.HIGH,
    ),
    "service_disputed": Template(
        "Service disputed",
        "A dispute was opened on '{title}': {reason}",
        Type.SERVICE_REQUEST,
        Priority.URGENT,
    ),
    "new_quote": Template(
        "New quote received",
        "{professional} quoted {price} for '{title}'.",
        Type.QUOTE,
        Priority.HIGH,
    ),
    "quote_updated": Template(
        "Quote updated",
        "{professional} updated their quote to {price}.",
        Type.QUOTE,
    ),
    "quote_accepted": Template(
        "Quote accepted",
        "Your quote of {price} for '{title}' was accepted.",
        Type.QUOTE,
        Priority.HIGH,
    ),
    "quote_rejected": Template(
        "Quote not selected",
        "Your quote for '{title}' was not selected.",
        Type.QUOTE,
        Priority.LOW,
    ),
    "payment_processed": Template(
        "Payment processed",
        "Your payment of {amount} {currency} was processed.",
        Type.PAYMENT,
        Priority.HIGH,
    ),
    "payment_received": Template(
        "Payment received",
        "You received {amount} {currency} for '{title}'.",
        Type.PAYMENT,
        Priority.HIGH,
    ),
    "payment_failed": Template(
        "Payment failed",
        "We could not process your payment: {reason}",
        Type.PAYMENT,
        Priority.HIGH,
    ),
    "payment_refunded": Template(
        "Refund processed",
        "A refund of {amount} {currency} was processed.",
        Type.PAYMENT,
    ),
    "invoice_generated": Template(
        "Invoice generated",
        "Invoice {number} is available.",
        Type.INVOICE,
    ),
    "new_message": Template(
        "New message",
        "{sender}: {preview}",
        Type.MESSAGE,
    ),
    "new_review": Template(
        "New review",
        "{reviewer} rated you {rating}/5.",
        Type.REVIEW,
    ),
    "review_response": Template(
        "Review response",
        "{reviewee} responded to your review.",
        Type.REVIEW,
        Priority.LOW,
    ),
    "verification_approved": Template(
        "Profile verified",
        "Your professional profile is now verified.",
        Type.SYSTEM,
        Priority.HIGH,
    ),
    "verification_rejected": Template(
        "Verification rejected",
        "Your verification was rejected. {notes}",
        Type.SYSTEM,
        Priority.HIGH,
    ),
    "account_verified": Template(
        "Account verified",
        "Your email address was verified.",
        Type.SYSTEM,
    ),
    "password_changed": Template(
        "Password changed",
        "Your account password was changed.",
        Type.SECURITY,
        Priority.HIGH,
    ),
    "test": Template(
        "Test notification",
        "This is a test notification.",
        Type.SYSTEM,
        Priority.LOW,
    ),
}


class _Context(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def render(template_key: str, context: dict | None = None) -> tuple[Template, str, str]:
    try:
        template = TEMPLATES[template_key]
    except KeyError as exc:
        msg = f"Unknown notification template: {template_key}"
        raise ValueError(msg) from exc
    ctx = _Context(context or {})
    return template, template.title.format_map(ctx), template.message.format_map(ctx)


def wants(user, notification_type: str) -> bool:
    """Whether ``user`` has not muted ``notification_type``."""
    if notification_type in MANDATORY_TYPES:
        return True
    prefs = (user.preferences or {}).get("notifications", {})
    return prefs.get("types", {}).get(notification_type, True) is not False


def notify(
    recipient,
    template_key: str,
    *,
    context: dict | None = None,
    data: dict | None = None,
    link: str = "",
) -> Notification | None:
    """Store a notification for ``recipient`` rendered from ``template_key``.

    Returns ``None`` when the recipient is inactive or muted the type.
    """
    template, title, message = render(template_key, context)
    if not recipient.is_active or not wants(recipient, template.type):
        logger.debug(
            "Skipped %s notification for user %s",
            template_key,
            recipient.pk,
        )
        return None
    return Notification.objects.create(
        recipient=recipient,
        title=title,
        message=message,
        notification_type=template.type,
        priority=template.priority,
        data={"template": template_key, **(data or {})},
        related_link=link,
    )


def notify_many(
    users,
    template_key: str,
    *,
    context: dict | None = None,
    data: dict | None = None,
    link: str = "",
) -> dict:
    """Fan ``template_key`` out to ``users``; one failure does not stop the rest."""
    sent, failed = [], []
    for user in users:
        try:
            with transaction.atomic():
                notification = notify(
                    user,
                    template_key,
                    context=context,
                    data=data,
                    link=link,
                )
        except DatabaseError:
            logger.warning(
                "Failed to store %s notification for user %s",
                template_key,
                user.pk,
                exc_info=True,
            )
            failed.append(user.pk)
            continue
        if notification is not None:
            sent.append(notification.pk)
    if failed:
        logger.warning(
            "Notification fan-out %s: %d sent, %d failed",
            template_key,
            len(sent),
            len(failed),
        )
    return {"sent": sent, "failed": failed}


def notify_role(role: str, template_key: str, **kwargs) -> dict:
    return notify_many(
        User.objects.filter(role=role, is_active=True),
        template_key,
        **kwargs,
    )


def broadcast(template_key: str, **kwargs) -> dict:
    return notify_many(User.objects.filter(is_active=True), template_key, **kwargs)


@transaction.atomic
def create_custom(
    recipient_ids,
    *,
    title: str,
    message: str,
    notification_type: str = Type.SYSTEM,
    priority: str = Priority.NORMAL,
    data: dict | None = None,
    link: str = "",
) -> list[Notification]:
    """Create free-text notifications (admin tooling)."""
    return [
        Notification.objects.create(
            recipient_id=rid,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            data=data or {},
            related_link=link,
        )
        for rid in sorted(recipient_ids)
    ]


def unread_count(user) -> int:
    return Notification.objects.filter(recipient=user, is_read=False).count()
