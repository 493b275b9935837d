from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

if TYPE_CHECKING:  # import for type checking only
    from proserv.notifications.models import Notification
from proserv.realtime.socketio import emit_event_to_user


def build_notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.notification_type,
        "priority": notification.priority,
        "data": notification.data,
        "link": notification.related_link,
        "createdAt": notification.created_at.isoformat(),
    }


def publish_notification_created(notification: Notification) -> None:
    """Push a new in-app notification to every socket of its recipient."""
    payload = build_notification_payload(notification)
    emit_event_to_user(notification.recipient_id, "notification", payload)


def publish_unread_count(user_id: int, count: int) -> None:
    """Keep badge counters in sync across the user's open tabs and devices."""
    emit_event_to_user(user_id, "notifications_unread", {"count": count})
