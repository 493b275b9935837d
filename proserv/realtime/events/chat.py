"""Chat publishers, called from ``transaction.on_commit`` in chat services."""

from __future__ import annotations

from typing import Any

from django.utils import timezone

from proserv.realtime.socketio import emit_event_to_chat


def _now() -> str:
    return timezone.now().isoformat()


def publish_new_message(chat_id: int, message: dict[str, Any]) -> None:
    emit_event_to_chat(chat_id, "new_message", {"chat": chat_id, "message": message})


def publish_service_update(chat_id: int, message: dict[str, Any], update: dict) -> None:
    emit_event_to_chat(
        chat_id,
        "service_updated",
        {"chat": chat_id, "message": message, **update},
    )


def publish_message_edited(chat_id: int, message: dict[str, Any]) -> None:
    emit_event_to_chat(chat_id, "message_edited", {"chat": chat_id, "message": message})


def publish_message_deleted(chat_id: int, message_id: int, user_id: int) -> None:
    emit_event_to_chat(
        chat_id,
        "message_deleted",
        {"messageId": message_id, "deletedBy": user_id, "deletedAt": _now()},
    )


def publish_reaction(
    chat_id: int,
    message_id: int,
    user_id: int,
    emoji: str | None,
) -> None:
    event = "reaction_added" if emoji else "reaction_removed"
    payload = {"messageId": message_id, "userId": user_id, "timestamp": _now()}
    if emoji:
        payload["emoji"] = emoji
    emit_event_to_chat(chat_id, event, payload)


def publish_read(chat_id: int, user_id: int, message_id: int | None = None) -> None:
    if message_id is None:
        emit_event_to_chat(
            chat_id,
            "chat_read",
            {"chatId": chat_id, "readBy": user_id, "readAt": _now()},
        )
        return
    emit_event_to_chat(
        chat_id,
        "message_read",
        {"messageId": message_id, "readBy": user_id, "readAt": _now()},
    )


def publish_chat_status(chat_id: int, status: str, reason: str = "") -> None:
    emit_event_to_chat(
        chat_id,
        "chat_status_changed",
        {"chatId": chat_id, "status": status, "reason": reason, "timestamp": _now()},
    )
