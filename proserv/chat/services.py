"""Chat operations shared by the REST API and the Socket.IO handlers.

Every state change publishes its realtime event from ``on_commit`` so that
both entry points broadcast the same way.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Count
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from proserv.chat.api.serializers import MessageSerializer
from proserv.chat.models import Chat
from proserv.chat.models import ChatParticipant
from proserv.chat.models import Message
from proserv.chat.models import MessageRead
from proserv.chat.models import MessageReaction
from proserv.core.api.exceptions import Conflict
from proserv.notifications.services import notify_many
from proserv.realtime.events import chat as chat_events
from proserv.realtime.presence import registry

logger = logging.getLogger(__name__)

CloseReason = Chat.CloseReason

SEARCH_LIMIT = 50


def message_payload(message: Message, viewer_id: int | None = None) -> dict:
    return MessageSerializer(message, context={"viewer_id": viewer_id}).data


def get_chat_for(user, chat_id) -> Chat:
    try:
        chat = Chat.objects.get(pk=chat_id)
    except (Chat.DoesNotExist, ValueError, TypeError) as exc:
        msg = "Chat not found."
        raise NotFound(msg) from exc
    if not (user.is_admin_role or chat.is_participant(user)):
        msg = "You do not have access to this chat."
        raise PermissionDenied(msg)
    return chat


def get_message_for(user, message_id) -> Message:
    try:
        message = Message.objects.select_related("chat").get(pk=message_id)
    except (Message.DoesNotExist, ValueError, TypeError) as exc:
        msg = "Message not found."
        raise NotFound(msg) from exc
    if not (user.is_admin_role or message.chat.is_participant(user)):
        msg = "You do not have access to this chat."
        raise PermissionDenied(msg)
    return message


def user_chats(user, status: str | None = None):
    qs = Chat.objects.for_user(user.pk) if not user.is_admin_role else Chat.objects
    qs = qs.select_related("service_request").prefetch_related("participants__user")
    if status:
        qs = qs.filter(status=status)
    return qs


@transaction.atomic
def open_service_chat(service_request, *, created_by=None) -> Chat:
    """Get or create the chat between a request's client and its professional."""
    professional = service_request.assigned_professional
    if professional is None:
        msg = "The request has no assigned professional yet."
        raise Conflict(msg)
    chat, created = Chat.objects.get_or_create(
        service_request=service_request,
        chat_type=Chat.Type.SERVICE,
        defaults={"created_by": created_by or service_request.client},
    )
    for user, role in (
        (service_request.client, ChatParticipant.Role.CLIENT),
        (professional.user, ChatParticipant.Role.PROFESSIONAL),
    ):
        ChatParticipant.objects.update_or_create(
            chat=chat,
            user=user,
            defaults={"role": role, "is_active": True, "left_at": None},
        )
    if created:
        post_system_message(chat, f"Chat opened for '{service_request.title}'.")
        logger.info("Chat %s opened for request %s", chat.pk, service_request.pk)
    elif chat.status == Chat.Status.CLOSED:
        _reopen(chat)
    return chat


def create_service_chat(user, service_request) -> Chat:
    if not (user.is_admin_role or service_request.is_participant(user)):
        msg = "Only participants of the request can open its chat."
        raise PermissionDenied(msg)
    return open_service_chat(service_request, created_by=user)


def service_chat_for(service_request) -> Chat | None:
    return Chat.objects.filter(
        service_request=service_request,
        chat_type=Chat.Type.SERVICE,
    ).first()


def _touch_chat(chat: Chat, message: Message) -> None:
    now = message.created_at
    Chat.objects.filter(pk=chat.pk).update(
        last_message_text=message.preview[:200],
        last_message_type=message.message_type,
        last_message_sender=message.sender,
        last_message_at=now,
        last_activity_at=now,
        total_messages=F("total_messages") + 1,
    )
    Chat.objects.filter(pk=chat.pk, first_message_at__isnull=True).update(
        first_message_at=now,
    )
    if message.sender_id:
        ChatParticipant.objects.filter(chat=chat, user_id=message.sender_id).update(
            message_count=F("message_count") + 1,
        )


def _validate_content(message_type: str, text: str, media, location) -> None:
    if message_type == Message.Type.TEXT and not text.strip():
        raise ValidationError({"text": "Text messages cannot be empty."})
    if message_type in (Message.Type.IMAGE, Message.Type.FILE) and not (
        media and media.get("url")
    ):
        raise ValidationError({"media": "A media url is required."})
    if message_type == Message.Type.LOCATION:
        try:
            lat = float((location or {})["latitude"])
            lng = float((location or {})["longitude"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(
                {"location": "latitude and longitude are required."},
            ) from exc
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):  # noqa: PLR2004
            raise ValidationError({"location": "Coordinates out of range."})


def _require_active(chat: Chat) -> None:
    if chat.status != Chat.Status.ACTIVE:
        msg = f"This chat is {chat.status}."
        raise Conflict(msg)


@transaction.atomic
def send_message(
    chat: Chat,
    sender,
    *,
    message_type: str = Message.Type.TEXT,
    text: str = "",
    media: dict | None = None,
    location: dict | None = None,
    reply_to: int | None = None,
    metadata: dict | None = None,
) -> Message:
    if not chat.is_participant(sender):
        msg = "You do not have access to this chat."
        raise PermissionDenied(msg)
    _require_active(chat)
    _validate_content(message_type, text or "", media, location)
    parent = None
    if reply_to is not None:
        parent = chat.messages.filter(pk=reply_to).first()
        if parent is None:
            raise ValidationError({"reply_to": "Message not found in this chat."})

    message = Message.objects.create(
        chat=chat,
        sender=sender,
        message_type=message_type,
        text=text or "",
        media=media,
        location=location,
        reply_to=parent,
        metadata=metadata or {},
    )
    _touch_chat(chat, message)

    payload = message_payload(message)
    transaction.on_commit(lambda: chat_events.publish_new_message(chat.pk, payload))

    if chat.notifications_enabled:
        recipients = [
            p.user
            for p in chat.participants.filter(is_active=True)
            .exclude(user=sender)
            .select_related("user")
            if not registry.is_online(p.user_id)
        ]
        notify_many(
            recipients,
            "new_message",
            context={"sender": sender.name or sender.email, "preview": message.preview},
            data={"chat_id": chat.pk, "message_id": message.pk},
            link=f"/chat/{chat.pk}",
        )
    logger.info(
        "Message %s sent in chat %s by user %s (%s)",
        message.pk,
        chat.pk,
        sender.pk,
        message_type,
    )
    return message


@transaction.atomic
def post_system_message(
    chat: Chat,
    text: str,
    data: dict | None = None,
    *,
    message_type: str = Message.Type.SYSTEM,
) -> Message:
    message = Message.objects.create(
        chat=chat,
        sender=None,
        message_type=message_type,
        text=text,
        metadata=data or {},
    )
    _touch_chat(chat, message)
    payload = message_payload(message)
    if message_type == Message.Type.SERVICE_UPDATE:
        transaction.on_commit(
            lambda: chat_events.publish_service_update(chat.pk, payload, data or {}),
        )
    else:
        transaction.on_commit(lambda: chat_events.publish_new_message(chat.pk, payload))
    return message


def post_service_update(service_request, text: str, data: dict | None = None):
    """Drop a service-update message into the request's chat, if it is open."""
    chat = service_chat_for(service_request)
    if chat is None or chat.status != Chat.Status.ACTIVE:
        return None
    return post_system_message(
        chat,
        text,
        data,
        message_type=Message.Type.SERVICE_UPDATE,
    )


def _require_sender(message: Message, user, verb: str) -> None:
    if message.sender_id != user.pk:
        msg = f"You can only {verb} your own messages."
        raise PermissionDenied(msg)
    if message.is_deleted:
        msg = "This message was deleted."
        raise Conflict(msg)


@transaction.atomic
def edit_message(message: Message, user, text: str) -> Message:
    _require_sender(message, user, "edit")
    if message.message_type != Message.Type.TEXT:
        msg = "Only text messages can be edited."
        raise ValidationError(msg)
    if not text.strip():
        raise ValidationError({"text": "Text messages cannot be empty."})
    now = timezone.now()
    message.edit_history = [
        *message.edit_history,
        {"text": message.text, "edited_at": now.isoformat()},
    ]
    message.text = text
    message.is_edited = True
    message.edited_at = now
    message.save()
    payload = message_payload(message)
    transaction.on_commit(
        lambda: chat_events.publish_message_edited(message.chat_id, payload),
    )
    return message


@transaction.atomic
def delete_message(message: Message, user) -> Message:
    _require_sender(message, user, "delete")
    message.is_deleted = True
    message.deleted_at = timezone.now()
    message.deleted_by = user
    message.save(update_fields=["is_deleted", "deleted_at", "deleted_by", "updated_at"])
    transaction.on_commit(
        lambda: chat_events.publish_message_deleted(
            message.chat_id,
            message.pk,
            user.pk,
        ),
    )
    return message


@transaction.atomic
def add_reaction(message: Message, user, emoji: str) -> MessageReaction:
    if message.is_deleted:
        msg = "This message was deleted."
        raise Conflict(msg)
    if not emoji.strip():
        raise ValidationError({"emoji": "This field may not be blank."})
    reaction, _ = MessageReaction.objects.update_or_create(
        message=message,
        user=user,
        defaults={"emoji": emoji},
    )
    transaction.on_commit(
        lambda: chat_events.publish_reaction(
            message.chat_id,
            message.pk,
            user.pk,
            emoji,
        ),
    )
    return reaction


@transaction.atomic
def remove_reaction(message: Message, user) -> bool:
    deleted, _ = MessageReaction.objects.filter(message=message, user=user).delete()
    if deleted:
        transaction.on_commit(
            lambda: chat_events.publish_reaction(
                message.chat_id,
                message.pk,
                user.pk,
                None,
            ),
        )
    return bool(deleted)


def _refresh_read_status(message_ids) -> None:
    """Messages read by every other active participant become ``read``."""
    for message in Message.objects.filter(pk__in=message_ids).select_related("chat"):
        others = set(message.chat.participant_user_ids()) - {message.sender_id}
        readers = set(message.reads.values_list("user_id", flat=True))
        if others and others <= readers and message.status != Message.Status.READ:
            message.status = Message.Status.READ
            message.save(update_fields=["status", "updated_at"])


@transaction.atomic
def mark_read(chat: Chat, user, message_id: int | None = None) -> int:
    """Record read receipts for one message or the whole chat.

    Returns the number of messages newly marked as read.
    """
    if message_id is not None:
        message = chat.messages.filter(pk=message_id).first()
        if message is None:
            msg = "Message not found in this chat."
            raise NotFound(msg)
        if message.sender_id == user.pk:
            return 0
        _, created = MessageRead.objects.get_or_create(message=message, user=user)
        pending = [message.pk] if created else []
    else:
        pending = list(chat.messages.unread_by(user).values_list("pk", flat=True))
        MessageRead.objects.bulk_create(
            [MessageRead(message_id=pk, user=user) for pk in pending],
            ignore_conflicts=True,
        )
    if pending:
        _refresh_read_status(pending)
        transaction.on_commit(
            lambda: chat_events.publish_read(chat.pk, user.pk, message_id),
        )
    return len(pending)


def history(chat: Chat, *, before=None, message_type: str | None = None):
    qs = (
        chat.messages.select_related("sender", "reply_to")
        .prefetch_related("reactions", "reads")
        .order_by("-created_at", "-pk")
    )
    if before is not None:
        qs = qs.filter(created_at__lt=before)
    if message_type:
        qs = qs.filter(message_type=message_type)
    return qs


def search(chat: Chat, term: str, limit: int = SEARCH_LIMIT):
    term = (term or "").strip()
    if len(term) < 2:  # noqa: PLR2004
        raise ValidationError({"q": "Search term must have at least 2 characters."})
    return list(
        chat.messages.live()
        .filter(text__icontains=term)
        .select_related("sender")
        .order_by("-created_at")[:limit],
    )


def chat_stats(chat: Chat) -> dict:
    live = chat.messages.live().order_by()
    by_type = dict(
        live.values("message_type")
        .annotate(n=Count("id"))
        .values_list("message_type", "n"),
    )
    by_participant = dict(
        live.exclude(sender=None)
        .values("sender_id")
        .annotate(n=Count("id"))
        .values_list("sender_id", "n"),
    )
    return {
        "total_messages": sum(by_type.values()),
        "by_type": by_type,
        "by_participant": by_participant,
        "reactions": MessageReaction.objects.filter(message__chat=chat).count(),
        "first_message_at": chat.first_message_at,
        "last_activity_at": chat.last_activity_at,
        "days_since_last_activity": chat.days_since_last_activity,
    }


def user_chat_stats(user) -> dict:
    chats = Chat.objects.for_user(user.pk).order_by()
    by_status = dict(
        chats.values("status").annotate(n=Count("id")).values_list("status", "n"),
    )
    unread = Message.objects.filter(chat__in=chats).unread_by(user).count()
    return {
        "total_chats": sum(by_status.values()),
        "by_status": by_status,
        "messages_sent": Message.objects.filter(sender=user).count(),
        "unread_messages": unread,
        "realtime": registry.stats(),
    }


def _set_status(chat: Chat, status: str, *, actor=None, reason: str = "") -> Chat:
    chat.status = status
    if status == Chat.Status.ACTIVE:
        chat.closed_by = None
        chat.closed_at = None
        chat.close_reason = ""
        chat.last_activity_at = timezone.now()
    else:
        chat.closed_by = actor
        chat.closed_at = timezone.now()
        chat.close_reason = reason
    chat.save(
        update_fields=[
            "status",
            "closed_by",
            "closed_at",
            "close_reason",
            "last_activity_at",
            "updated_at",
        ],
    )
    transaction.on_commit(
        lambda: chat_events.publish_chat_status(chat.pk, status, reason),
    )
    return chat


@transaction.atomic
def close(chat: Chat, actor, reason: str = CloseReason.USER_REQUEST) -> Chat:
    if chat.status != Chat.Status.ACTIVE:
        msg = f"This chat is already {chat.status}."
        raise Conflict(msg)
    post_system_message(chat, "The chat was closed.", {"reason": reason})
    return _set_status(chat, Chat.Status.CLOSED, actor=actor, reason=reason)


def _reopen(chat: Chat) -> Chat:
    _set_status(chat, Chat.Status.ACTIVE)
    post_system_message(chat, "The chat was reopened.")
    return chat


@transaction.atomic
def reopen(chat: Chat, actor) -> Chat:
    if chat.status != Chat.Status.CLOSED:
        msg = "Only closed chats can be reopened."
        raise Conflict(msg)
    logger.info("Chat %s reopened by user %s", chat.pk, actor.pk)
    return _reopen(chat)


def close_for_request(service_request, *, reason: str, actor=None) -> Chat | None:
    chat = service_chat_for(service_request)
    if chat is None or chat.status != Chat.Status.ACTIVE:
        return None
    return close(chat, actor, reason)


@transaction.atomic
def archive_inactive() -> int:
    stale = Chat.objects.stale()
    for chat in stale:
        _set_status(chat, Chat.Status.ARCHIVED, reason=CloseReason.INACTIVITY)
    return len(stale)
