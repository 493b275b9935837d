"""Socket.IO chat events, registered on the shared server at app ready.

Handlers do their ORM work through ``_db`` and answer the emitting socket
directly. Room-wide broadcasts of persisted changes come from the chat
services' ``on_commit`` publishers, so REST and socket clients see the same
events.
"""

from __future__ import annotations

import logging
from typing import Any

from channels.db import database_sync_to_async
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework.exceptions import APIException
from rest_framework.exceptions import ValidationError

from proserv.chat import services
from proserv.chat.api.serializers import MessageSerializer
from proserv.realtime.presence import registry
from proserv.realtime.socketio import room_for_chat
from proserv.realtime.socketio import session_user_id
from proserv.realtime.socketio import sio
from proserv.users.models import User

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


async def _db(fn, *args, **kwargs):
    return await database_sync_to_async(fn)(*args, **kwargs)


def _error_message(exc: APIException) -> str:
    detail = exc.detail
    if isinstance(detail, dict):
        detail = next(iter(detail.values()), "")
    if isinstance(detail, list):
        detail = detail[0] if detail else ""
    return str(detail) or exc.default_detail


async def _reply_error(sid: str, exc: APIException, event: str = "error", **extra):
    await sio.emit(event, {"message": _error_message(exc), **extra}, to=sid)


def _chat_id(data: Any) -> Any:
    return data.get("chatId") if isinstance(data, dict) else None


def _room_chat_id(data: Any) -> int | None:
    chat_id = _chat_id(data)
    if chat_id is None:
        return None
    try:
        return int(chat_id)
    except (TypeError, ValueError):
        msg = "A valid chatId is required."
        raise ValidationError({"chatId": msg}) from None


def _user(user_id: int) -> User:
    return User.objects.get(pk=user_id)


def _check_access(user_id: int, chat_id) -> int:
    return services.get_chat_for(_user(user_id), chat_id).pk


def _send(user_id: int, data: dict) -> dict:
    user = _user(user_id)
    chat = services.get_chat_for(user, data.get("chatId"))
    message = services.send_message(
        chat,
        user,
        message_type=data.get("type") or "text",
        text=data.get("text") or data.get("content") or "",
        media=data.get("media"),
        location=data.get("location"),
        reply_to=data.get("replyTo"),
        metadata=data.get("metadata") or {},
    )
    return MessageSerializer(message, context={"viewer_id": user_id}).data


def _mark_read(user_id: int, chat_id, message_id) -> int:
    user = _user(user_id)
    return services.mark_read(services.get_chat_for(user, chat_id), user, message_id)


def _edit(user_id: int, message_id, text: str) -> None:
    user = _user(user_id)
    services.edit_message(services.get_message_for(user, message_id), user, text)


def _delete(user_id: int, message_id) -> None:
    user = _user(user_id)
    services.delete_message(services.get_message_for(user, message_id), user)


def _react(user_id: int, message_id, emoji: str | None) -> None:
    user = _user(user_id)
    message = services.get_message_for(user, message_id)
    if emoji is None:
        services.remove_reaction(message, user)
    else:
        services.add_reaction(message, user, emoji)


def _history(user_id: int, chat_id, limit: int, before) -> dict:
    chat = services.get_chat_for(_user(user_id), chat_id)
    rows = list(services.history(chat, before=before)[: limit + 1])
    return {
        "chatId": chat.pk,
        "messages": MessageSerializer(
            rows[:limit],
            many=True,
            context={"viewer_id": user_id},
        ).data,
        "hasMore": len(rows) > limit,
    }


def _search(user_id: int, chat_id, term: str, limit: int) -> dict:
    chat = services.get_chat_for(_user(user_id), chat_id)
    rows = services.search(chat, term, limit=limit)
    return {
        "chatId": chat.pk,
        "searchTerm": term,
        "messages": MessageSerializer(
            rows,
            many=True,
            context={"viewer_id": user_id},
        ).data,
    }


def _limit(data: dict, default: int) -> int:
    try:
        value = int(data.get("limit", default))
    except (TypeError, ValueError):
        return default
    return max(1, min(value, 100))


@sio.on("join_chat")
async def join_chat(sid: str, data: Any):
    user_id = await session_user_id(sid)
    try:
        chat_id = await _db(_check_access, user_id, _chat_id(data))
    except APIException as exc:
        await _reply_error(sid, exc)
        return
    await sio.enter_room(sid, room_for_chat(chat_id))
    registry.join(chat_id, sid)
    await sio.emit(
        "user_joined_chat",
        {"userId": user_id, "chatId": chat_id, "timestamp": timezone.now().isoformat()},
        room=room_for_chat(chat_id),
        skip_sid=sid,
    )
    await sio.emit("joined_chat", {"chatId": chat_id}, to=sid)


@sio.on("leave_chat")
async def leave_chat(sid: str, data: Any):
    user_id = await session_user_id(sid)
    try:
        chat_id = _room_chat_id(data)
    except ValidationError as exc:
        await _reply_error(sid, exc)
        return
    if chat_id is None:
        return
    await sio.leave_room(sid, room_for_chat(chat_id))
    registry.leave(chat_id, sid)
    await sio.emit(
        "user_left_chat",
        {"userId": user_id, "chatId": chat_id, "timestamp": timezone.now().isoformat()},
        room=room_for_chat(chat_id),
    )
    await sio.emit("left_chat", {"chatId": chat_id}, to=sid)


async def _typing(sid: str, data: Any, *, typing: bool) -> None:
    user_id = await session_user_id(sid)
    try:
        chat_id = _room_chat_id(data)
    except ValidationError as exc:
        await _reply_error(sid, exc)
        return
    if user_id is None or chat_id is None:
        return
    registry.touch(sid)
    if typing:
        changed = registry.start_typing(chat_id, user_id)
        event = "user_typing"
    else:
        changed = registry.stop_typing(chat_id, user_id)
        event = "user_stopped_typing"
    if changed:
        await sio.emit(
            event,
            {"userId": user_id, "chatId": chat_id},
            room=room_for_chat(chat_id),
            skip_sid=sid,
        )


@sio.on("typing_start")
async def typing_start(sid: str, data: Any):
    await _typing(sid, data, typing=True)


@sio.on("typing_stop")
async def typing_stop(sid: str, data: Any):
    await _typing(sid, data, typing=False)


@sio.on("send_message")
async def send_message(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    try:
        message = await _db(_send, user_id, data)
    except APIException as exc:
        await _reply_error(sid, exc, "message_error", tempId=data.get("tempId"))
        return
    await sio.emit(
        "message_sent",
        {"tempId": data.get("tempId"), "message": message},
        to=sid,
    )
    await _typing(sid, data, typing=False)


@sio.on("mark_as_read")
async def mark_as_read(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    try:
        await _db(_mark_read, user_id, data.get("chatId"), data.get("messageId"))
    except APIException as exc:
        await _reply_error(sid, exc)


@sio.on("edit_message")
async def edit_message(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    text = data.get("newContent") or data.get("text") or ""
    try:
        await _db(_edit, user_id, data.get("messageId"), text)
    except APIException as exc:
        await _reply_error(sid, exc)


@sio.on("delete_message")
async def delete_message(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    try:
        await _db(_delete, user_id, data.get("messageId"))
    except APIException as exc:
        await _reply_error(sid, exc)


@sio.on("add_reaction")
async def add_reaction(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    try:
        await _db(_react, user_id, data.get("messageId"), data.get("emoji") or "")
    except APIException as exc:
        await _reply_error(sid, exc)


@sio.on("remove_reaction")
async def remove_reaction(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    try:
        await _db(_react, user_id, data.get("messageId"), None)
    except APIException as exc:
        await _reply_error(sid, exc)


@sio.on("get_chat_history")
async def get_chat_history(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    before = parse_datetime(data["before"]) if data.get("before") else None
    try:
        result = await _db(
            _history,
            user_id,
            data.get("chatId"),
            _limit(data, HISTORY_LIMIT),
            before,
        )
    except APIException as exc:
        await _reply_error(sid, exc)
        return
    await sio.emit("chat_history", result, to=sid)


@sio.on("search_messages")
async def search_messages(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    user_id = await session_user_id(sid)
    term = data.get("searchTerm") or ""
    try:
        result = await _db(
            _search,
            user_id,
            data.get("chatId"),
            term,
            _limit(data, services.SEARCH_LIMIT),
        )
    except APIException as exc:
        await _reply_error(sid, exc)
        return
    await sio.emit("search_results", result, to=sid)
