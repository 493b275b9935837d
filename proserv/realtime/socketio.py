"""Global Socket.IO server.

Every realtime feature (notifications, chat, presence) shares this server
instance. ``config.asgi`` mounts it at ``settings.SOCKETIO_PATH``.

Client convention:
- Socket.IO path: /ws/socket.io
- Auth: JWT access token in ``query.token``, ``auth.token`` or an
  ``Authorization: Bearer`` header

Each socket joins its per-user room plus one room per active chat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

import socketio
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from django.conf import settings
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from proserv.chat.models import Chat
from proserv.realtime.presence import registry

logger = logging.getLogger(__name__)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.SOCKETIO_CORS_ALLOWED_ORIGINS,
    logger=False,
    engineio_logger=False,
)

# Chats joined automatically on connect.
AUTO_JOIN_LIMIT = 50


@dataclass(frozen=True)
class UserRealtimeContext:
    user_id: int
    name: str
    role: str
    chat_ids: tuple[int, ...]


def room_for_user(user_id: int) -> str:
    return f"user_{int(user_id)}"


def room_for_chat(chat_id: int) -> str:
    return f"chat_{int(chat_id)}"


def _active_chat_ids(user_id: int) -> tuple[int, ...]:
    return tuple(
        Chat.objects.for_user(user_id)
        .filter(status=Chat.Status.ACTIVE)
        .order_by("-last_activity_at")
        .values_list("id", flat=True)[:AUTO_JOIN_LIMIT],
    )


@database_sync_to_async
def _get_user_context_from_access_token(token: str) -> UserRealtimeContext:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    user = jwt_auth.get_user(validated)
    return UserRealtimeContext(
        user_id=int(user.id),
        name=user.name or user.email,
        role=user.role,
        chat_ids=_active_chat_ids(user.id),
    )


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract JWT token from Socket.IO environ/auth.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(environ, dict) and "QUERY_STRING" in environ:
        query_string = environ.get("QUERY_STRING", "")
    elif isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    header = ""
    if isinstance(environ, dict):
        header = environ.get("HTTP_AUTHORIZATION", "")
    if not header and isinstance(scope, dict):
        for name, value in scope.get("headers", ()):
            if name.lower() == b"authorization":
                header = value.decode(errors="ignore")
                break
    prefix, _, value = str(header).partition(" ")
    if prefix.lower() == "bearer" and value.strip():
        return value.strip()

    return None


async def session_user_id(sid: str) -> int | None:
    session = await sio.get_session(sid)
    return session.get("user_id") if isinstance(session, dict) else None


async def broadcast_user_status(user_id: int, status: str) -> None:
    await sio.emit(
        "user_status_changed",
        {"userId": user_id, "status": status, "timestamp": timezone.now().isoformat()},
    )


@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    token = _extract_token(environ, auth)
    if not token:
        msg = "unauthorized"
        raise ConnectionRefusedError(msg)

    try:
        ctx = await _get_user_context_from_access_token(token)
    except TokenError as exc:
        message = str(exc)
        if "expired" in message.lower():
            msg = "jwt_expired"
            raise ConnectionRefusedError(msg) from exc
        msg = "unauthorized"
        raise ConnectionRefusedError(msg) from exc
    except AuthenticationFailed as exc:  # user not found / inactive, etc.
        msg = "unauthorized"
        raise ConnectionRefusedError(msg) from exc
    except Exception as exc:
        logger.exception("Socket.IO connect error")
        msg = "server_error"
        raise ConnectionRefusedError(msg) from exc

    await sio.save_session(
        sid,
        {"user_id": ctx.user_id, "name": ctx.name, "role": ctx.role},
    )
    await sio.enter_room(sid, room_for_user(ctx.user_id))

    came_online = registry.connect(sid, ctx.user_id, ctx.name)
    for chat_id in ctx.chat_ids:
        await sio.enter_room(sid, room_for_chat(chat_id))
        registry.join(chat_id, sid)

    logger.info(
        "User %s connected (sid=%s, chats=%d)",
        ctx.user_id,
        sid,
        len(ctx.chat_ids),
    )
    if came_online:
        await broadcast_user_status(ctx.user_id, "online")


@sio.event
async def disconnect(sid: str, *args):
    user_id, went_offline, stopped_typing = registry.disconnect(sid)
    logger.info("User %s disconnected (sid=%s)", user_id, sid)
    for chat_id in stopped_typing:
        await sio.emit(
            "user_stopped_typing",
            {"userId": user_id, "chatId": chat_id},
            room=room_for_chat(chat_id),
        )
    if went_offline:
        await broadcast_user_status(user_id, "offline")


@sio.event
async def get_online_users(sid: str, data: Any = None):
    users = registry.online_users()
    await sio.emit("online_users", {"users": users}, to=sid)
    return {"users": users}


@sio.event
async def set_status(sid: str, data: Any):
    user_id = await session_user_id(sid)
    status = data.get("status") if isinstance(data, dict) else None
    if user_id is None or status not in ("online", "away", "busy"):
        await sio.emit("error", {"message": "Invalid status."}, to=sid)
        return
    registry.set_status(user_id, status)
    await broadcast_user_status(user_id, status)


def emit_event_to_room(room: str, event: str, payload: dict[str, Any]) -> None:
    """Emit an event to a room from sync Django code."""

    async_to_sync(sio.emit)(event, payload, room=room)


def emit_event_to_user(user_id: int, event: str, payload: dict[str, Any]) -> None:
    emit_event_to_room(room_for_user(user_id), event, payload)


def emit_event_to_chat(chat_id: int, event: str, payload: dict[str, Any]) -> None:
    emit_event_to_room(room_for_chat(chat_id), event, payload)
