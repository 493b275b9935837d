"""In-process registry of connected users, chat rooms and typing indicators.

All mutations happen inside Socket.IO handlers running on a single event
loop, so the registry holds plain dicts and sets without locking. Each ASGI
worker process has its own registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

from django.utils import timezone

ONLINE = "online"
AWAY = "away"


@dataclass
class Presence:
    user_id: int
    name: str = ""
    status: str = ONLINE
    last_seen: datetime = field(default_factory=timezone.now)
    sids: set[str] = field(default_factory=set)

    def as_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "name": self.name,
            "status": self.status,
            "lastSeen": self.last_seen.isoformat(),
        }


class PresenceRegistry:
    def __init__(self):
        self.users: dict[int, Presence] = {}
        self.sockets: dict[str, int] = {}
        self.rooms: dict[int, set[str]] = {}
        self.typing: dict[int, set[int]] = {}

    def connect(self, sid: str, user_id: int, name: str = "") -> bool:
        """Register ``sid`` for ``user_id``; True when the user just came online."""
        presence = self.users.get(user_id)
        came_online = presence is None
        if presence is None:
            presence = self.users[user_id] = Presence(user_id=user_id, name=name)
        presence.sids.add(sid)
        presence.status = ONLINE
        presence.last_seen = timezone.now()
        self.sockets[sid] = user_id
        return came_online

    def disconnect(self, sid: str) -> tuple[int | None, bool, list[int]]:
        """Forget ``sid``.

        Returns ``(user_id, went_offline, chats_where_typing_stopped)``.
        """
        user_id = self.sockets.pop(sid, None)
        for chat_id in [c for c, sids in self.rooms.items() if sid in sids]:
            self._discard_room(chat_id, sid)
        if user_id is None:
            return None, False, []

        presence = self.users.get(user_id)
        if presence is not None:
            presence.sids.discard(sid)
            presence.last_seen = timezone.now()
        if presence is not None and presence.sids:
            return user_id, False, []

        self.users.pop(user_id, None)
        stopped = [c for c, users in self.typing.items() if user_id in users]
        for chat_id in stopped:
            self.stop_typing(chat_id, user_id)
        return user_id, True, stopped

    def user_for(self, sid: str) -> int | None:
        return self.sockets.get(sid)

    def touch(self, sid: str) -> None:
        user_id = self.sockets.get(sid)
        if user_id in self.users:
            self.users[user_id].last_seen = timezone.now()

    def set_status(self, user_id: int, status: str) -> None:
        if user_id in self.users:
            self.users[user_id].status = status

    def is_online(self, user_id: int) -> bool:
        return user_id in self.users

    def online_users(self) -> list[dict]:
        return [p.as_dict() for p in self.users.values()]

    def join(self, chat_id: int, sid: str) -> None:
        self.rooms.setdefault(chat_id, set()).add(sid)

    def leave(self, chat_id: int, sid: str) -> None:
        self._discard_room(chat_id, sid)

    def _discard_room(self, chat_id: int, sid: str) -> None:
        sids = self.rooms.get(chat_id)
        if sids is None:
            return
        sids.discard(sid)
        if not sids:
            del self.rooms[chat_id]

    def members(self, chat_id: int) -> set[str]:
        return set(self.rooms.get(chat_id, ()))

    def start_typing(self, chat_id: int, user_id: int) -> bool:
        users = self.typing.setdefault(chat_id, set())
        if user_id in users:
            return False
        users.add(user_id)
        return True

    def stop_typing(self, chat_id: int, user_id: int) -> bool:
        users = self.typing.get(chat_id)
        if not users or user_id not in users:
            return False
        users.discard(user_id)
        if not users:
            del self.typing[chat_id]
        return True

    def typing_in(self, chat_id: int) -> set[int]:
        return set(self.typing.get(chat_id, ()))

    def stats(self) -> dict:
        return {
            "connectedUsers": len(self.users),
            "totalSockets": len(self.sockets),
            "activeChats": len(self.rooms),
            "typingUsers": sum(len(users) for users in self.typing.values()),
        }

    def clear(self) -> None:
        self.users.clear()
        self.sockets.clear()
        self.rooms.clear()
        self.typing.clear()


registry = PresenceRegistry()
