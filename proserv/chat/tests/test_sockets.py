from collections import defaultdict

import pytest
from asgiref.sync import async_to_sync
from asgiref.sync import sync_to_async

from proserv.chat import services
from proserv.chat import sockets
from proserv.chat.models import Message
from proserv.chat.models import MessageRead
from proserv.realtime.presence import registry
from tests.factories import create_accepted_request
from tests.factories import create_user

pytestmark = pytest.mark.django_db


class FakeServer:
    def __init__(self):
        self.emitted = []
        self.rooms = defaultdict(set)

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None):
        self.emitted.append(
            {"event": event, "data": data, "to": to, "room": room, "skip": skip_sid},
        )

    async def enter_room(self, sid, room):
        self.rooms[room].add(sid)

    async def leave_room(self, sid, room):
        self.rooms[room].discard(sid)

    def events(self, name):
        return [e for e in self.emitted if e["event"] == name]


@pytest.fixture
def chat(user, professional):
    return services.open_service_chat(create_accepted_request(user, professional))


@pytest.fixture
def server(monkeypatch, user, professional):
    fake = FakeServer()
    sessions = {"sid-client": user.pk, "sid-pro": professional.user_id}

    async def session_user_id(sid):
        return sessions.get(sid)

    async def run_sync(fn, *args, **kwargs):
        return await sync_to_async(fn)(*args, **kwargs)

    monkeypatch.setattr(sockets, "sio", fake)
    monkeypatch.setattr(sockets, "session_user_id", session_user_id)
    monkeypatch.setattr(sockets, "_db", run_sync)
    sessions["sid-stranger"] = create_user("stranger").pk
    return fake


def call(handler, sid, data):
    async_to_sync(handler)(sid, data)


def test_join_chat(server, chat, user):
    call(sockets.join_chat, "sid-client", {"chatId": chat.pk})

    assert server.rooms[f"chat_{chat.pk}"] == {"sid-client"}
    assert registry.members(chat.pk) == {"sid-client"}
    (joined,) = server.events("user_joined_chat")
    assert joined["data"]["userId"] == user.pk
    assert joined["skip"] == "sid-client"
    assert server.events("joined_chat")[0]["to"] == "sid-client"


def test_join_chat_denied(server, chat):
    call(sockets.join_chat, "sid-stranger", {"chatId": chat.pk})
    (error,) = server.events("error")
    assert error["data"]["message"] == "You do not have access to this chat."
    assert not server.rooms

    call(sockets.join_chat, "sid-client", {"chatId": 999999})
    assert server.events("error")[1]["data"]["message"] == "Chat not found."


def test_leave_chat(server, chat):
    call(sockets.join_chat, "sid-client", {"chatId": chat.pk})
    call(sockets.leave_chat, "sid-client", {"chatId": chat.pk})

    assert registry.members(chat.pk) == set()
    assert server.events("left_chat")[0]["data"] == {"chatId": chat.pk}


@pytest.mark.parametrize("handler", ["leave_chat", "typing_start", "typing_stop"])
def test_malformed_chat_id_is_answered_with_an_error(server, handler):
    call(getattr(sockets, handler), "sid-client", {"chatId": "general"})

    (error,) = server.events("error")
    assert error["to"] == "sid-client"
    assert error["data"]["message"] == "A valid chatId is required."
    assert not server.events("left_chat")
    assert not server.events("user_typing")


def test_typing_is_deduplicated(server, chat, user):
    call(sockets.typing_start, "sid-client", {"chatId": chat.pk})
    call(sockets.typing_start, "sid-client", {"chatId": chat.pk})
    assert len(server.events("user_typing")) == 1
    assert registry.typing_in(chat.pk) == {user.pk}

    call(sockets.typing_stop, "sid-client", {"chatId": chat.pk})
    assert len(server.events("user_stopped_typing")) == 1
    assert registry.typing_in(chat.pk) == set()


def test_send_message_acknowledges_sender(server, chat, user):
    call(sockets.typing_start, "sid-client", {"chatId": chat.pk})
    call(
        sockets.send_message,
        "sid-client",
        {"chatId": chat.pk, "text": "Running late", "tempId": "t-1"},
    )

    (sent,) = server.events("message_sent")
    assert sent["to"] == "sid-client"
    assert sent["data"]["tempId"] == "t-1"
    assert sent["data"]["message"]["text"] == "Running late"
    assert Message.objects.filter(chat=chat, sender=user).count() == 1
    assert len(server.events("user_stopped_typing")) == 1


def test_send_message_error_echoes_temp_id(server, chat):
    call(
        sockets.send_message,
        "sid-client",
        {"chatId": chat.pk, "text": "", "tempId": "t-2"},
    )
    (error,) = server.events("message_error")
    assert error["data"] == {
        "message": "Text messages cannot be empty.",
        "tempId": "t-2",
    }


def test_mark_as_read(server, chat, professional, user):
    message = services.send_message(chat, professional.user, text="Hi")
    call(
        sockets.mark_as_read,
        "sid-client",
        {"chatId": chat.pk, "messageId": message.pk},
    )
    assert MessageRead.objects.filter(message=message, user=user).exists()


def test_edit_delete_and_react(server, chat, user):
    message = services.send_message(chat, user, text="typo")
    call(
        sockets.edit_message,
        "sid-client",
        {"messageId": message.pk, "newContent": "fixed"},
    )
    call(sockets.add_reaction, "sid-pro", {"messageId": message.pk, "emoji": "👍"})
    message.refresh_from_db()
    assert message.text == "fixed"
    assert message.reaction_summary() == {"👍": 1}

    call(sockets.remove_reaction, "sid-pro", {"messageId": message.pk})
    call(sockets.delete_message, "sid-pro", {"messageId": message.pk})
    (error,) = server.events("error")
    assert error["data"]["message"] == "You can only delete your own messages."

    call(sockets.delete_message, "sid-client", {"messageId": message.pk})
    message.refresh_from_db()
    assert message.is_deleted
    assert not message.reactions.exists()


def test_history_pages_with_has_more(server, chat, user):
    services.send_message(chat, user, text="one")
    services.send_message(chat, user, text="two")

    call(sockets.get_chat_history, "sid-client", {"chatId": chat.pk, "limit": 2})
    (history,) = server.events("chat_history")
    assert [m["text"] for m in history["data"]["messages"]] == ["two", "one"]
    assert history["data"]["hasMore"] is True


def test_search_messages(server, chat, user):
    services.send_message(chat, user, text="Bring the ladder")
    call(
        sockets.search_messages,
        "sid-pro",
        {"chatId": chat.pk, "searchTerm": "ladder"},
    )
    (found,) = server.events("search_results")
    assert found["data"]["searchTerm"] == "ladder"
    assert len(found["data"]["messages"]) == 1

    call(sockets.search_messages, "sid-pro", {"chatId": chat.pk, "searchTerm": "l"})
    assert server.events("error")[0]["data"]["message"] == (
        "Search term must have at least 2 characters."
    )
