from proserv.chat import services
from proserv.chat.models import DELETED_PLACEHOLDER
from proserv.chat.models import Chat
from proserv.chat.models import Message
from proserv.realtime.presence import registry
from tests.factories import create_accepted_request
from tests.factories import create_service_request
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_CLIENT
from tests.mixins import ROLE_OTHER_CLIENT
from tests.mixins import ROLE_OTHER_PROFESSIONAL
from tests.mixins import ROLE_PROFESSIONAL
from tests.mixins import MarketplaceAPITestCase


class ChatAPITestCase(MarketplaceAPITestCase):
    def setUp(self):
        super().setUp()
        self.request = create_accepted_request(
            self.users[ROLE_CLIENT],
            self.professional,
        )
        self.chat = services.open_service_chat(self.request)
        self.kwargs = {"pk": self.chat.pk}

    def send(self, text, role=ROLE_CLIENT, **payload):
        return self.post(
            "api_v1:chat-messages",
            role=role,
            reverse_kwargs=self.kwargs,
            payload={"text": text, **payload},
        )


class TestChatAccess(ChatAPITestCase):
    def test_create_returns_existing_service_chat(self):
        res = self.post(
            "api_v1:chat-list",
            role=ROLE_PROFESSIONAL,
            payload={"service_request": self.request.pk},
        )
        self.assert_http_status(res, 201)
        assert res.data["id"] == self.chat.pk
        assert len(res.data["participants"]) == 2

    def test_create_requires_participation_and_professional(self):
        res = self.post(
            "api_v1:chat-list",
            role=ROLE_OTHER_PROFESSIONAL,
            payload={"service_request": self.request.pk},
        )
        self.assert_denied(res)

        open_request = create_service_request(self.users[ROLE_CLIENT])
        res = self.post(
            "api_v1:chat-list",
            role=ROLE_CLIENT,
            payload={"service_request": open_request.pk},
        )
        self.assert_http_status(res, 409)

    def test_list_is_scoped_to_participants(self):
        res = self.get("api_v1:chat-list", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        rows = self.extract_results(res)
        assert [row["id"] for row in rows] == [self.chat.pk]
        assert rows[0]["unread_count"] == 1

        res = self.get("api_v1:chat-list", role=ROLE_OTHER_CLIENT)
        assert self.extract_results(res) == []

    def test_detail_access(self):
        for role, code in (
            (ROLE_PROFESSIONAL, 200),
            (ROLE_OTHER_CLIENT, 403),
            (ROLE_ADMIN, 200),
        ):
            res = self.get("api_v1:chat-detail", role=role, reverse_kwargs=self.kwargs)
            self.assert_http_status(res, code)

    def test_unknown_chat(self):
        res = self.get(
            "api_v1:chat-detail",
            role=ROLE_CLIENT,
            reverse_kwargs={"pk": 999999},
        )
        self.assert_http_status(res, 404)


class TestMessages(ChatAPITestCase):
    def test_send_and_page_history(self):
        self.assert_http_status(self.send("First"), 201)
        res = self.send("Second", role=ROLE_PROFESSIONAL)
        self.assert_http_status(res, 201)
        assert res.data["sender"]["id"] == self.professional.user_id

        res = self.get(
            "api_v1:chat-messages",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
            data={"type": "text"},
        )
        self.assert_http_status(res, 200)
        assert [m["text"] for m in self.extract_results(res)] == ["Second", "First"]
        assert res.data["pagination"]["total"] == 2

    def test_history_rejects_bad_cursor(self):
        res = self.get(
            "api_v1:chat-messages",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
            data={"before": "yesterday"},
        )
        self.assert_http_status(res, 400)

    def test_outsider_cannot_send(self):
        self.assert_denied(self.send("Hi", role=ROLE_OTHER_CLIENT))

    def test_edit_and_delete(self):
        message_id = self.send("Gate code 1234").data["id"]
        url_kwargs = {"message_id": message_id}

        res = self.patch(
            "api_v1:chat-message",
            role=ROLE_CLIENT,
            reverse_kwargs=url_kwargs,
            payload={"text": "Gate code 4321"},
        )
        self.assert_http_status(res, 200)
        assert res.data["text"] == "Gate code 4321"
        assert res.data["is_edited"] is True

        res = self.delete(
            "api_v1:chat-message",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=url_kwargs,
        )
        self.assert_denied(res)

        res = self.delete(
            "api_v1:chat-message",
            role=ROLE_CLIENT,
            reverse_kwargs=url_kwargs,
        )
        self.assert_http_status(res, 204)

        res = self.get(
            "api_v1:chat-messages",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
        )
        deleted = self.extract_results(res)[0]
        assert deleted["text"] == DELETED_PLACEHOLDER

    def test_reactions(self):
        message_id = self.send("All done").data["id"]
        url_kwargs = {"message_id": message_id}
        res = self.post(
            "api_v1:chat-reactions",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=url_kwargs,
            payload={"emoji": "👍"},
        )
        self.assert_http_status(res, 200)
        assert res.data["reactions"] == {"👍": 1}

        res = self.delete(
            "api_v1:chat-reactions",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=url_kwargs,
        )
        self.assert_http_status(res, 204)
        assert not Message.objects.get(pk=message_id).reactions.exists()

    def test_mark_read(self):
        self.send("Hello", role=ROLE_PROFESSIONAL)
        res = self.post(
            "api_v1:chat-read",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
        )
        self.assert_http_status(res, 200)
        assert res.data == {"marked": 2}

    def test_search(self):
        self.send("Please bring a ladder")
        res = self.get(
            "api_v1:chat-search",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
            data={"q": "ladder"},
        )
        self.assert_http_status(res, 200)
        assert len(res.data) == 1

        res = self.get(
            "api_v1:chat-search",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
            data={"q": "l"},
        )
        self.assert_http_status(res, 400)

    def test_stats(self):
        self.send("Hi")
        res = self.get(
            "api_v1:chat-chat-stats",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
        )
        self.assert_http_status(res, 200)
        assert res.data["total_messages"] == 2

        res = self.get("api_v1:chat-overview", role=ROLE_PROFESSIONAL)
        self.assert_http_status(res, 200)
        assert res.data["total_chats"] == 1
        assert res.data["unread_messages"] == 2


class TestChatStatus(ChatAPITestCase):
    def test_close_blocks_messages_until_reopened(self):
        res = self.post(
            "api_v1:chat-close",
            role=ROLE_CLIENT,
            reverse_kwargs=self.kwargs,
            payload={"reason": "user_request"},
        )
        self.assert_http_status(res, 200)
        assert res.data["status"] == Chat.Status.CLOSED
        self.assert_http_status(self.send("Anyone?"), 409)

        res = self.post(
            "api_v1:chat-reopen",
            role=ROLE_PROFESSIONAL,
            reverse_kwargs=self.kwargs,
        )
        self.assert_http_status(res, 200)
        assert res.data["status"] == Chat.Status.ACTIVE
        self.assert_http_status(self.send("Back again"), 201)

    def test_online_users(self):
        registry.connect("sid-1", self.professional.user_id, "Pro")
        res = self.get("api_v1:chat-online-users", role=ROLE_CLIENT)
        self.assert_http_status(res, 200)
        assert [u["userId"] for u in res.data["users"]] == [self.professional.user_id]
        assert res.data["stats"]["connectedUsers"] == 1
