from rest_framework import serializers

from proserv.chat.models import DELETED_PLACEHOLDER
from proserv.chat.models import Chat
from proserv.chat.models import ChatParticipant
from proserv.chat.models import Message
from proserv.users.api.serializers import UserSummarySerializer


class ReplySerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ["id", "sender", "message_type", "text"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    """Message as seen by ``context["viewer_id"]``.

    Soft-deleted messages keep their content only for the sender; everyone
    else receives a placeholder.
    """

    sender = UserSummarySerializer(read_only=True)
    reply_to = ReplySerializer(read_only=True)
    reactions = serializers.SerializerMethodField()
    read_by = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "chat",
            "sender",
            "message_type",
            "text",
            "media",
            "location",
            "metadata",
            "reply_to",
            "status",
            "is_edited",
            "edited_at",
            "is_deleted",
            "reactions",
            "read_by",
            "created_at",
        ]
        read_only_fields = fields

    def get_reactions(self, obj: Message) -> dict:
        return obj.reaction_summary()

    def get_read_by(self, obj: Message) -> list[int]:
        return [r.user_id for r in obj.reads.all()]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        viewer_id = self.context.get("viewer_id")
        if instance.is_deleted and instance.sender_id != viewer_id:
            data.update(
                message_type=Message.Type.SYSTEM,
                text=DELETED_PLACEHOLDER,
                media=None,
                location=None,
                metadata={},
                reply_to=None,
                reactions={},
            )
        return data


class ParticipantSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ChatParticipant
        fields = ["user", "role", "joined_at", "message_count"]
        read_only_fields = fields


class ChatSerializer(serializers.ModelSerializer):
    participants = serializers.SerializerMethodField()
    service_request_title = serializers.CharField(
        source="service_request.title",
        read_only=True,
        default=None,
    )
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = [
            "id",
            "service_request",
            "service_request_title",
            "chat_type",
            "status",
            "participants",
            "last_message_text",
            "last_message_type",
            "last_message_sender",
            "last_message_at",
            "total_messages",
            "last_activity_at",
            "notifications_enabled",
            "unread_count",
            "closed_at",
            "close_reason",
            "created_at",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Chat) -> list:
        active = [p for p in obj.participants.all() if p.is_active]
        return ParticipantSerializer(active, many=True).data

    def get_unread_count(self, obj: Chat) -> int | None:
        viewer_id = self.context.get("viewer_id")
        if viewer_id is None:
            return None
        return obj.messages.unread_by(viewer_id).count()


class ChatCreateSerializer(serializers.Serializer):
    service_request = serializers.IntegerField()


class MessageCreateSerializer(serializers.Serializer):
    message_type = serializers.ChoiceField(
        choices=[
            Message.Type.TEXT,
            Message.Type.IMAGE,
            Message.Type.FILE,
            Message.Type.LOCATION,
        ],
        default=Message.Type.TEXT,
    )
    text = serializers.CharField(
        max_length=4000,
        required=False,
        allow_blank=True,
        default="",
    )
    media = serializers.DictField(required=False, allow_null=True, default=None)
    location = serializers.DictField(required=False, allow_null=True, default=None)
    reply_to = serializers.IntegerField(required=False, allow_null=True, default=None)
    metadata = serializers.DictField(required=False, default=dict)


class MessageEditSerializer(serializers.Serializer):
    text = serializers.CharField(max_length=4000)


class ReactionSerializer(serializers.Serializer):
    emoji = serializers.CharField(max_length=16)


class ReadSerializer(serializers.Serializer):
    message_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class CloseSerializer(serializers.Serializer):
    reason = serializers.ChoiceField(
        choices=Chat.CloseReason.choices,
        default=Chat.CloseReason.USER_REQUEST,
    )
