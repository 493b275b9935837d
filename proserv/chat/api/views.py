from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from proserv.chat import services
from proserv.core.api.responses import envelope
from proserv.realtime.presence import registry
from proserv.service_requests.models import ServiceRequest

from .serializers import ChatCreateSerializer
from .serializers import ChatSerializer
from .serializers import CloseSerializer
from .serializers import MessageCreateSerializer
from .serializers import MessageEditSerializer
from .serializers import MessageSerializer
from .serializers import ReactionSerializer
from .serializers import ReadSerializer


@extend_schema_view(
    list=extend_schema(tags=["Chat"]),
    retrieve=extend_schema(tags=["Chat"]),
    create=extend_schema(tags=["Chat"], request=ChatCreateSerializer),
)
class ChatViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    GenericViewSet,
):
    """Chats the user participates in, plus message operations.

    The same operations are available over Socket.IO (see ``chat.sockets``).
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ChatSerializer

    def get_queryset(self):
        return services.user_chats(
            self.request.user,
            status=self.request.query_params.get("status"),
        )

    def get_object(self):
        chat = services.get_chat_for(self.request.user, self.kwargs["pk"])
        self.check_object_permissions(self.request, chat)
        return chat

    def get_serializer_context(self):
        return {**super().get_serializer_context(), "viewer_id": self.request.user.pk}

    def _message_data(self, message):
        return MessageSerializer(
            message,
            context={"viewer_id": self.request.user.pk},
        ).data

    def create(self, request, *args, **kwargs):
        serializer = ChatCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service_request = get_object_or_404(
            ServiceRequest,
            pk=serializer.validated_data["service_request"],
        )
        chat = services.create_service_chat(request.user, service_request)
        return envelope(
            self.get_serializer(chat).data,
            message="Chat ready.",
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(request=MessageCreateSerializer, responses=MessageSerializer)
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        chat = self.get_object()
        if request.method == "POST":
            serializer = MessageCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            message = services.send_message(
                chat,
                request.user,
                **serializer.validated_data,
            )
            return envelope(
                self._message_data(message),
                message="Message sent.",
                status=status.HTTP_201_CREATED,
            )

        before = request.query_params.get("before")
        before_dt = parse_datetime(before) if before else None
        if before and before_dt is None:
            raise ValidationError({"before": "Invalid datetime."})
        qs = services.history(
            chat,
            before=before_dt,
            message_type=request.query_params.get("type"),
        )
        page = self.paginate_queryset(qs)
        data = MessageSerializer(
            page,
            many=True,
            context={"viewer_id": request.user.pk},
        ).data
        return self.get_paginated_response(data)

    @extend_schema(request=MessageEditSerializer, responses=MessageSerializer)
    @action(
        detail=False,
        methods=["patch", "delete"],
        url_path=r"messages/(?P<message_id>\d+)",
    )
    def message(self, request, message_id=None):
        message = services.get_message_for(request.user, message_id)
        if request.method == "DELETE":
            services.delete_message(message, request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.edit_message(message, request.user, serializer.validated_data["text"])
        return envelope(self._message_data(message), message="Message edited.")

    @extend_schema(request=ReactionSerializer)
    @action(
        detail=False,
        methods=["post", "delete"],
        url_path=r"messages/(?P<message_id>\d+)/reactions",
    )
    def reactions(self, request, message_id=None):
        message = services.get_message_for(request.user, message_id)
        if request.method == "DELETE":
            services.remove_reaction(message, request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
        serializer = ReactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.add_reaction(message, request.user, serializer.validated_data["emoji"])
        return envelope(
            {"message_id": message.pk, "reactions": message.reaction_summary()},
            message="Reaction added.",
        )

    @extend_schema(request=ReadSerializer)
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        chat = self.get_object()
        serializer = ReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        count = services.mark_read(
            chat,
            request.user,
            serializer.validated_data["message_id"],
        )
        return envelope({"marked": count}, message="Marked as read.")

    @action(detail=True, methods=["get"])
    def search(self, request, pk=None):
        chat = self.get_object()
        messages = services.search(chat, request.query_params.get("q", ""))
        return envelope(
            MessageSerializer(
                messages,
                many=True,
                context={"viewer_id": request.user.pk},
            ).data,
        )

    @action(detail=True, methods=["get"], url_path="stats")
    def chat_stats(self, request, pk=None):
        return envelope(services.chat_stats(self.get_object()))

    @action(detail=False, methods=["get"], url_path="stats")
    def overview(self, request):
        return envelope(services.user_chat_stats(request.user))

    @extend_schema(request=CloseSerializer)
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        chat = self.get_object()
        serializer = CloseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.close(chat, request.user, serializer.validated_data["reason"])
        return envelope(self.get_serializer(chat).data, message="Chat closed.")

    @extend_schema(request=None)
    @action(detail=True, methods=["post"])
    def reopen(self, request, pk=None):
        chat = self.get_object()
        services.reopen(chat, request.user)
        return envelope(self.get_serializer(chat).data, message="Chat reopened.")

    @action(detail=False, methods=["get"], url_path="online-users")
    def online_users(self, request):
        return envelope(
            {"users": registry.online_users(), "stats": registry.stats()},
        )
