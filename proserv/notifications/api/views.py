from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction
from django.db.models import Count
from django.db.models import Q
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from proserv.core.api.responses import envelope
from proserv.notifications import services
from proserv.notifications.filters import NotificationFilter
from proserv.notifications.models import Notification
from proserv.realtime.events.notifications import publish_unread_count
from proserv.users.api.permissions import IsAdminRole
from proserv.users.models import User

from .serializers import ChannelSettingsSerializer
from .serializers import NotificationCreateSerializer
from .serializers import NotificationSerializer

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable


def _coerce_receivers_to_user_ids(receivers: Iterable[Any]) -> set[int]:
    user_ids: set[int] = set()
    for r in receivers:
        if isinstance(r, bool) or r is None:
            continue
        if isinstance(r, int):
            user_ids.add(int(r))
            continue
        if isinstance(r, str) and r.strip().isdigit():
            user_ids.add(int(r.strip()))
    return user_ids


def _channel_settings(user) -> dict:
    prefs = (user.preferences or {}).get("notifications", {})
    return {**user.notification_channels(), "types": prefs.get("types", {})}


class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Notifications for the authenticated user.

    - list: shows request.user's notifications (with unread count)
    - create: creates notifications for target recipients (admin)
    - destroy: deletes a notification (recipient only)
    - mark_read / mark_all_read / delete_read
    - settings: channel and type preferences
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    filterset_class = NotificationFilter
    ordering_fields = ["created_at", "priority"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return Notification.objects.filter(recipient=self.request.user)

    def get_permissions(self):
        if self.action in ("create", "stats"):
            return [IsAdminRole()]
        return [p() for p in self.permission_classes]

    def _sync_unread(self, user):
        count = services.unread_count(user)
        transaction.on_commit(lambda: publish_unread_count(user.pk, count))

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        data = self.get_serializer(page, many=True).data
        return self.paginator.get_paginated_response(
            data,
            unread_count=services.unread_count(request.user),
        )

    @extend_schema(request=NotificationCreateSerializer)
    def create(self, request, *args, **kwargs):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        recipient_ids: set[int] = set()
        active = User.objects.filter(is_active=True)
        if "recipient_id" in data:
            recipient_ids.add(int(data["recipient_id"]))
        elif "role" in data:
            recipient_ids.update(
                active.filter(role=data["role"]).values_list("id", flat=True),
            )
        else:
            receivers = data.get("receivers") or []
            has_all = any(
                isinstance(r, str) and r.strip().upper() == "ALL" for r in receivers
            )
            if has_all:
                recipient_ids.update(active.values_list("id", flat=True))
            recipient_ids.update(_coerce_receivers_to_user_ids(receivers))

        recipient_ids &= set(
            User.objects.filter(pk__in=recipient_ids).values_list("id", flat=True),
        )
        if not recipient_ids:
            msg = "No recipients resolved from payload."
            raise ValidationError(msg)

        created = services.create_custom(
            recipient_ids,
            title=data["title"],
            message=data["message"],
            notification_type=data["notification_type"],
            priority=data["priority"],
            data=data.get("data"),
            link=data.get("related_link", ""),
        )
        out = NotificationSerializer(created, many=True).data
        return envelope(
            {"count": len(created), "notifications": out},
            message=f"{len(created)} notification(s) sent.",
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return envelope({"unread_count": services.unread_count(request.user)})

    @extend_schema(request=None)
    @action(detail=True, methods=["post", "patch"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_read()
        self._sync_unread(request.user)
        return envelope(
            NotificationSerializer(notification).data,
            message="Notification marked as read.",
        )

    @extend_schema(request=None)
    @action(detail=False, methods=["post", "patch"], url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = (
            self.get_queryset()
            .filter(is_read=False)
            .update(is_read=True, read_at=timezone.now())
        )
        self._sync_unread(request.user)
        return envelope({"updated": updated}, message="All notifications read.")

    @action(detail=False, methods=["delete"], url_path="read")
    def delete_read(self, request):
        deleted, _ = self.get_queryset().filter(is_read=True).delete()
        return envelope({"deleted": deleted}, message="Read notifications deleted.")

    @extend_schema(request=ChannelSettingsSerializer)
    @action(detail=False, methods=["get", "put", "patch"], url_path="settings")
    def channel_settings(self, request):
        user = request.user
        if request.method == "GET":
            return envelope(_channel_settings(user))
        serializer = ChannelSettingsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prefs = dict(user.preferences or {})
        current = dict(prefs.get("notifications", {}))
        incoming = dict(serializer.validated_data)
        if "types" in incoming:
            current["types"] = {**current.get("types", {}), **incoming.pop("types")}
        current.update(incoming)
        prefs["notifications"] = current
        user.preferences = prefs
        user.save(update_fields=["preferences", "updated_at"])
        return envelope(_channel_settings(user), message="Settings updated.")

    @extend_schema(request=None)
    @action(detail=False, methods=["post"])
    def test(self, request):
        notification = services.notify(
            request.user,
            "test",
            data={"test": True},
        )
        if notification is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return envelope(
            NotificationSerializer(notification).data,
            message="Test notification sent.",
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"])
    def stats(self, request):
        qs = Notification.objects.order_by()
        totals = qs.aggregate(
            total=Count("id"),
            unread=Count("id", filter=Q(is_read=False)),
        )
        by_type = dict(
            qs.values("notification_type")
            .annotate(n=Count("id"))
            .values_list("notification_type", "n"),
        )
        by_priority = dict(
            qs.values("priority").annotate(n=Count("id")).values_list("priority", "n"),
        )
        total = totals["total"]
        return envelope(
            {
                **totals,
                "read_rate": round((total - totals["unread"]) / total * 100, 2)
                if total
                else 0,
                "by_type": by_type,
                "by_priority": by_priority,
            },
        )
