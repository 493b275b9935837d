from __future__ import annotations

from typing import TYPE_CHECKING

from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from rest_framework.views import APIView

from proserv.audit.api.serializers import AuditLogSerializer
from proserv.audit.models import AuditLog
from proserv.core.api.responses import envelope
from proserv.users.api.permissions import IsAdminRole

if TYPE_CHECKING:
    from django.db.models import QuerySet

DEFAULT_LIMIT = 5
MAX_LIMIT = 50


class RecentAuditView(APIView):
    """Latest audit entries, optionally narrowed to an action, actor or record."""

    permission_classes = [IsAdminRole]

    @extend_schema(
        tags=["Admin"],
        parameters=[
            OpenApiParameter("limit", int),
            OpenApiParameter("action", str),
            OpenApiParameter("actor", int),
            OpenApiParameter("model", str, description="e.g. payments.Payment"),
            OpenApiParameter("record", int),
        ],
        responses=AuditLogSerializer(many=True),
    )
    def get(self, request):
        params = request.query_params
        try:
            limit = int(params.get("limit", DEFAULT_LIMIT))
        except (TypeError, ValueError):
            limit = DEFAULT_LIMIT
        limit = max(1, min(limit, MAX_LIMIT))

        qs: QuerySet[AuditLog] = AuditLog.objects.select_related("actor")
        if action := params.get("action"):
            qs = qs.filter(action=action)
        actor = params.get("actor", "")
        if actor.isdigit():
            qs = qs.filter(actor_id=actor)
        if model := params.get("model"):
            qs = qs.filter(model_name__iexact=model)
        record = params.get("record", "")
        if record.isdigit():
            qs = qs.filter(record_id=record)
        data = AuditLogSerializer(qs[:limit], many=True).data
        return envelope({"results": data, "limit": limit})
