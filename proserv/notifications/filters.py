import django_filters

from proserv.notifications.models import Notification


class NotificationFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(
        field_name="notification_type",
        choices=Notification.Type.choices,
    )
    priority = django_filters.ChoiceFilter(choices=Notification.Priority.choices)
    created_after = django_filters.IsoDateTimeFilter(
        field_name="created_at",
        lookup_expr="gte",
    )

    class Meta:
        model = Notification
        fields = ["is_read", "type", "priority"]
