import django_filters
from django.db.models import Q

from proserv.users.models import User


class UserFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_search")
    role = django_filters.ChoiceFilter(choices=User.Role.choices)
    is_active = django_filters.BooleanFilter()
    is_verified = django_filters.BooleanFilter()
    joined_after = django_filters.DateFilter(
        field_name="date_joined",
        lookup_expr="date__gte",
    )
    joined_before = django_filters.DateFilter(
        field_name="date_joined",
        lookup_expr="date__lte",
    )

    class Meta:
        model = User
        fields = ["role", "is_active", "is_verified"]

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value)
            | Q(email__icontains=value)
            | Q(phone__icontains=value)
            | Q(username__icontains=value),
        )
