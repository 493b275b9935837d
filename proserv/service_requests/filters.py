import django_filters
from django.db.models import Q

from proserv.professionals.models import ServiceCategory
from proserv.service_requests.models import ServiceRequest


class ServiceRequestFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_search")
    status = django_filters.MultipleChoiceFilter(choices=ServiceRequest.Status.choices)
    category = django_filters.ChoiceFilter(choices=ServiceCategory.choices)
    urgency = django_filters.ChoiceFilter(choices=ServiceRequest.Urgency.choices)
    city = django_filters.CharFilter(field_name="address_city", lookup_expr="icontains")
    date_from = django_filters.DateFilter(
        field_name="preferred_date",
        lookup_expr="gte",
    )
    date_to = django_filters.DateFilter(field_name="preferred_date", lookup_expr="lte")
    client = django_filters.NumberFilter(field_name="client_id")
    professional = django_filters.NumberFilter(field_name="assigned_professional_id")

    class Meta:
        model = ServiceRequest
        fields = ["status", "category", "urgency", "payment_status"]

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(title__icontains=value) | Q(description__icontains=value),
        )
