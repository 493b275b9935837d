import django_filters

from proserv.payments.models import Payment
from proserv.payments.models import PaymentMethodType


class PaymentFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Payment.Status.choices)
    method = django_filters.ChoiceFilter(choices=PaymentMethodType.choices)
    service_request = django_filters.NumberFilter(field_name="service_request_id")
    start_date = django_filters.DateFilter(
        field_name="created_at",
        lookup_expr="date__gte",
    )
    end_date = django_filters.DateFilter(
        field_name="created_at",
        lookup_expr="date__lte",
    )

    class Meta:
        model = Payment
        fields = ["status", "method", "service_request"]
