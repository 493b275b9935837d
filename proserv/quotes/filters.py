import django_filters

from proserv.quotes.models import Quote


class QuoteFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Quote.Status.choices)
    service_request = django_filters.NumberFilter(field_name="service_request_id")
    min_price = django_filters.NumberFilter(field_name="price", lookup_expr="gte")
    max_price = django_filters.NumberFilter(field_name="price", lookup_expr="lte")

    class Meta:
        model = Quote
        fields = ["status", "service_request"]
