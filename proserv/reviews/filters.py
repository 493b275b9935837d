import django_filters

from proserv.reviews.models import Review


class ReviewFilter(django_filters.FilterSet):
    reviewee = django_filters.NumberFilter(field_name="reviewee_id")
    reviewer = django_filters.NumberFilter(field_name="reviewer_id")
    service_request = django_filters.NumberFilter(field_name="service_request_id")
    reviewer_type = django_filters.ChoiceFilter(
        choices=Review.ReviewerType.choices,
    )
    min_rating = django_filters.NumberFilter(field_name="rating", lookup_expr="gte")
    with_comment = django_filters.BooleanFilter(
        field_name="comment",
        method="filter_with_comment",
    )

    class Meta:
        model = Review
        fields = ["reviewee", "reviewer", "service_request", "reviewer_type"]

    def filter_with_comment(self, queryset, name, value):
        if value:
            return queryset.exclude(comment="")
        return queryset.filter(comment="")
