import django_filters
from django.db.models import Q

from proserv.professionals.models import Professional
from proserv.professionals.models import ServiceCategory


class ProfessionalFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_search")
    category = django_filters.ChoiceFilter(
        choices=ServiceCategory.choices,
        method="filter_category",
    )
    subcategory = django_filters.CharFilter(method="filter_subcategory")
    city = django_filters.CharFilter(field_name="city", lookup_expr="icontains")
    min_rating = django_filters.NumberFilter(
        field_name="rating_average",
        lookup_expr="gte",
    )
    verified = django_filters.BooleanFilter(method="filter_verified")
    max_price = django_filters.NumberFilter(method="filter_max_price")

    class Meta:
        model = Professional
        fields = ["city", "verification_status"]

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(business_name__icontains=value)
            | Q(description__icontains=value)
            | Q(user__name__icontains=value)
            | Q(offerings__title__icontains=value),
        ).distinct()

    def filter_category(self, queryset, name, value):
        return queryset.filter(
            offerings__category=value,
            offerings__is_active=True,
        ).distinct()

    def filter_subcategory(self, queryset, name, value):
        return queryset.filter(
            offerings__subcategory__iexact=value,
            offerings__is_active=True,
        ).distinct()

    def filter_verified(self, queryset, name, value):
        if value:
            return queryset.filter(
                verification_status=Professional.VerificationStatus.VERIFIED,
            )
        return queryset.exclude(
            verification_status=Professional.VerificationStatus.VERIFIED,
        )

    def filter_max_price(self, queryset, name, value):
        return queryset.filter(
            offerings__amount__lte=value,
            offerings__is_active=True,
        ).distinct()
