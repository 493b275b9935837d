from django.contrib import admin

from proserv.reviews.models import Review
from proserv.reviews.models import ReviewFlag


class ReviewFlagInline(admin.TabularInline):
    model = ReviewFlag
    extra = 0
    raw_id_fields = ["reported_by"]


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "service_request",
        "reviewer",
        "reviewee",
        "rating",
        "status",
        "created_at",
    ]
    list_filter = ["status", "reviewer_type", "rating"]
    search_fields = ["comment", "reviewer__email", "reviewee__email"]
    raw_id_fields = ["service_request", "reviewer", "reviewee"]
    filter_horizontal = ["helpful_by"]
    inlines = [ReviewFlagInline]
