from django.urls import path
from rest_framework.routers import SimpleRouter

from proserv.dashboard.api import views

router = SimpleRouter()
router.register("users", views.AdminUserViewSet, basename="user")
router.register(
    "professionals",
    views.AdminProfessionalViewSet,
    basename="professional",
)
router.register(
    "services",
    views.AdminServiceRequestViewSet,
    basename="service-request",
)
router.register("payments", views.AdminPaymentViewSet, basename="payment")

app_name = "dashboard"

urlpatterns = [
    path("dashboard/", views.DashboardView.as_view(), name="dashboard"),
    path("stats/", views.StatsView.as_view(), name="stats"),
    *router.urls,
]
