from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from proserv.chat.api.views import ChatViewSet
from proserv.notifications.api.views import NotificationViewSet
from proserv.payments.api.views import InvoiceViewSet
from proserv.payments.api.views import PaymentMethodViewSet
from proserv.payments.api.views import PaymentViewSet
from proserv.professionals.api.views import ProfessionalViewSet
from proserv.professionals.api.views import ServiceOfferingViewSet
from proserv.quotes.api.views import QuoteViewSet
from proserv.reviews.api.views import ReviewViewSet
from proserv.service_requests.api.views import ServiceRequestViewSet
from proserv.users.api.views import AddressViewSet
from proserv.users.api.views import UserViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("users/addresses", AddressViewSet, basename="address")
router.register("users", UserViewSet)
router.register(
    "professionals/offerings",
    ServiceOfferingViewSet,
    basename="offering",
)
router.register("professionals", ProfessionalViewSet, basename="professional")
router.register("services", ServiceRequestViewSet, basename="service-request")
router.register("quotes", QuoteViewSet, basename="quote")
router.register("payments/methods", PaymentMethodViewSet, basename="payment-method")
router.register("payments/invoices", InvoiceViewSet, basename="invoice")
router.register("payments", PaymentViewSet, basename="payment")
router.register("reviews", ReviewViewSet, basename="review")
router.register("chat", ChatViewSet, basename="chat")
router.register("notifications", NotificationViewSet, basename="notification")


app_name = "api"
urlpatterns = [
    path(
        "admin/",
        include(("proserv.dashboard.api.urls", "dashboard"), namespace="dashboard"),
    ),
    path(
        "audit/",
        include(("proserv.audit.api.urls", "audit"), namespace="audit"),
    ),
    *router.urls,
]
