from dj_rest_auth.views import PasswordResetConfirmView
from dj_rest_auth.views import PasswordResetView
from django.urls import path
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework_simplejwt.views import TokenRefreshView

from .auth_views import DeleteAccountView
from .auth_views import DeviceTokenView
from .auth_views import LoginView
from .auth_views import LogoutView
from .auth_views import PasswordChangeView
from .auth_views import RegisterView
from .auth_views import ResendVerificationView
from .auth_views import VerifyEmailView
from .views import UserViewSet


@extend_schema_view(post=extend_schema(tags=["Authentication"]))
class JWTRefreshView(TokenRefreshView):
    pass


profile_view = UserViewSet.as_view({"get": "me", "patch": "me"})

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("login/", LoginView.as_view(), name="login"),
    path("refresh/", JWTRefreshView.as_view(), name="token-refresh"),
    path("logout/", LogoutView.as_view(), name="logout"),
    path("verify-email/", VerifyEmailView.as_view(), name="verify-email"),
    path(
        "resend-verification/",
        ResendVerificationView.as_view(),
        name="resend-verification",
    ),
    path("password/reset/", PasswordResetView.as_view(), name="password-reset"),
    path(
        "password/reset/confirm/",
        PasswordResetConfirmView.as_view(),
        name="password-reset-confirm",
    ),
    path("password/change/", PasswordChangeView.as_view(), name="password-change"),
    path("me/", profile_view, name="me"),
    path("device-token/", DeviceTokenView.as_view(), name="device-token"),
    path("account/", DeleteAccountView.as_view(), name="delete-account"),
]
