from __future__ import annotations

import logging

from dj_rest_auth.views import PasswordChangeView as BasePasswordChangeView
from django.contrib.auth import authenticate
from django.contrib.auth.signals import user_logged_in
from django.db.models import Q
from django.utils import timezone
from django.utils.encoding import force_str
from django.utils.http import urlsafe_base64_decode
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from proserv.audit.utils import log_action
from proserv.core.api.exceptions import Conflict
from proserv.core.api.responses import envelope
from proserv.core.api.responses import error_response
from proserv.notifications.services import notify
from proserv.users.emails import send_verification_email
from proserv.users.models import DeviceToken
from proserv.users.models import User
from proserv.users.tokens import email_verification_token
from proserv.users.tokens import revoke_refresh_tokens

from .serializers import DeviceTokenSerializer
from .serializers import LoginSerializer
from .serializers import LogoutSerializer
from .serializers import RegisterSerializer
from .serializers import UserSerializer
from .serializers import VerifyEmailSerializer

logger = logging.getLogger(__name__)

LOCKED_MESSAGE = (
    "Account temporarily locked after too many failed login attempts. "
    "Try again later."
)


def issue_tokens(user: User) -> dict[str, str]:
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


@extend_schema(tags=["Authentication"], request=RegisterSerializer)
class RegisterView(APIView):
    permission_classes = [AllowAny]
    authentication_classes: list = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"]
        taken = Q(email__iexact=email) | Q(username__iexact=email)
        if User.objects.filter(taken).exists():
            msg = "A user with this e-mail already exists."
            raise Conflict(msg)

        user = serializer.save()
        send_verification_email(user)
        log_action(
            "user_registered",
            actor=user,
            message=f"role={user.role}",
            target=user,
            request=request,
        )
        logger.info("Registered %s user %s", user.role, user.pk)
        return envelope(
            {
                "user": UserSerializer(user, context={"request": request}).data,
                "tokens": issue_tokens(user),
            },
            message="User registered successfully.",
            status=status.HTTP_201_CREATED,
        )


@extend_schema(tags=["Authentication"], request=LoginSerializer)
class LoginView(APIView):
    """Password login with account lockout.

    Failed attempts are persisted, so this view answers with an error
    response instead of raising (raising would roll the counter back).
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        login = serializer.validated_data["email"].strip()
        password = serializer.validated_data["password"]

        account = (
            User.objects.filter(Q(email__iexact=login) | Q(username__iexact=login))
            .order_by("pk")
            .first()
        )
        if account is not None and account.is_locked:
            return error_response(status.HTTP_401_UNAUTHORIZED, LOCKED_MESSAGE)

        user = authenticate(request, username=login, password=password)
        if user is None:
            if account is not None and account.is_active:
                account.register_failed_login()
                if account.is_locked:
                    logger.warning("Locked account %s after failed logins", account.pk)
                    log_action(
                        "account_locked",
                        actor=account,
                        target=account,
                        request=request,
                    )
                    return error_response(
                        status.HTTP_401_UNAUTHORIZED,
                        LOCKED_MESSAGE,
                    )
            return error_response(
                status.HTTP_401_UNAUTHORIZED,
                "Invalid credentials.",
            )

        user.reset_login_attempts()
        user_logged_in.send(sender=user.__class__, request=request, user=user)
        return envelope(
            {
                "user": UserSerializer(user, context={"request": request}).data,
                "tokens": issue_tokens(user),
            },
            message="Login successful.",
        )


@extend_schema(tags=["Authentication"], request=LogoutSerializer)
class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            token = RefreshToken(serializer.validated_data["refresh"])
        except TokenError as exc:
            raise ValidationError({"refresh": [str(exc)]}) from exc
        if str(token.get("user_id")) != str(request.user.pk):
            raise ValidationError({"refresh": ["Token does not belong to this user."]})
        token.blacklist()
        return envelope(None, message="Logged out.")


@extend_schema(tags=["Authentication"], request=VerifyEmailSerializer)
class VerifyEmailView(APIView):
    permission_classes = [AllowAny]
    authentication_classes: list = []

    def post(self, request):
        serializer = VerifyEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invalid = ValidationError({"token": ["Invalid or expired verification link."]})
        try:
            uid = force_str(urlsafe_base64_decode(serializer.validated_data["uid"]))
            user = User.objects.get(pk=uid)
        except (TypeError, ValueError, OverflowError, User.DoesNotExist) as exc:
            raise invalid from exc
        if not email_verification_token.check_token(
            user,
            serializer.validated_data["token"],
        ):
            raise invalid
        user.is_verified = True
        user.verified_at = timezone.now()
        user.save(update_fields=["is_verified", "verified_at", "updated_at"])
        notify(user, "account_verified")
        return envelope(None, message="E-mail verified.")


@extend_schema(tags=["Authentication"], request=None)
class ResendVerificationView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        if request.user.is_verified:
            msg = "E-mail already verified."
            raise Conflict(msg)
        send_verification_email(request.user)
        return envelope(None, message="Verification e-mail sent.")


@extend_schema(tags=["Authentication"], request=DeviceTokenSerializer)
class DeviceTokenView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = DeviceTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        device = DeviceToken.register(
            request.user,
            serializer.validated_data["token"],
            serializer.validated_data.get("platform", DeviceToken.Platform.WEB),
        )
        return envelope(
            DeviceTokenSerializer(device).data,
            message="Device token registered.",
        )


@extend_schema(tags=["Authentication"], request=None)
class DeleteAccountView(APIView):
    """Deactivate the account and revoke every refresh token it holds."""

    permission_classes = [IsAuthenticated]

    def delete(self, request):
        user = request.user
        revoke_refresh_tokens(user)
        user.is_active = False
        user.save(update_fields=["is_active", "updated_at"])
        user.device_tokens.all().delete()
        log_action(
            "account_deleted",
            actor=user,
            target=user,
            request=request,
        )
        return envelope(None, message="Account deleted.")


@extend_schema(tags=["Authentication"])
class PasswordChangeView(BasePasswordChangeView):
    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        log_action(
            "password_changed",
            actor=request.user,
            target=request.user,
            request=request,
        )
        notify(request.user, "password_changed")
        return response
