from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode

from proserv.users.tokens import email_verification_token

logger = logging.getLogger(__name__)


def verification_link(user) -> str:
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = email_verification_token.make_token(user)
    return f"{settings.FRONTEND_URL}/verify-email?uid={uid}&token={token}"


def send_verification_email(user) -> None:
    link = verification_link(user)
    send_mail(
        subject="Verify your ProServ account",
        message=(
            f"Hi {user.first_name or user.email},\n\n"
            f"Confirm your e-mail address by opening this link:\n{link}\n"
        ),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
    )
    logger.info("Verification e-mail sent to user %s", user.pk)
