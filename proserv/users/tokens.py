from django.contrib.auth.tokens import PasswordResetTokenGenerator
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken


class EmailVerificationTokenGenerator(PasswordResetTokenGenerator):
    """One-shot token: verifying the address invalidates it."""

    key_salt = "proserv.users.tokens.EmailVerificationTokenGenerator"

    def _make_hash_value(self, user, timestamp):
        return f"{user.pk}{user.email}{user.is_verified}{timestamp}"


email_verification_token = EmailVerificationTokenGenerator()


def revoke_refresh_tokens(user) -> int:
    """Blacklist every outstanding refresh token of ``user``."""
    revoked = 0
    for outstanding in OutstandingToken.objects.filter(user=user):
        _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
        revoked += created
    return revoked
