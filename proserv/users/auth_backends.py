from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q


class EmailOrUsernameBackend(ModelBackend):
    """Authenticate with either the e-mail address or the username."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        usermodel = get_user_model()
        login = username or kwargs.get(usermodel.EMAIL_FIELD)
        if not login or password is None:
            return None
        user = (
            usermodel.objects.filter(Q(email__iexact=login) | Q(username__iexact=login))
            .order_by("pk")
            .first()
        )
        if user is None:
            # Run the hasher once to reduce the timing difference between
            # existing and nonexistent accounts.
            usermodel().set_password(password)
            return None
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
