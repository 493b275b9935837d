from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.db.models import EmailField
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


def default_preferences() -> dict:
    return {
        "language": "es",
        "currency": "COP",
        "notifications": {"email": True, "push": True, "sms": False},
        "privacy": {"show_phone": False, "show_email": False},
    }


class User(AbstractUser):
    """Marketplace account. Clients request services, professionals quote them."""

    class Role(models.TextChoices):
        CLIENT = "client", _("Client")
        PROFESSIONAL = "professional", _("Professional")
        ADMIN = "admin", _("Admin")

    class Gender(models.TextChoices):
        MALE = "male", _("Male")
        FEMALE = "female", _("Female")
        OTHER = "other", _("Other")
        UNDISCLOSED = "prefer_not_to_say", _("Prefer not to say")

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Full Name"), blank=True, max_length=255)
    email = EmailField(_("email address"), unique=True)
    first_name = CharField(_("First Name"), max_length=150, blank=True)
    last_name = CharField(_("Last Name"), max_length=150, blank=True)
    role = CharField(max_length=20, choices=Role.choices, default=Role.CLIENT)
    phone = CharField(max_length=30, blank=True)
    avatar = models.URLField(max_length=500, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = CharField(max_length=20, choices=Gender.choices, blank=True)
    is_verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)
    preferences = models.JSONField(default=default_preferences, blank=True)

    login_attempts = models.PositiveSmallIntegerField(default=0)
    lock_until = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        self.name = f"{self.first_name} {self.last_name}".strip()
        if self.role == self.Role.ADMIN:
            self.is_staff = True
        super().save(*args, **kwargs)

    @property
    def is_client(self) -> bool:
        return self.role == self.Role.CLIENT

    @property
    def is_professional(self) -> bool:
        return self.role == self.Role.PROFESSIONAL

    @property
    def is_admin_role(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_staff

    @property
    def is_locked(self) -> bool:
        return bool(self.lock_until and self.lock_until > timezone.now())

    def register_failed_login(self) -> None:
        """Count a failed password check; lock the account once the limit is hit.

        An expired lock starts a fresh count.
        """
        now = timezone.now()
        if self.lock_until and self.lock_until <= now:
            self.login_attempts = 1
            self.lock_until = None
        else:
            self.login_attempts += 1
        if self.login_attempts >= settings.LOGIN_MAX_ATTEMPTS and not self.is_locked:
            self.lock_until = now + timedelta(minutes=settings.LOGIN_LOCK_MINUTES)
        self.save(update_fields=["login_attempts", "lock_until", "updated_at"])

    def reset_login_attempts(self) -> None:
        if self.login_attempts or self.lock_until:
            self.login_attempts = 0
            self.lock_until = None
            self.save(update_fields=["login_attempts", "lock_until", "updated_at"])

    def notification_channels(self) -> dict:
        prefs = self.preferences or {}
        return {
            **default_preferences()["notifications"],
            **prefs.get("notifications", {}),
        }


class Address(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="addresses",
    )
    label = models.CharField(max_length=50, blank=True)
    street = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, default="Colombia")
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-is_default", "-created_at"]
        verbose_name_plural = "addresses"

    def __str__(self) -> str:
        return f"{self.street}, {self.city}"

    def save(self, *args, **kwargs):
        # A user's first address becomes the default.
        if not self.pk and not self.user.addresses.exists():
            self.is_default = True
        super().save(*args, **kwargs)
        if self.is_default:
            self.user.addresses.exclude(pk=self.pk).filter(is_default=True).update(
                is_default=False,
            )


class DeviceToken(models.Model):
    class Platform(models.TextChoices):
        IOS = "ios", "iOS"
        ANDROID = "android", "Android"
        WEB = "web", "Web"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="device_tokens",
    )
    token = models.CharField(max_length=512)
    platform = models.CharField(
        max_length=10,
        choices=Platform.choices,
        default=Platform.WEB,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "token"],
                name="unique_device_token_per_user",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.platform}:{self.token[:12]}"

    @classmethod
    def register(cls, user, token: str, platform: str = Platform.WEB) -> "DeviceToken":
        """Store ``token`` as the newest device and keep only the most recent ones."""
        cls.objects.filter(user=user, token=token).delete()
        device = cls.objects.create(user=user, token=token, platform=platform)
        stale = (
            cls.objects.filter(user=user)
            .order_by("-created_at", "-pk")
            .values_list("pk", flat=True)[settings.MAX_DEVICE_TOKENS :]
        )
        cls.objects.filter(pk__in=list(stale)).delete()
        return device
