from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.dispatch import receiver


@receiver(post_save, sender=get_user_model())
def ensure_professional_profile(sender, instance, created, **kwargs):
    """Every professional account owns exactly one Professional profile."""
    if instance.role != instance.Role.PROFESSIONAL:
        return

    from proserv.professionals.models import Professional  # noqa: PLC0415

    Professional.objects.get_or_create(user=instance)
