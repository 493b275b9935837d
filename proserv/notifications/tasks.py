import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from proserv.notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(name="notifications.purge_read_notifications")
def purge_read_notifications() -> int:
    """Delete read notifications older than the retention window."""
    cutoff = timezone.now() - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
    deleted, _ = Notification.objects.filter(
        is_read=True,
        created_at__lt=cutoff,
    ).delete()
    if deleted:
        logger.info("Purged %d read notifications", deleted)
    return deleted
