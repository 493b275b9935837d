import logging

from celery import shared_task

from proserv.chat.services import archive_inactive

logger = logging.getLogger(__name__)


@shared_task(name="chat.archive_inactive_chats")
def archive_inactive_chats() -> int:
    """Archive active chats idle for longer than their auto-archive window."""
    archived = archive_inactive()
    if archived:
        logger.info("Archived %d inactive chats", archived)
    return archived
