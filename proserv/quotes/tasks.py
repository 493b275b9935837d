import logging

from celery import shared_task

from proserv.quotes.services import expire_stale_quotes as _expire

logger = logging.getLogger(__name__)


@shared_task(name="quotes.expire_stale_quotes")
def expire_stale_quotes() -> int:
    """Mark pending quotes past ``valid_until`` as expired.

    Returns:
        Number of quotes expired.
    """
    expired = _expire()
    if expired:
        logger.info("Expired %d stale quotes", expired)
    return expired
