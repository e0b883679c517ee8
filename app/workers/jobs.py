"""
Background job definitions.
"""
from typing import List

from redis import Redis
from rq import Queue

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

LOGISTICS_AUDIENCE = "logistics"


def get_queue(name: str = "default") -> Queue:
    """Get RQ queue."""
    redis_conn = Redis.from_url(settings.REDIS_URL)
    return Queue(name, connection=redis_conn)


# ============= JOB FUNCTIONS =============

def deliver_change_notification_job(event: dict) -> List[str]:
    """
    Fan a change event out to its audience.

    Vendor organizations named in the event each get a delivery; events
    without an audience go to the logistics desk only.
    """
    recipients = list(event.get("audience") or [])
    if LOGISTICS_AUDIENCE not in recipients:
        recipients.append(LOGISTICS_AUDIENCE)

    for recipient in recipients:
        logger.info(
            f"Delivering {event.get('event_type')} for RFQ {event.get('rfq_number') or event.get('rfq_id')} "
            f"to {recipient}",
            extra={
                "action": event.get("event_type"),
                "organization": recipient,
                "entity_type": "rfq",
                "entity_id": event.get("rfq_id"),
            },
        )
    return recipients


# ============= ENQUEUE HELPERS =============

def enqueue_change_notification(event: dict):
    """Queue change event delivery."""
    queue = get_queue("high")
    return queue.enqueue(deliver_change_notification_job, event)
