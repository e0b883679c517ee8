"""
Change notifications for RFQ workflow mutations.

Replaces client-side polling: every committed mutation is pushed to the
registered subscribers. Delivery is best-effort; a failing subscriber is
logged and never undoes the mutation that produced the event.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Callable, List, Optional
import threading

from app.core.logging import get_logger

logger = get_logger(__name__)

RFQ_CREATED = "rfq.created"
RFQ_STATUS_CHANGED = "rfq.status_changed"
QUOTE_SUBMITTED = "quote.submitted"
RFQ_FINALIZED = "rfq.finalized"


@dataclass
class ChangeEvent:
    event_type: str
    rfq_id: str
    rfq_number: Optional[int] = None
    # Organizations the event concerns; empty means logistics-only
    audience: List[str] = field(default_factory=list)
    payload: dict = field(default_factory=dict)
    occurred_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


Subscriber = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Fan-out of change events to in-process subscribers."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Subscriber) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it again."""
        with self._lock:
            self._subscribers.append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._subscribers:
                    self._subscribers.remove(handler)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event; returns how many subscribers accepted it."""
        with self._lock:
            handlers = list(self._subscribers)

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Change subscriber failed for {event.event_type} on RFQ {event.rfq_id}"
                )
        return delivered


def queue_subscriber(event: ChangeEvent):
    """Hand the event to the background worker."""
    from app.workers.jobs import enqueue_change_notification
    enqueue_change_notification(event.to_dict())


notifier = ChangeNotifier()
