"""Hand committed GameEvents to a Notifier without letting delivery failures escape."""

import logging
from typing import Iterable

from src.notifications.notifier import Notifier
from src.skate.events import GameEvent

logger = logging.getLogger(__name__)


def dispatch_events(notifier: Notifier, events: Iterable[GameEvent]) -> int:
    """Send each event, returns how many the notifier accepted."""
    delivered = 0
    for event in events:
        try:
            notifier.notify(event.recipient_id, event.type, dict(event.payload))
        except Exception:
            logger.exception(
                "Notification %s to %s failed (state change already committed)",
                event.type,
                event.recipient_id,
            )
            continue
        delivered += 1
    return delivered
