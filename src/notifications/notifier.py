"""
Notification port.

Delivery (push, email, in-app) lives outside the battle engine. The engine only
needs somewhere to hand "tell player X that Y happened" to.
"""

import logging
from typing import Any, Protocol

from src.core.shared_types import NotificationType

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Best-effort delivery. Implementations may raise; callers never let that propagate."""

    def notify(
        self, user_id: str, event_type: NotificationType, payload: dict[str, Any]
    ) -> None: ...


class LoggingNotifier:
    """Default adapter: writes every notification to the application log."""

    def notify(
        self, user_id: str, event_type: NotificationType, payload: dict[str, Any]
    ) -> None:
        logger.info("notify user=%s type=%s payload=%s", user_id, event_type, payload)
