"""Notifications a state transition asks to be sent once it is committed."""

from dataclasses import dataclass, field
from typing import Any

from src.core.shared_types import NotificationType


@dataclass(frozen=True)
class GameEvent:
    recipient_id: str
    type: NotificationType
    payload: dict[str, Any] = field(default_factory=dict)
