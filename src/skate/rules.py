"""Timing rules of a remote battle."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Self

from src.core.config import Settings


@dataclass(frozen=True)
class TurnRules:
    turn_window: timedelta = timedelta(hours=24)
    warning_window: timedelta = timedelta(hours=1)
    warning_cooldown: timedelta = timedelta(minutes=30)
    game_hard_cap: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings: Settings) -> Self:
        return cls(
            turn_window=settings.turn_window,
            warning_window=settings.warning_window,
            warning_cooldown=settings.warning_cooldown,
            game_hard_cap=settings.game_hard_cap,
        )
