"""Application settings, read from the environment once per process."""

import os
from datetime import timedelta
from functools import lru_cache
from typing import Optional, Self

from pydantic import BaseModel, Field, field_validator

from src.core.exceptions import InvalidRequestError

_TRUTHY = ("1", "true", "yes", "on")


class Settings(BaseModel):
    database_url: str = "sqlite:///./skate.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    turn_window_hours: float = Field(default=24, gt=0)
    warning_window_minutes: float = Field(default=60, gt=0)
    warning_cooldown_minutes: float = Field(default=30, ge=0)
    game_hard_cap_days: float = Field(default=7, gt=0)
    my_games_limit: int = Field(default=50, gt=0)

    scheduler_enabled: bool = False
    scheduler_interval_seconds: float = Field(default=60, gt=0)
    cron_secret: Optional[str] = None

    @field_validator("cron_secret")
    @classmethod
    def validate_cron_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if len(value) < 32:
            raise InvalidRequestError("CRON_SECRET must be at least 32 characters")
        return value

    @classmethod
    def from_env(cls) -> Self:
        """Build settings from environment variables (unset variables keep their default)."""
        env = os.environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = env.get(name.upper())
            if raw is None or raw == "":
                continue
            if cls.model_fields[name].annotation is bool:
                values[name] = raw.lower() in _TRUTHY
            else:
                values[name] = raw
        return cls(**values)

    # -- derived durations --
    @property
    def turn_window(self) -> timedelta:
        return timedelta(hours=self.turn_window_hours)

    @property
    def warning_window(self) -> timedelta:
        return timedelta(minutes=self.warning_window_minutes)

    @property
    def warning_cooldown(self) -> timedelta:
        return timedelta(minutes=self.warning_cooldown_minutes)

    @property
    def game_hard_cap(self) -> timedelta:
        return timedelta(days=self.game_hard_cap_days)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
