"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from src.core.clock import utc_now


class UTCDateTime(TypeDecorator[datetime]):
    """Store UTC, always hand back timezone-aware datetimes (SQLite drops the offset)."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(
        self, value: Optional[datetime], dialect: Dialect
    ) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime cannot be stored: {value!r}")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(
        self, value: Optional[datetime], dialect: Dialect
    ) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    type_annotation_map: dict[Any, Any] = {datetime: UTCDateTime}


class DBGame(Base):
    __tablename__ = "games"
    __table_args__ = (Index("ix_games_status_deadline", "status", "deadline_at"),)

    id: Mapped[UUID] = mapped_column(primary_key=True)
    player1_id: Mapped[str] = mapped_column(String(128), index=True)
    player2_id: Mapped[str] = mapped_column(String(128), index=True)
    status: Mapped[str] = mapped_column(String(16))
    current_turn: Mapped[Optional[str]] = mapped_column(String(128))
    player1_letters: Mapped[int] = mapped_column(default=0)
    player2_letters: Mapped[int] = mapped_column(default=0)
    deadline_at: Mapped[Optional[datetime]]
    winner_id: Mapped[Optional[str]] = mapped_column(String(128))
    last_warned_at: Mapped[Optional[datetime]]
    player1_dispute_used: Mapped[bool] = mapped_column(default=False)
    player2_dispute_used: Mapped[bool] = mapped_column(default=False)
    disputed_round_id: Mapped[Optional[UUID]]
    last_round_id: Mapped[Optional[UUID]]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now)
    version: Mapped[int] = mapped_column(default=0)

    # optimistic concurrency: UPDATE ... WHERE version = <loaded version>
    __mapper_args__ = {"version_id_col": version}


class DBRound(Base):
    __tablename__ = "rounds"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    game_id: Mapped[UUID] = mapped_column(ForeignKey("games.id"), index=True)
    setter_id: Mapped[str] = mapped_column(String(128))
    trick: Mapped[str] = mapped_column(String(500))
    setter_video_url: Mapped[str] = mapped_column(String(500))
    responder_video_url: Mapped[Optional[str]] = mapped_column(String(500))
    outcome: Mapped[str] = mapped_column(String(16), index=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    resolved_at: Mapped[Optional[datetime]]
    disputed_by: Mapped[Optional[str]] = mapped_column(String(128))
    dispute_outcome: Mapped[Optional[str]] = mapped_column(String(16))
    disputed_at: Mapped[Optional[datetime]]
    dispute_resolved_at: Mapped[Optional[datetime]]
