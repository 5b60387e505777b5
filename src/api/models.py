"""Requests and Response models"""

from datetime import datetime
from typing import Optional, Self
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.core.exceptions import InvalidRequestError
from src.core.models import GameModel, PlayerGames, PlayerStats, RoundModel
from src.core.shared_types import GameStatus, RoundOutcome
from src.skate.letters import spell

PlayerId = str

VIDEO_URL_SCHEMES = ("http", "https", "vid", "gs", "s3")
MAX_URL_LENGTH = 500


def _validate_video_url(value: str) -> str:
    value = value.strip()
    if len(value) > MAX_URL_LENGTH:
        raise InvalidRequestError(
            f"Video URL must be at most {MAX_URL_LENGTH} characters."
        )
    parsed = urlparse(value)
    if parsed.scheme not in VIDEO_URL_SCHEMES or not (parsed.netloc or parsed.path):
        raise InvalidRequestError(f"Cannot interpret {value!r} as a video URL.")
    return value


# --- REQUEST MODELS ---
class CreateGameRequest(BaseModel):
    opponent_id: str = Field(min_length=1, max_length=128)

    @field_validator("opponent_id")
    @classmethod
    def validate_opponent(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise InvalidRequestError("Opponent ID is required.")
        return value


class RespondRequest(BaseModel):
    accept: bool


class ProposeTrickRequest(BaseModel):
    trick: str = Field(min_length=1, max_length=500)
    video_url: str

    @field_validator("trick")
    @classmethod
    def validate_trick(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise InvalidRequestError("Trick description cannot be blank.")
        return value

    @field_validator("video_url")
    @classmethod
    def validate_video_url(cls, value: str) -> str:
        return _validate_video_url(value)


class ResponseVideoRequest(BaseModel):
    video_url: str

    @field_validator("video_url")
    @classmethod
    def validate_video_url(cls, value: str) -> str:
        return _validate_video_url(value)


class ResolveRoundRequest(BaseModel):
    outcome: RoundOutcome

    @field_validator("outcome")
    @classmethod
    def validate_outcome(cls, value: RoundOutcome) -> RoundOutcome:
        if value == RoundOutcome.PENDING:
            raise InvalidRequestError("Outcome must be 'landed' or 'missed'.")
        return value


# --- RESPONSE MODELS ---
class GameResponse(BaseModel):
    game_id: UUID
    player1_id: PlayerId
    player2_id: PlayerId
    status: GameStatus
    current_turn: Optional[PlayerId]
    letters: dict[PlayerId, int]
    spelled_letters: dict[PlayerId, str]
    deadline_at: Optional[datetime]
    winner_id: Optional[PlayerId]
    disputes_used: list[PlayerId]
    disputed_round_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, model: GameModel) -> Self:
        return cls(
            game_id=model.id,
            player1_id=model.player1_id,
            player2_id=model.player2_id,
            status=GameStatus(model.status),
            current_turn=model.current_turn,
            letters=model.letters,
            spelled_letters={
                player: spell(count) for player, count in model.letters.items()
            },
            deadline_at=model.deadline_at,
            winner_id=model.winner_id,
            disputes_used=list(model.disputes_used),
            disputed_round_id=model.disputed_round_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class RoundResponse(BaseModel):
    round_id: UUID
    game_id: UUID
    setter_id: PlayerId
    trick: str
    setter_video_url: str
    responder_video_url: Optional[str]
    outcome: RoundOutcome
    created_at: datetime
    resolved_at: Optional[datetime]
    disputed_by: Optional[PlayerId] = None
    dispute_outcome: Optional[RoundOutcome] = None
    disputed_at: Optional[datetime] = None
    dispute_resolved_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: RoundModel) -> Self:
        return cls(
            round_id=model.id,
            game_id=model.game_id,
            setter_id=model.setter_id,
            trick=model.trick,
            setter_video_url=model.setter_video_url,
            responder_video_url=model.responder_video_url,
            outcome=RoundOutcome(model.outcome),
            created_at=model.created_at,
            resolved_at=model.resolved_at,
            disputed_by=model.disputed_by,
            dispute_outcome=(
                RoundOutcome(model.dispute_outcome) if model.dispute_outcome else None
            ),
            disputed_at=model.disputed_at,
            dispute_resolved_at=model.dispute_resolved_at,
        )


class GameDetailResponse(BaseModel):
    game: GameResponse
    rounds: list[RoundResponse]


class MyGamesResponse(BaseModel):
    pending_challenges: list[GameResponse]
    sent_challenges: list[GameResponse]
    active_games: list[GameResponse]
    completed_games: list[GameResponse]
    total: int

    @classmethod
    def from_player_games(cls, games: PlayerGames) -> Self:
        return cls(
            pending_challenges=[GameResponse.from_model(g) for g in games.pending_challenges],
            sent_challenges=[GameResponse.from_model(g) for g in games.sent_challenges],
            active_games=[GameResponse.from_model(g) for g in games.active_games],
            completed_games=[GameResponse.from_model(g) for g in games.completed_games],
            total=games.total,
        )


class OpponentRecordResponse(BaseModel):
    opponent_id: PlayerId
    wins: int
    losses: int
    streak: int


class TrickCountResponse(BaseModel):
    trick: str
    count: int


class RecentGameResponse(BaseModel):
    game_id: UUID
    opponent_id: PlayerId
    won: bool
    status: GameStatus
    finished_at: datetime


class PlayerStatsResponse(BaseModel):
    total_games: int
    wins: int
    losses: int
    win_rate: int
    current_streak: int
    best_streak: int
    opponent_records: list[OpponentRecordResponse]
    top_tricks: list[TrickCountResponse]
    recent_games: list[RecentGameResponse]

    @classmethod
    def from_stats(cls, user_id: PlayerId, stats: PlayerStats) -> Self:
        return cls(
            total_games=stats.total_games,
            wins=stats.wins,
            losses=stats.losses,
            win_rate=stats.win_rate,
            current_streak=stats.current_streak,
            best_streak=stats.best_streak,
            opponent_records=[
                OpponentRecordResponse(
                    opponent_id=r.opponent_id, wins=r.wins, losses=r.losses, streak=r.streak
                )
                for r in stats.opponent_records
            ],
            top_tricks=[
                TrickCountResponse(trick=t.trick, count=t.count) for t in stats.top_tricks
            ],
            recent_games=[
                RecentGameResponse(
                    game_id=g.id,
                    opponent_id=g.player2_id if g.player1_id == user_id else g.player1_id,
                    won=g.winner_id == user_id,
                    status=GameStatus(g.status),
                    finished_at=g.updated_at,
                )
                for g in stats.recent_games
            ],
        )


class CronResponse(BaseModel):
    job: str
    count: int


class ErrorResponse(BaseModel):
    error: str
    message: str
