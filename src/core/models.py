"""
Boundary layer data model(s).

These objects are used to communicate with the Service and the Repository.
Both the API layer (higher) and domain/db layers (lower) send/receive these, so the
data model specific to the DB layer, API layer or domain layer stays decoupled from the
information needed to cross the boundaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

# Type aliases to make the models easier to read
PlayerId = str
LetterCount = int


@dataclass
class GameModel:
    """Transport-safe representation of a S.K.A.T.E. battle."""

    id: UUID
    player1_id: PlayerId
    player2_id: PlayerId
    status: str
    current_turn: Optional[PlayerId]
    letters: dict[PlayerId, LetterCount]
    deadline_at: Optional[datetime]
    winner_id: Optional[PlayerId]
    created_at: datetime
    updated_at: datetime
    last_warned_at: Optional[datetime] = None
    disputes_used: list[PlayerId] = field(default_factory=list)
    disputed_round_id: Optional[UUID] = None  # round whose ruling awaits a dispute decision
    last_round_id: Optional[UUID] = None  # most recently resolved round
    version: int = 0


@dataclass
class RoundModel:
    """One trick proposal and its answer."""

    id: UUID
    game_id: UUID
    setter_id: PlayerId
    trick: str
    setter_video_url: str
    responder_video_url: Optional[str]
    outcome: str
    created_at: datetime
    resolved_at: Optional[datetime] = None
    disputed_by: Optional[PlayerId] = None
    dispute_outcome: Optional[str] = None
    disputed_at: Optional[datetime] = None
    dispute_resolved_at: Optional[datetime] = None


@dataclass
class PlayerGames:
    """A player's games, bucketed the way the lobby shows them."""

    pending_challenges: list[GameModel] = field(default_factory=list)
    sent_challenges: list[GameModel] = field(default_factory=list)
    active_games: list[GameModel] = field(default_factory=list)
    completed_games: list[GameModel] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.pending_challenges)
            + len(self.sent_challenges)
            + len(self.active_games)
            + len(self.completed_games)
        )


@dataclass
class OpponentRecord:
    opponent_id: PlayerId
    wins: int = 0
    losses: int = 0
    streak: int = 0  # consecutive wins against this opponent, newest first


@dataclass
class TrickCount:
    trick: str
    count: int


@dataclass
class PlayerStats:
    """Results over a player's finished (completed or forfeited) games."""

    total_games: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: int = 0  # percent, rounded
    current_streak: int = 0
    best_streak: int = 0
    opponent_records: list[OpponentRecord] = field(default_factory=list)
    top_tricks: list[TrickCount] = field(default_factory=list)
    recent_games: list[GameModel] = field(default_factory=list)
