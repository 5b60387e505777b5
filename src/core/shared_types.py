"""
Type definitions used across layers
"""

from enum import StrEnum


class GameStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    DECLINED = "declined"
    FORFEITED = "forfeited"


# --- once a game reaches one of these, nothing may change it again
TERMINAL_STATUSES = frozenset(
    {GameStatus.COMPLETED, GameStatus.DECLINED, GameStatus.FORFEITED}
)

# --- games that were actually played out and have a winner
FINISHED_STATUSES = frozenset({GameStatus.COMPLETED, GameStatus.FORFEITED})


class RoundOutcome(StrEnum):
    PENDING = "pending"
    LANDED = "landed"
    MISSED = "missed"


class NotificationType(StrEnum):
    CHALLENGE_RECEIVED = "challenge_received"
    CHALLENGE_DECLINED = "challenge_declined"
    YOUR_TURN = "your_turn"
    GAME_OVER = "game_over"
    OPPONENT_FORFEITED = "opponent_forfeited"
    GAME_FORFEITED_TIMEOUT = "game_forfeited_timeout"
    DEADLINE_WARNING = "deadline_warning"
    DISPUTE_FILED = "dispute_filed"
    DISPUTE_RESOLVED = "dispute_resolved"
