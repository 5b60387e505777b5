"""Win/loss record of a player over their finished battles."""

import math

from src.core.models import GameModel, OpponentRecord, PlayerStats, TrickCount

RECENT_GAMES = 10


def _win_streak(games: list[GameModel], player_id: str) -> int:
    """Consecutive wins, counted from the first (newest) game."""
    streak = 0
    for game in games:
        if game.winner_id != player_id:
            break
        streak += 1
    return streak


def _best_streak(games: list[GameModel], player_id: str) -> int:
    best = current = 0
    for game in games:
        current = current + 1 if game.winner_id == player_id else 0
        best = max(best, current)
    return best


def _opponent_of(game: GameModel, player_id: str) -> str:
    return game.player2_id if game.player1_id == player_id else game.player1_id


def compute_stats(
    player_id: str, finished_games: list[GameModel], top_tricks: list[TrickCount]
) -> PlayerStats:
    """
    `finished_games` must be the player's completed/forfeited games, newest first.
    A game the player did not win counts as a loss.
    """
    wins = sum(1 for game in finished_games if game.winner_id == player_id)
    total = len(finished_games)

    by_opponent: dict[str, list[GameModel]] = {}
    for game in finished_games:
        by_opponent.setdefault(_opponent_of(game, player_id), []).append(game)

    records = []
    for opponent_id, games in by_opponent.items():
        won = sum(1 for game in games if game.winner_id == player_id)
        records.append(
            OpponentRecord(
                opponent_id=opponent_id,
                wins=won,
                losses=len(games) - won,
                streak=_win_streak(games, player_id),
            )
        )

    return PlayerStats(
        total_games=total,
        wins=wins,
        losses=total - wins,
        # half up
        win_rate=math.floor(wins * 100 / total + 0.5) if total else 0,
        current_streak=_win_streak(finished_games, player_id),
        best_streak=_best_streak(finished_games, player_id),
        opponent_records=records,
        top_tricks=list(top_tricks),
        recent_games=finished_games[:RECENT_GAMES],
    )
