"""Protocol repository (implemented with SQLAlchemy in sql_repository.py, in-memory in the tests)"""

from datetime import datetime
from typing import Callable, Optional, Protocol
from uuid import UUID

from src.core.models import GameModel, RoundModel, TrickCount

# fn(game, round) -> (game, round): the round passed in is the one requested by ID,
# or the game's open round. The returned round (if any) is inserted or updated.
Mutation = Callable[
    [GameModel, Optional[RoundModel]], tuple[GameModel, Optional[RoundModel]]
]


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def create_game(self, game: GameModel) -> GameModel:
        """Store new game and return the stored data."""
        ...

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        ...

    def get_round(self, round_id: UUID) -> RoundModel | None:
        """Get round by ID, if record exists."""
        ...

    def get_open_round(self, game_id: UUID) -> RoundModel | None:
        """The round of this game that still waits for an outcome, if any."""
        ...

    def list_rounds(self, game_id: UUID) -> list[RoundModel]:
        """All rounds of a game, oldest first."""
        ...

    def list_games_for_player(self, player_id: str, limit: int) -> list[GameModel]:
        """Most recently updated games the player takes part in."""
        ...

    def list_finished_games_for_player(self, player_id: str, limit: int) -> list[GameModel]:
        """Completed or forfeited games of the player, most recently finished first."""
        ...

    def top_tricks(self, player_id: str, limit: int) -> list[TrickCount]:
        """Tricks the player set most often."""
        ...

    def list_active_games_with_deadline_before(
        self, cutoff: datetime
    ) -> list[GameModel]:
        """Active games whose deadline_at < cutoff."""
        ...

    def list_active_games_created_before(self, cutoff: datetime) -> list[GameModel]:
        """Active games whose created_at < cutoff."""
        ...

    def transact(
        self, game_id: UUID, fn: Mutation, round_id: UUID | None = None
    ) -> tuple[GameModel, Optional[RoundModel]]:
        """
        Read-validate-write one game (and one round) atomically.

        Raises NotFoundError if the game does not exist, ConflictError if another writer
        committed first. Exceptions raised by fn abort the transaction and propagate.
        """
        ...
