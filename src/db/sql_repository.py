"""Implementation of (Game)Repository using SQLAlchemy"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.core.exceptions import ConflictError, NotFoundError, RepositoryError
from src.core.models import GameModel, RoundModel, TrickCount
from src.core.shared_types import FINISHED_STATUSES, GameStatus, RoundOutcome
from src.db.repository import Mutation
from src.db.schema import DBGame, DBRound

logger = logging.getLogger(__name__)


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def create_game(self, game: GameModel) -> GameModel:
        """Store new game and return the stored data."""
        game_db = DBGame(id=game.id)
        self._copy_game(game, game_db)
        game_db.created_at = game.created_at
        try:
            self.db.add(game_db)
            self.db.commit()
            self.db.refresh(game_db)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Could not store game {game.id}") from exc
        return self._to_model(game_db)

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        game_db = self._read(lambda: self._fetch_game(game_id))
        if game_db:
            return self._to_model(game_db)
        return None

    def get_round(self, round_id: UUID) -> RoundModel | None:
        """Get round by ID, if record exists."""
        round_db = self._read(lambda: self.db.get(DBRound, round_id))
        if round_db:
            return self._round_to_model(round_db)
        return None

    def get_open_round(self, game_id: UUID) -> RoundModel | None:
        """The round of this game that still waits for an outcome, if any."""
        round_db = self._read(lambda: self._fetch_open_round(game_id))
        if round_db:
            return self._round_to_model(round_db)
        return None

    def list_rounds(self, game_id: UUID) -> list[RoundModel]:
        """All rounds of a game, oldest first."""
        query = (
            select(DBRound)
            .where(DBRound.game_id == game_id)
            .order_by(DBRound.created_at, DBRound.id)
        )
        rounds = self._read(lambda: list(self.db.scalars(query)))
        return [self._round_to_model(round_db) for round_db in rounds]

    def list_games_for_player(self, player_id: str, limit: int) -> list[GameModel]:
        """Most recently updated games the player takes part in."""
        query = (
            select(DBGame)
            .where(or_(DBGame.player1_id == player_id, DBGame.player2_id == player_id))
            .order_by(DBGame.updated_at.desc())
            .limit(limit)
        )
        games = self._read(lambda: list(self.db.scalars(query)))
        return [self._to_model(game_db) for game_db in games]

    def list_finished_games_for_player(self, player_id: str, limit: int) -> list[GameModel]:
        """Completed or forfeited games of the player, most recently finished first."""
        query = (
            select(DBGame)
            .where(
                or_(DBGame.player1_id == player_id, DBGame.player2_id == player_id),
                DBGame.status.in_(FINISHED_STATUSES),
            )
            .order_by(DBGame.updated_at.desc())
            .limit(limit)
        )
        games = self._read(lambda: list(self.db.scalars(query)))
        return [self._to_model(game_db) for game_db in games]

    def top_tricks(self, player_id: str, limit: int) -> list[TrickCount]:
        """Tricks the player set most often."""
        count = func.count(DBRound.id)
        query = (
            select(DBRound.trick, count)
            .where(DBRound.setter_id == player_id)
            .group_by(DBRound.trick)
            .order_by(count.desc(), DBRound.trick)
            .limit(limit)
        )
        rows = self._read(lambda: list(self.db.execute(query)))
        return [TrickCount(trick=trick, count=total) for trick, total in rows]

    def list_active_games_with_deadline_before(
        self, cutoff: datetime
    ) -> list[GameModel]:
        """Active games whose deadline_at < cutoff."""
        query = select(DBGame).where(
            DBGame.status == GameStatus.ACTIVE.value,
            DBGame.deadline_at.is_not(None),
            DBGame.deadline_at < cutoff,
        )
        games = self._read(lambda: list(self.db.scalars(query)))
        return [self._to_model(game_db) for game_db in games]

    def list_active_games_created_before(self, cutoff: datetime) -> list[GameModel]:
        """Active games whose created_at < cutoff."""
        query = select(DBGame).where(
            DBGame.status == GameStatus.ACTIVE.value,
            DBGame.created_at < cutoff,
        )
        games = self._read(lambda: list(self.db.scalars(query)))
        return [self._to_model(game_db) for game_db in games]

    def transact(
        self, game_id: UUID, fn: Mutation, round_id: UUID | None = None
    ) -> tuple[GameModel, Optional[RoundModel]]:
        """Lock the game row, apply fn and write the game (+ round) back in one commit."""
        try:
            game_db = self.db.scalar(
                select(DBGame)
                .where(DBGame.id == game_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            if game_db is None:
                raise NotFoundError(f"Game with {game_id=} not found.")

            if round_id is not None:
                round_db = self.db.get(DBRound, round_id)
                if round_db is not None and round_db.game_id != game_id:
                    round_db = None
            else:
                round_db = self._fetch_open_round(game_id)

            new_game, new_round = fn(
                self._to_model(game_db),
                self._round_to_model(round_db) if round_db else None,
            )

            self._copy_game(new_game, game_db)
            if new_round is not None:
                self._store_round(new_round)
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning("Concurrent update lost on game %s", game_id)
            raise ConflictError(
                "The game was changed by another request. Please retry."
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Transaction on game {game_id} failed") from exc
        except Exception:
            # domain errors raised by fn: nothing may be written
            self.db.rollback()
            raise

        self.db.refresh(game_db)
        stored_round = None
        if new_round is not None:
            stored_round = self._round_to_model(self.db.get(DBRound, new_round.id))
        return self._to_model(game_db), stored_round

    # -- Internal helpers --
    def _read(self, fn):
        """Run a read query, translating driver failures into RepositoryError."""
        try:
            return fn()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError("Game store read failed") from exc

    def _fetch_game(self, game_id: UUID) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        return self.db.scalar(query)

    def _fetch_open_round(self, game_id: UUID) -> DBRound | None:
        query = select(DBRound).where(
            DBRound.game_id == game_id,
            DBRound.outcome == RoundOutcome.PENDING.value,
        )
        return self.db.scalar(query)

    def _store_round(self, round_: RoundModel) -> None:
        round_db = self.db.get(DBRound, round_.id)
        if round_db is None:
            round_db = DBRound(id=round_.id, game_id=round_.game_id)
            self.db.add(round_db)
        round_db.setter_id = round_.setter_id
        round_db.trick = round_.trick
        round_db.setter_video_url = round_.setter_video_url
        round_db.responder_video_url = round_.responder_video_url
        round_db.outcome = round_.outcome
        round_db.created_at = round_.created_at
        round_db.resolved_at = round_.resolved_at
        round_db.disputed_by = round_.disputed_by
        round_db.dispute_outcome = round_.dispute_outcome
        round_db.disputed_at = round_.disputed_at
        round_db.dispute_resolved_at = round_.dispute_resolved_at

    def _copy_game(self, game: GameModel, game_db: DBGame) -> None:
        """Write the mutable fields of a GameModel onto the ORM object."""
        game_db.player1_id = game.player1_id
        game_db.player2_id = game.player2_id
        game_db.status = game.status
        game_db.current_turn = game.current_turn
        game_db.player1_letters = game.letters.get(game.player1_id, 0)
        game_db.player2_letters = game.letters.get(game.player2_id, 0)
        game_db.deadline_at = game.deadline_at
        game_db.winner_id = game.winner_id
        game_db.last_warned_at = game.last_warned_at
        game_db.player1_dispute_used = game.player1_id in game.disputes_used
        game_db.player2_dispute_used = game.player2_id in game.disputes_used
        game_db.disputed_round_id = game.disputed_round_id
        game_db.last_round_id = game.last_round_id
        game_db.updated_at = game.updated_at

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            id=game_db.id,
            player1_id=game_db.player1_id,
            player2_id=game_db.player2_id,
            status=game_db.status,
            current_turn=game_db.current_turn,
            letters={
                game_db.player1_id: game_db.player1_letters,
                game_db.player2_id: game_db.player2_letters,
            },
            deadline_at=game_db.deadline_at,
            winner_id=game_db.winner_id,
            created_at=game_db.created_at,
            updated_at=game_db.updated_at,
            last_warned_at=game_db.last_warned_at,
            disputes_used=[
                player_id
                for player_id, used in (
                    (game_db.player1_id, game_db.player1_dispute_used),
                    (game_db.player2_id, game_db.player2_dispute_used),
                )
                if used
            ],
            disputed_round_id=game_db.disputed_round_id,
            last_round_id=game_db.last_round_id,
            version=game_db.version,
        )

    def _round_to_model(self, round_db: DBRound) -> RoundModel:
        return RoundModel(
            id=round_db.id,
            game_id=round_db.game_id,
            setter_id=round_db.setter_id,
            trick=round_db.trick,
            setter_video_url=round_db.setter_video_url,
            responder_video_url=round_db.responder_video_url,
            outcome=round_db.outcome,
            created_at=round_db.created_at,
            resolved_at=round_db.resolved_at,
            disputed_by=round_db.disputed_by,
            dispute_outcome=round_db.dispute_outcome,
            disputed_at=round_db.disputed_at,
            dispute_resolved_at=round_db.dispute_resolved_at,
        )
