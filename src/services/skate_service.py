"""Orchestration of communication from API router to business logic and persistence layers (and the reverse direction)."""

import logging
from typing import Optional
from uuid import UUID

from src.core.clock import Clock, utc_now
from src.core.exceptions import NotFoundError
from src.core.models import GameModel, PlayerGames, PlayerStats, RoundModel
from src.core.shared_types import GameStatus, RoundOutcome
from src.db.repository import GameRepository
from src.notifications.dispatch import dispatch_events
from src.notifications.notifier import Notifier
from src.skate.events import GameEvent
from src.skate.game import SkateGame
from src.skate.round import Round
from src.skate.rules import TurnRules
from src.skate.stats import compute_stats

logger = logging.getLogger(__name__)

STATS_GAMES_LIMIT = 100
TOP_TRICKS_LIMIT = 5


class SkateService:
    """Orchestration of layers for a remote S.K.A.T.E. battle."""

    def __init__(
        self,
        repository: GameRepository,
        notifier: Notifier,
        rules: TurnRules | None = None,
        clock: Clock = utc_now,
        my_games_limit: int = 50,
    ) -> None:
        self.repo = repository
        self.notifier = notifier
        self.rules = rules or TurnRules()
        self.clock = clock
        self.my_games_limit = my_games_limit

    # -- API routes logic ---
    def create_game(self, challenger_id: str, opponent_id: str) -> GameModel:
        """Challenger invites an opponent to a battle."""
        game = SkateGame.new_game(challenger_id, opponent_id, self.clock())
        stored = self.repo.create_game(game.to_model())

        logger.info(
            "Challenge created game=%s challenger=%s opponent=%s",
            stored.id,
            stored.player1_id,
            stored.player2_id,
        )
        dispatch_events(self.notifier, game.challenge_events())
        return stored

    def respond_to_challenge(
        self, game_id: UUID, responder_id: str, accept: bool
    ) -> GameModel:
        """Invited opponent accepts or declines."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, open_round: Optional[RoundModel]):
            game = SkateGame.from_model(model)
            events.extend(game.respond(responder_id, accept, now, self.rules))
            return game.to_model(), None

        stored, _ = self.repo.transact(game_id, mutation)
        logger.info("Challenge %s game=%s by=%s", stored.status, game_id, responder_id)
        dispatch_events(self.notifier, events)
        return stored

    def propose_trick(
        self, game_id: UUID, user_id: str, trick: str, video_url: str
    ) -> RoundModel:
        """Player on offense sets a trick, with proof."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, open_round: Optional[RoundModel]):
            game = SkateGame.from_model(model)
            current = Round.from_model(open_round) if open_round else None
            new_round, new_events = game.propose_trick(
                user_id, trick, video_url, current, now, self.rules
            )
            events.extend(new_events)
            return game.to_model(), new_round.to_model()

        _, stored_round = self.repo.transact(game_id, mutation)
        assert stored_round is not None
        logger.info(
            "Trick set game=%s round=%s setter=%s", game_id, stored_round.id, user_id
        )
        dispatch_events(self.notifier, events)
        return stored_round

    def submit_response_video(
        self, game_id: UUID, round_id: UUID, user_id: str, video_url: str
    ) -> RoundModel:
        """Responder uploads their attempt."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, round_model: Optional[RoundModel]):
            round_ = self._require_round(round_model, round_id)
            game = SkateGame.from_model(model)
            events.extend(game.submit_response(round_, user_id, video_url, now, self.rules))
            return game.to_model(), round_.to_model()

        _, stored_round = self.repo.transact(game_id, mutation, round_id=round_id)
        assert stored_round is not None
        logger.info(
            "Response uploaded game=%s round=%s responder=%s", game_id, round_id, user_id
        )
        dispatch_events(self.notifier, events)
        return stored_round

    def resolve_round(
        self, game_id: UUID, round_id: UUID, resolver_id: str, outcome: RoundOutcome
    ) -> GameModel:
        """Setter judges the attempt: letters, turn and possibly the end of the game."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, round_model: Optional[RoundModel]):
            round_ = self._require_round(round_model, round_id)
            game = SkateGame.from_model(model)
            events.extend(game.resolve_round(round_, resolver_id, outcome, now, self.rules))
            return game.to_model(), round_.to_model()

        stored, _ = self.repo.transact(game_id, mutation, round_id=round_id)
        logger.info(
            "Round resolved game=%s round=%s outcome=%s letters=%s status=%s",
            game_id,
            round_id,
            outcome,
            stored.letters,
            stored.status,
        )
        if stored.status == GameStatus.COMPLETED:
            logger.info("Game complete game=%s winner=%s", game_id, stored.winner_id)
        dispatch_events(self.notifier, events)
        return stored

    def file_dispute(self, game_id: UUID, round_id: UUID, user_id: str) -> RoundModel:
        """Responder contests the 'missed' ruling on their attempt (once per game)."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, round_model: Optional[RoundModel]):
            round_ = self._require_round(round_model, round_id)
            open_model = self.repo.get_open_round(game_id)
            open_round = Round.from_model(open_model) if open_model else None
            game = SkateGame.from_model(model)
            events.extend(game.file_dispute(round_, user_id, open_round, now, self.rules))
            return game.to_model(), round_.to_model()

        _, stored_round = self.repo.transact(game_id, mutation, round_id=round_id)
        assert stored_round is not None
        logger.info("Dispute filed game=%s round=%s by=%s", game_id, round_id, user_id)
        dispatch_events(self.notifier, events)
        return stored_round

    def resolve_dispute(
        self, game_id: UUID, round_id: UUID, resolver_id: str, outcome: RoundOutcome
    ) -> GameModel:
        """Judge of the disputed round overturns ('landed') or upholds ('missed') the ruling."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, round_model: Optional[RoundModel]):
            round_ = self._require_round(round_model, round_id)
            game = SkateGame.from_model(model)
            events.extend(
                game.resolve_dispute(round_, resolver_id, outcome, now, self.rules)
            )
            return game.to_model(), round_.to_model()

        stored, _ = self.repo.transact(game_id, mutation, round_id=round_id)
        logger.info(
            "Dispute resolved game=%s round=%s outcome=%s letters=%s",
            game_id,
            round_id,
            outcome,
            stored.letters,
        )
        dispatch_events(self.notifier, events)
        return stored

    def forfeit_game(self, game_id: UUID, user_id: str) -> GameModel:
        """Player gives up an active battle."""
        now = self.clock()
        events: list[GameEvent] = []

        def mutation(model: GameModel, open_round: Optional[RoundModel]):
            game = SkateGame.from_model(model)
            events.extend(game.forfeit(user_id, now))
            return game.to_model(), None

        stored, _ = self.repo.transact(game_id, mutation)
        logger.info(
            "Game forfeited game=%s by=%s winner=%s", game_id, user_id, stored.winner_id
        )
        dispatch_events(self.notifier, events)
        return stored

    def get_game(
        self, game_id: UUID, user_id: str
    ) -> tuple[GameModel, list[RoundModel]]:
        """Game details with its rounds, for participants only."""
        model = self._fetch_game(game_id)
        SkateGame.from_model(model).opponent_of(user_id)  # raises ForbiddenError
        return model, self.repo.list_rounds(game_id)

    def my_games(self, user_id: str) -> PlayerGames:
        """Games of a player, bucketed for the lobby."""
        result = PlayerGames()
        for game in self.repo.list_games_for_player(user_id, self.my_games_limit):
            if game.status == GameStatus.PENDING:
                if game.player2_id == user_id:
                    result.pending_challenges.append(game)
                else:
                    result.sent_challenges.append(game)
            elif game.status == GameStatus.ACTIVE:
                result.active_games.append(game)
            else:
                result.completed_games.append(game)
        return result

    def player_stats(self, user_id: str) -> PlayerStats:
        """Wins, losses, streaks and per-opponent records over the player's finished games."""
        finished = self.repo.list_finished_games_for_player(user_id, STATS_GAMES_LIMIT)
        tricks = self.repo.top_tricks(user_id, TOP_TRICKS_LIMIT)
        return compute_stats(user_id, finished, tricks)

    # -- Internal helpers --
    def _fetch_game(self, game_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.get_game(game_id)
        if game_model is None:
            raise NotFoundError(f"Game with {game_id=} not found.")
        return game_model

    @staticmethod
    def _require_round(round_model: Optional[RoundModel], round_id: UUID) -> Round:
        if round_model is None:
            raise NotFoundError(f"Round with {round_id=} not found.")
        return Round.from_model(round_model)
