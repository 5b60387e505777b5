"""
The SkateGame class is the entrypoint into the domain layer for the service layer.
It owns every rule of a remote S.K.A.T.E. battle: who may act, who gets a letter,
when the game ends and who wins -->
the service layer loads it, asks it to apply one transition, persists the result
and dispatches the notifications the transition produced.

Nothing in here touches a database, a clock or a notifier. Time is passed in.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Self
from uuid import UUID, uuid4

from src.core.exceptions import (
    ForbiddenError,
    InvalidParticipantsError,
    InvalidStateError,
    NotFoundError,
)
from src.core.models import GameModel
from src.core.shared_types import (
    TERMINAL_STATUSES,
    GameStatus,
    NotificationType,
    RoundOutcome,
)
from src.skate.events import GameEvent
from src.skate.letters import is_eliminated, spell
from src.skate.round import Round
from src.skate.rules import TurnRules


@dataclass
class SkateGame:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    id: UUID
    player1_id: str  # challenger
    player2_id: str  # invited opponent
    status: GameStatus
    current_turn: Optional[str]
    letters: dict[str, int]
    deadline_at: Optional[datetime]
    winner_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    last_warned_at: Optional[datetime] = None
    disputes_used: list[str] = field(default_factory=list)
    disputed_round_id: Optional[UUID] = None
    last_round_id: Optional[UUID] = None
    version: int = 0

    @classmethod
    def new_game(cls, challenger_id: str, opponent_id: str, now: datetime) -> Self:
        """A challenge from one player to another. Nobody is on turn until it is accepted."""
        challenger_id = (challenger_id or "").strip()
        opponent_id = (opponent_id or "").strip()
        if not challenger_id or not opponent_id:
            raise InvalidParticipantsError("Both players must be identified")
        if challenger_id == opponent_id:
            raise InvalidParticipantsError("Cannot challenge yourself")
        return cls(
            id=uuid4(),
            player1_id=challenger_id,
            player2_id=opponent_id,
            status=GameStatus.PENDING,
            current_turn=None,
            letters={challenger_id: 0, opponent_id: 0},
            deadline_at=None,
            winner_id=None,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_model(cls, model: GameModel) -> Self:
        """Define how to construct a SkateGame from the information the Service layer actually has"""

        # Validation
        if model.status not in {status.value for status in GameStatus}:
            raise InvalidStateError(
                f"Invalid status code: {model.status!r}. \nPick one from {','.join(status.value for status in GameStatus)}"
            )

        return cls(
            id=model.id,
            player1_id=model.player1_id,
            player2_id=model.player2_id,
            status=GameStatus(model.status),
            current_turn=model.current_turn,
            letters={
                model.player1_id: model.letters.get(model.player1_id, 0),
                model.player2_id: model.letters.get(model.player2_id, 0),
            },
            deadline_at=model.deadline_at,
            winner_id=model.winner_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            last_warned_at=model.last_warned_at,
            disputes_used=list(model.disputes_used),
            disputed_round_id=model.disputed_round_id,
            last_round_id=model.last_round_id,
            version=model.version,
        )

    def to_model(self) -> GameModel:
        """Encode back into a format the Service layer uses"""
        return GameModel(
            id=self.id,
            player1_id=self.player1_id,
            player2_id=self.player2_id,
            status=self.status.value,
            current_turn=self.current_turn,
            letters=dict(self.letters),
            deadline_at=self.deadline_at,
            winner_id=self.winner_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_warned_at=self.last_warned_at,
            disputes_used=list(self.disputes_used),
            disputed_round_id=self.disputed_round_id,
            last_round_id=self.last_round_id,
            version=self.version,
        )

    # -- queries --
    @property
    def players(self) -> tuple[str, str]:
        return (self.player1_id, self.player2_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_participant(self, player_id: str) -> bool:
        return player_id in self.players

    def opponent_of(self, player_id: str) -> str:
        if player_id == self.player1_id:
            return self.player2_id
        if player_id == self.player2_id:
            return self.player1_id
        raise ForbiddenError("You are not a player in this game")

    def awaiting_player(self, open_round: Optional[Round] = None) -> Optional[str]:
        """
        The player who owes the next action, and therefore runs against the deadline.
        ----

        * dispute pending --> the judge (the disputer is on offense, so the other player)
        * trick set, no reply yet --> the responder
        * otherwise --> the player on offense (set a trick, or judge the reply)
        """
        if self.current_turn is None:
            return None
        if self.disputed_round_id is not None:
            return self.opponent_of(self.current_turn)
        if open_round is not None and open_round.responder_video_url is None:
            return self.opponent_of(open_round.setter_id)
        return self.current_turn

    def spelled_letters(self) -> dict[str, str]:
        return {player: spell(count) for player, count in self.letters.items()}

    def challenge_events(self) -> list[GameEvent]:
        """Notification for a freshly created challenge."""
        return [
            GameEvent(
                self.player2_id,
                NotificationType.CHALLENGE_RECEIVED,
                {"game_id": str(self.id), "challenger_id": self.player1_id},
            )
        ]

    # -- transitions requested by players --
    def respond(
        self, responder_id: str, accept: bool, now: datetime, rules: TurnRules
    ) -> list[GameEvent]:
        """The invited opponent accepts or declines the challenge."""
        if responder_id != self.player2_id:
            raise ForbiddenError("Only the invited opponent can respond to this challenge")
        if self.status != GameStatus.PENDING:
            raise InvalidStateError(f"Game is not pending. status: {self.status}")

        if not accept:
            self.status = GameStatus.DECLINED
            self.updated_at = now
            return [
                GameEvent(
                    self.player1_id,
                    NotificationType.CHALLENGE_DECLINED,
                    {"game_id": str(self.id), "opponent_id": self.player2_id},
                )
            ]

        # the challenger sets the first trick
        self.status = GameStatus.ACTIVE
        self.current_turn = self.player1_id
        self._refresh_deadline(now, rules)
        return [self._your_turn_event(self.player1_id)]

    def propose_trick(
        self,
        user_id: str,
        trick: str,
        video_url: str,
        open_round: Optional[Round],
        now: datetime,
        rules: TurnRules,
    ) -> tuple[Round, list[GameEvent]]:
        """The player on offense sets a trick. Starts a new round."""
        self._assert_active()
        self._assert_participant(user_id)
        self._assert_your_turn(user_id)
        if open_round is not None:
            raise InvalidStateError(
                "A round is already open. It must be resolved before a new trick is set."
            )
        self._assert_no_pending_dispute()
        self._assert_deadline_not_passed(now)

        new_round = Round.propose(self.id, user_id, trick, video_url, now)
        self._refresh_deadline(now, rules)

        responder = self.opponent_of(user_id)
        event = GameEvent(
            responder,
            NotificationType.YOUR_TURN,
            {
                "game_id": str(self.id),
                "round_id": str(new_round.id),
                "trick": trick,
                "setter_id": user_id,
            },
        )
        return new_round, [event]

    def submit_response(
        self, round_: Round, user_id: str, video_url: str, now: datetime, rules: TurnRules
    ) -> list[GameEvent]:
        """The responder uploads their attempt at the setter's trick."""
        self._assert_round_of_this_game(round_)
        self._assert_participant(user_id)
        if user_id == round_.setter_id:
            raise ForbiddenError("Only defense can submit a reply")
        self._assert_active()
        self._assert_deadline_not_passed(now)

        round_.attach_response(video_url)
        self._refresh_deadline(now, rules)

        # the setter judges next
        event = GameEvent(
            round_.setter_id,
            NotificationType.YOUR_TURN,
            {"game_id": str(self.id), "round_id": str(round_.id), "action": "resolve"},
        )
        return [event]

    def resolve_round(
        self,
        round_: Round,
        resolver_id: str,
        outcome: RoundOutcome,
        now: datetime,
        rules: TurnRules,
    ) -> list[GameEvent]:
        """
        The setter judges the responder's attempt.
        ----

        * landed --> no letter, the setter keeps offense
        * missed --> the responder takes a letter and becomes the new setter
        * five letters --> game over, the other player wins
        """
        self._assert_round_of_this_game(round_)
        self._assert_participant(resolver_id)
        self._assert_active()
        if resolver_id != round_.setter_id:
            raise ForbiddenError("Only offense can resolve a round")
        self._assert_deadline_not_passed(now)

        round_.resolve(outcome, now)
        self.last_round_id = round_.id
        responder = self.opponent_of(round_.setter_id)

        if outcome == RoundOutcome.MISSED:
            self.letters[responder] += 1
            self.current_turn = responder

        if is_eliminated(self.letters[responder]):
            return self._complete(winner_id=round_.setter_id, now=now)

        self._refresh_deadline(now, rules)
        event = self._your_turn_event(
            self.current_turn,
            round_id=str(round_.id),
            outcome=outcome.value,
            letters=self.spelled_letters(),
        )
        return [event]

    def forfeit(self, user_id: str, now: datetime) -> list[GameEvent]:
        """A player gives up. The opponent wins."""
        self._assert_participant(user_id)
        self._assert_active()
        winner = self.opponent_of(user_id)
        self._close(GameStatus.FORFEITED, winner, now)
        return [
            GameEvent(
                winner,
                NotificationType.OPPONENT_FORFEITED,
                {"game_id": str(self.id), "loser_id": user_id, "winner_id": winner},
            )
        ]

    def file_dispute(
        self,
        round_: Round,
        user_id: str,
        open_round: Optional[Round],
        now: datetime,
        rules: TurnRules,
    ) -> list[GameEvent]:
        """
        The responder contests the 'missed' ruling of the latest round.
        Each player gets one dispute per game. Play pauses until the judge decides.
        """
        self._assert_round_of_this_game(round_)
        self._assert_participant(user_id)
        self._assert_active()
        if user_id == round_.setter_id:
            raise ForbiddenError("You can only dispute rulings on your own attempts")
        if user_id in self.disputes_used:
            raise InvalidStateError("You have already used your dispute for this game")
        self._assert_no_pending_dispute()
        if round_.id != self.last_round_id:
            raise InvalidStateError("Only the latest ruling can be disputed")
        if open_round is not None:
            raise InvalidStateError("A new round has already started")
        self._assert_deadline_not_passed(now)

        round_.open_dispute(user_id, now)
        self.disputes_used.append(user_id)
        self.disputed_round_id = round_.id
        self._refresh_deadline(now, rules)

        return [
            GameEvent(
                round_.setter_id,
                NotificationType.DISPUTE_FILED,
                {
                    "game_id": str(self.id),
                    "round_id": str(round_.id),
                    "disputed_by": user_id,
                },
            )
        ]

    def resolve_dispute(
        self,
        round_: Round,
        resolver_id: str,
        final_outcome: RoundOutcome,
        now: datetime,
        rules: TurnRules,
    ) -> list[GameEvent]:
        """
        The judge of the disputed round gives the final ruling.
        ----

        * landed --> ruling overturned: the letter is removed and the judge is back on offense
        * missed --> ruling stands, the disputer stays on offense
        """
        self._assert_round_of_this_game(round_)
        self._assert_participant(resolver_id)
        self._assert_active()
        if round_.id != self.disputed_round_id:
            raise InvalidStateError("Round has no dispute awaiting resolution")
        if resolver_id != round_.setter_id:
            raise ForbiddenError("Only the judging player can resolve the dispute")
        self._assert_deadline_not_passed(now)

        round_.settle_dispute(final_outcome, now)
        disputer = round_.disputed_by or self.opponent_of(round_.setter_id)
        if final_outcome == RoundOutcome.LANDED:
            self.letters[disputer] = max(0, self.letters[disputer] - 1)
            self.current_turn = round_.setter_id
        self.disputed_round_id = None
        self._refresh_deadline(now, rules)

        return [
            GameEvent(
                disputer,
                NotificationType.DISPUTE_RESOLVED,
                {
                    "game_id": str(self.id),
                    "round_id": str(round_.id),
                    "final_outcome": final_outcome.value,
                    "letters": self.spelled_letters(),
                },
            ),
            self._your_turn_event(self.current_turn),
        ]

    # -- transitions requested by the scheduler --
    def expire(self, now: datetime, open_round: Optional[Round] = None) -> list[GameEvent]:
        """The player who owed the next action let the deadline pass: the other player wins."""
        self._assert_active()
        if self.deadline_at is None or self.deadline_at >= now:
            raise InvalidStateError("Turn deadline has not passed")
        loser = self.awaiting_player(open_round)
        if loser is None:
            raise InvalidStateError("No player is on turn")

        winner = self.opponent_of(loser)
        self._close(GameStatus.FORFEITED, winner, now)
        return self._timeout_events(loser, winner, reason="turn_timeout")

    def enforce_hard_cap(self, now: datetime, rules: TurnRules) -> list[GameEvent]:
        """
        A battle must finish within the hard cap.
        The player closest to losing takes the loss; on a tie, the player on turn.
        """
        self._assert_active()
        if self.created_at >= now - rules.game_hard_cap:
            raise InvalidStateError("Game is still within its time limit")

        p1_count = self.letters[self.player1_id]
        p2_count = self.letters[self.player2_id]
        if p1_count > p2_count:
            loser = self.player1_id
        elif p2_count > p1_count:
            loser = self.player2_id
        else:
            loser = self.current_turn or self.player1_id
        winner = self.opponent_of(loser)
        self._close(GameStatus.FORFEITED, winner, now)
        return self._timeout_events(loser, winner, reason="hard_cap")

    def warn_deadline(
        self, now: datetime, rules: TurnRules, open_round: Optional[Round] = None
    ) -> list[GameEvent]:
        """Remind the player who owes the next action that the deadline is close."""
        self._assert_active()
        recipient = self.awaiting_player(open_round)
        if recipient is None or self.deadline_at is None:
            raise InvalidStateError("No player is on turn")
        if self.deadline_at <= now:
            raise InvalidStateError("Turn deadline has already passed")
        if self.deadline_at > now + rules.warning_window:
            raise InvalidStateError("Turn deadline is not close yet")
        if (
            self.last_warned_at is not None
            and now - self.last_warned_at <= rules.warning_cooldown
        ):
            raise InvalidStateError("Player was warned recently")

        self.last_warned_at = now
        minutes_remaining = round((self.deadline_at - now).total_seconds() / 60)
        return [
            GameEvent(
                recipient,
                NotificationType.DEADLINE_WARNING,
                {"game_id": str(self.id), "minutes_remaining": minutes_remaining},
            )
        ]

    # -- PRIVATE HELPERS ---
    def _assert_active(self) -> None:
        if self.status != GameStatus.ACTIVE:
            raise InvalidStateError(f"Game is not active. status: {self.status}")

    def _assert_participant(self, player_id: str) -> None:
        if not self.is_participant(player_id):
            raise ForbiddenError("You are not a player in this game")

    def _assert_your_turn(self, player_id: str) -> None:
        if player_id != self.current_turn:
            raise ForbiddenError(
                f"It is not your turn. Waiting for player {self.current_turn} to set a trick first."
            )

    def _assert_no_pending_dispute(self) -> None:
        if self.disputed_round_id is not None:
            raise InvalidStateError("A dispute is awaiting resolution")

    def _assert_round_of_this_game(self, round_: Round) -> None:
        if round_.game_id != self.id:
            raise NotFoundError(f"Round {round_.id} not found in game {self.id}")

    def _assert_deadline_not_passed(self, now: datetime) -> None:
        if self.deadline_at is not None and self.deadline_at <= now:
            raise InvalidStateError("Turn deadline has passed")

    def _refresh_deadline(self, now: datetime, rules: TurnRules) -> None:
        self.deadline_at = now + rules.turn_window
        self.updated_at = now

    def _close(self, status: GameStatus, winner_id: str, now: datetime) -> None:
        self.status = status
        self.winner_id = winner_id
        self.current_turn = None
        self.deadline_at = None
        self.updated_at = now

    def _complete(self, winner_id: str, now: datetime) -> list[GameEvent]:
        self._close(GameStatus.COMPLETED, winner_id, now)
        return [
            GameEvent(
                player,
                NotificationType.GAME_OVER,
                {
                    "game_id": str(self.id),
                    "winner_id": winner_id,
                    "you_won": player == winner_id,
                    "letters": self.spelled_letters(),
                },
            )
            for player in self.players
        ]

    def _timeout_events(self, loser: str, winner: str, reason: str) -> list[GameEvent]:
        return [
            GameEvent(
                player,
                NotificationType.GAME_FORFEITED_TIMEOUT,
                {
                    "game_id": str(self.id),
                    "loser_id": loser,
                    "winner_id": winner,
                    "reason": reason,
                },
            )
            for player in self.players
        ]

    def _your_turn_event(self, player_id: Optional[str], **extra: object) -> GameEvent:
        payload: dict[str, object] = {"game_id": str(self.id)}
        if self.deadline_at is not None:
            payload["deadline_at"] = self.deadline_at.isoformat()
        payload.update(extra)
        return GameEvent(player_id or "", NotificationType.YOUR_TURN, payload)
