"""
Deadline jobs: forfeit silent players, warn players whose turn is about to expire,
and close battles that ran past the hard cap.

The scheduler holds no timers. Something outside calls the jobs (a cron endpoint or
the APScheduler interval job from `start_background_jobs`). Each job is idempotent:
every game is re-checked inside its own transaction, so a game that already moved on
is simply skipped.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from apscheduler.schedulers.background import BackgroundScheduler

from src.core.clock import Clock, utc_now
from src.core.exceptions import GameError, RepositoryError
from src.core.models import GameModel, RoundModel
from src.db.repository import GameRepository
from src.notifications.dispatch import dispatch_events
from src.notifications.notifier import Notifier
from src.skate.events import GameEvent
from src.skate.game import SkateGame
from src.skate.round import Round
from src.skate.rules import TurnRules

logger = logging.getLogger(__name__)

Transition = Callable[[SkateGame, Optional[Round], datetime], list[GameEvent]]


@dataclass
class SchedulerReport:
    forfeited: int = 0
    warned: int = 0
    stalled: int = 0


class DeadlineScheduler:
    def __init__(
        self,
        repository: GameRepository,
        notifier: Notifier,
        rules: TurnRules | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.repo = repository
        self.notifier = notifier
        self.rules = rules or TurnRules()
        self.clock = clock

    def forfeit_expired_games(self) -> int:
        """Active games past their deadline are lost by the player who owed the next action."""
        now = self.clock()
        try:
            candidates = self.repo.list_active_games_with_deadline_before(now)
        except RepositoryError:
            logger.exception("Could not load expired games, retrying next tick")
            return 0
        return self._apply_to_each(
            candidates,
            now,
            lambda game, open_round, at: game.expire(at, open_round),
            "forfeit",
        )

    def notify_deadline_warnings(self) -> int:
        """Warn players with little time left (at most once per cooldown). Returns how many."""
        now = self.clock()
        try:
            candidates = self.repo.list_active_games_with_deadline_before(
                now + self.rules.warning_window
            )
        except RepositoryError:
            logger.exception("Could not load games near their deadline, retrying next tick")
            return 0
        # already expired ones belong to forfeit_expired_games
        candidates = [
            game
            for game in candidates
            if game.deadline_at is not None and game.deadline_at > now
        ]
        return self._apply_to_each(
            candidates,
            now,
            lambda game, open_round, at: game.warn_deadline(at, self.rules, open_round),
            "deadline warning",
        )

    def forfeit_stalled_games(self) -> int:
        """Active games older than the hard cap are closed. Returns how many."""
        now = self.clock()
        try:
            candidates = self.repo.list_active_games_created_before(
                now - self.rules.game_hard_cap
            )
        except RepositoryError:
            logger.exception("Could not load stalled games, retrying next tick")
            return 0
        return self._apply_to_each(
            candidates,
            now,
            lambda game, open_round, at: game.enforce_hard_cap(at, self.rules),
            "hard cap forfeit",
        )

    def run_once(self) -> SchedulerReport:
        report = SchedulerReport(
            forfeited=self.forfeit_expired_games(),
            warned=self.notify_deadline_warnings(),
            stalled=self.forfeit_stalled_games(),
        )
        if report.forfeited or report.warned or report.stalled:
            logger.info(
                "Scheduler tick: forfeited=%d warned=%d stalled=%d",
                report.forfeited,
                report.warned,
                report.stalled,
            )
        return report

    # -- Internal helpers --
    def _apply_to_each(
        self, candidates: list[GameModel], now: datetime, transition: Transition, label: str
    ) -> int:
        """Run one transition per game in its own transaction. One bad record never stops the batch."""
        applied = 0
        for candidate in candidates:
            try:
                events = self._apply(candidate.id, now, transition)
            except GameError as exc:
                # state changed since the scan (player acted, already forfeited, ...)
                logger.debug("Skipping %s for game %s: %s", label, candidate.id, exc)
                continue
            except Exception:
                logger.exception("Failed %s for game %s", label, candidate.id)
                continue
            logger.info("Applied %s to game %s", label, candidate.id)
            dispatch_events(self.notifier, events)
            applied += 1
        return applied

    def _apply(self, game_id: UUID, now: datetime, transition: Transition) -> list[GameEvent]:
        events: list[GameEvent] = []

        def mutation(model: GameModel, open_round: Optional[RoundModel]):
            game = SkateGame.from_model(model)
            round_ = Round.from_model(open_round) if open_round is not None else None
            events.extend(transition(game, round_, now))
            return game.to_model(), None

        self.repo.transact(game_id, mutation)
        return events


def start_background_jobs(
    job: Callable[[], object], interval_seconds: float, job_id: str = "deadline-scheduler"
) -> BackgroundScheduler:
    """Run `job` every `interval_seconds` on APScheduler's worker pool, first run right away."""
    scheduler = BackgroundScheduler(timezone=timezone.utc)
    scheduler.add_job(
        job,
        "interval",
        seconds=interval_seconds,
        id=job_id,
        max_instances=1,
        coalesce=True,
        next_run_time=utc_now(),
    )
    scheduler.start()
    logger.info("%s started (every %ss)", job_id, interval_seconds)
    return scheduler
