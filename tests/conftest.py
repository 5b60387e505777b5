"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from collections import Counter
from copy import deepcopy
from datetime import datetime, timedelta, timezone
from typing import Any, Generator, Optional
from uuid import UUID

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.exceptions import NotFoundError, RepositoryError
from src.core.models import GameModel, RoundModel, TrickCount
from src.core.shared_types import (
    FINISHED_STATUSES,
    GameStatus,
    NotificationType,
    RoundOutcome,
)
from src.db.repository import Mutation
from src.db.schema import Base

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


# --- MOCK DEPENDENCIES ----
class FakeClock:
    """Clock the tests can move forward."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Keeps every notification instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, NotificationType, dict[str, Any]]] = []

    def notify(
        self, user_id: str, event_type: NotificationType, payload: dict[str, Any]
    ) -> None:
        self.sent.append((user_id, event_type, payload))

    def of_type(self, event_type: NotificationType) -> list[tuple[str, dict[str, Any]]]:
        return [(user, payload) for user, kind, payload in self.sent if kind == event_type]

    def clear(self) -> None:
        self.sent.clear()


class BrokenNotifier:
    """Every delivery fails."""

    def __init__(self) -> None:
        self.attempts = 0

    def notify(
        self, user_id: str, event_type: NotificationType, payload: dict[str, Any]
    ) -> None:
        self.attempts += 1
        raise ConnectionError("push gateway unreachable")


class MockRepository:
    """Mock the GameRepository using dictionaries of game and round models."""

    def __init__(self) -> None:
        self._games: dict[UUID, GameModel] = {}
        self._rounds: dict[UUID, RoundModel] = {}
        self.fail_reads = False

    def create_game(self, game: GameModel) -> GameModel:
        self._games[game.id] = deepcopy(game)
        return deepcopy(game)

    def get_game(self, game_id: UUID) -> GameModel | None:
        game = self._games.get(game_id)
        return deepcopy(game) if game else None

    def get_round(self, round_id: UUID) -> RoundModel | None:
        round_ = self._rounds.get(round_id)
        return deepcopy(round_) if round_ else None

    def get_open_round(self, game_id: UUID) -> RoundModel | None:
        for round_ in self._rounds.values():
            if round_.game_id == game_id and round_.outcome == RoundOutcome.PENDING:
                return deepcopy(round_)
        return None

    def list_rounds(self, game_id: UUID) -> list[RoundModel]:
        rounds = [r for r in self._rounds.values() if r.game_id == game_id]
        return deepcopy(sorted(rounds, key=lambda r: r.created_at))

    def list_games_for_player(self, player_id: str, limit: int) -> list[GameModel]:
        games = [
            g for g in self._games.values() if player_id in (g.player1_id, g.player2_id)
        ]
        games.sort(key=lambda g: g.updated_at, reverse=True)
        return deepcopy(games[:limit])

    def list_finished_games_for_player(self, player_id: str, limit: int) -> list[GameModel]:
        games = [
            g
            for g in self._games.values()
            if player_id in (g.player1_id, g.player2_id) and g.status in FINISHED_STATUSES
        ]
        games.sort(key=lambda g: g.updated_at, reverse=True)
        return deepcopy(games[:limit])

    def top_tricks(self, player_id: str, limit: int) -> list[TrickCount]:
        counts = Counter(r.trick for r in self._rounds.values() if r.setter_id == player_id)
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [TrickCount(trick=trick, count=count) for trick, count in ranked[:limit]]

    def list_active_games_with_deadline_before(
        self, cutoff: datetime
    ) -> list[GameModel]:
        self._check_reads()
        return deepcopy(
            [
                g
                for g in self._games.values()
                if g.status == GameStatus.ACTIVE
                and g.deadline_at is not None
                and g.deadline_at < cutoff
            ]
        )

    def list_active_games_created_before(self, cutoff: datetime) -> list[GameModel]:
        self._check_reads()
        return deepcopy(
            [
                g
                for g in self._games.values()
                if g.status == GameStatus.ACTIVE and g.created_at < cutoff
            ]
        )

    def transact(
        self, game_id: UUID, fn: Mutation, round_id: UUID | None = None
    ) -> tuple[GameModel, Optional[RoundModel]]:
        if game_id not in self._games:
            raise NotFoundError(f"Game with {game_id=} not found.")
        if round_id is not None:
            round_ = self._rounds.get(round_id)
            if round_ is not None and round_.game_id != game_id:
                round_ = None
        else:
            round_ = self.get_open_round(game_id)

        # fn works on copies: if it raises, nothing is stored
        new_game, new_round = fn(deepcopy(self._games[game_id]), deepcopy(round_))
        new_game.version += 1
        self._games[game_id] = deepcopy(new_game)
        if new_round is not None:
            self._rounds[new_round.id] = deepcopy(new_round)
        return deepcopy(new_game), deepcopy(new_round)

    # -- test helpers --
    def put_game(self, game: GameModel) -> None:
        self._games[game.id] = deepcopy(game)

    def clear(self) -> None:
        """Clear the repository (useful in between tests)"""
        self._games.clear()
        self._rounds.clear()

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise RepositoryError("database unavailable")


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
