"""Unit tests for src/db/sql_repository.py"""

from dataclasses import replace
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.orm import Session

from conftest import START
from src.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RepositoryError,
)
from src.core.models import GameModel
from src.core.shared_types import GameStatus, RoundOutcome
from src.db.schema import DBGame
from src.db.sql_repository import SQLGameRepository
from src.skate.game import SkateGame
from src.skate.round import Round
from src.skate.rules import TurnRules

RULES = TurnRules()


def new_game(p1: str = "A", p2: str = "B", at: datetime = START) -> GameModel:
    return SkateGame.new_game(p1, p2, at).to_model()


def accept(repo: SQLGameRepository, game: GameModel, at: datetime = START) -> GameModel:
    def mutation(model, open_round):
        skate_game = SkateGame.from_model(model)
        skate_game.respond(model.player2_id, True, at, RULES)
        return skate_game.to_model(), None

    accepted, _ = repo.transact(game.id, mutation)
    return accepted


def propose(repo: SQLGameRepository, game: GameModel, at: datetime = START):
    def mutation(model, open_round):
        skate_game = SkateGame.from_model(model)
        current = Round.from_model(open_round) if open_round else None
        new_round, _ = skate_game.propose_trick(
            model.current_turn, "kickflip", "vid://setter", current, at, RULES
        )
        return skate_game.to_model(), new_round.to_model()

    return repo.transact(game.id, mutation)


# --- CREATE / GET ---
def test_create_game(db_session_repo: Session) -> None:
    """Conversion from a GameModel to DBGame for a new entry to the database."""
    model = new_game()

    repo = SQLGameRepository(db_session_repo)
    stored = repo.create_game(model)

    assert isinstance(stored, GameModel)
    assert stored.version == 1
    assert stored == replace(model, version=stored.version)


def test_get_game_by_id(db_session_repo: Session) -> None:
    """Create a game, then fetch it from db."""
    repo = SQLGameRepository(db_session_repo)
    expected_game = repo.create_game(new_game())
    game_found = repo.get_game(expected_game.id)
    assert isinstance(game_found, GameModel)
    assert game_found == expected_game


def test_datetimes_come_back_timezone_aware(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = repo.create_game(new_game())
    db_session_repo.expire_all()

    found = repo.get_game(game.id)
    assert found is not None
    assert found.created_at.tzinfo is not None
    assert found.created_at == START


def test_naive_datetime_is_rejected(db_session_repo: Session) -> None:
    model = new_game()
    model.created_at = model.created_at.replace(tzinfo=None)
    repo = SQLGameRepository(db_session_repo)
    with pytest.raises(RepositoryError):
        repo.create_game(model)


def test_get_unknown_game(db_session_repo: Session) -> None:
    """
    Should return None if ID does not match anything in database.

    NOTE with an empty database, any id is a valid test case.
    """
    repo = SQLGameRepository(db_session_repo)
    assert repo.get_game(uuid4()) is None

    repo.create_game(new_game())
    assert repo.get_game(uuid4()) is None
    assert repo.get_round(uuid4()) is None


# --- TRANSACT ---
def test_transact_updates_game(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = repo.create_game(new_game())

    accepted = accept(repo, game)

    assert accepted.status == GameStatus.ACTIVE
    assert accepted.current_turn == "A"
    assert accepted.deadline_at == START + timedelta(hours=24)
    assert accepted.version == game.version + 1
    assert repo.get_game(game.id) == accepted


def test_transact_inserts_and_updates_round(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = accept(repo, repo.create_game(new_game()))

    _, new_round = propose(repo, game)
    assert new_round is not None
    assert new_round.outcome == RoundOutcome.PENDING
    assert repo.get_open_round(game.id) == new_round

    def attach(model, open_round):
        assert open_round is not None and open_round.id == new_round.id
        open_round.responder_video_url = "vid://responder"
        return model, open_round

    _, updated = repo.transact(game.id, attach, round_id=new_round.id)
    assert updated is not None
    assert updated.responder_video_url == "vid://responder"
    assert repo.list_rounds(game.id) == [updated]


def test_transact_rolls_back_when_mutation_fails(db_session_repo: Session) -> None:
    """A domain error inside the mutation leaves game and rounds untouched."""
    repo = SQLGameRepository(db_session_repo)
    game = accept(repo, repo.create_game(new_game()))

    def failing(model, open_round):
        model.current_turn = "B"
        raise InvalidStateError("nope")

    with pytest.raises(InvalidStateError):
        repo.transact(game.id, failing)

    assert repo.get_game(game.id) == game
    assert repo.list_rounds(game.id) == []


def test_transact_unknown_game(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    with pytest.raises(NotFoundError):
        repo.transact(uuid4(), lambda model, open_round: (model, open_round))


def test_transact_ignores_round_of_another_game(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    first = accept(repo, repo.create_game(new_game("A", "B")))
    second = accept(repo, repo.create_game(new_game("C", "D")))
    _, foreign_round = propose(repo, first)
    assert foreign_round is not None

    seen = []

    def mutation(model, open_round):
        seen.append(open_round)
        return model, None

    repo.transact(second.id, mutation, round_id=foreign_round.id)
    assert seen == [None]


def test_concurrent_update_raises_conflict(db_session_repo: Session) -> None:
    """Someone else bumps the version while the mutation runs."""
    repo = SQLGameRepository(db_session_repo)
    game = repo.create_game(new_game())

    def mutation(model, open_round):
        db_session_repo.execute(
            update(DBGame)
            .where(DBGame.id == model.id)
            .values(version=DBGame.version + 1)
            .execution_options(synchronize_session=False)
        )
        model.status = GameStatus.DECLINED
        return model, None

    with pytest.raises(ConflictError):
        repo.transact(game.id, mutation)


# --- LISTS ---
def test_list_rounds_oldest_first(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = accept(repo, repo.create_game(new_game()))
    _, first = propose(repo, game, START)

    def land(model, open_round):
        skate_game = SkateGame.from_model(model)
        current = Round.from_model(open_round)
        current.attach_response("vid://responder")
        skate_game.resolve_round(
            current, model.current_turn, RoundOutcome.LANDED, START, RULES
        )
        return skate_game.to_model(), current.to_model()

    repo.transact(game.id, land)
    _, second = propose(repo, game, START + timedelta(minutes=5))

    assert first is not None and second is not None
    assert [r.id for r in repo.list_rounds(game.id)] == [first.id, second.id]
    open_round = repo.get_open_round(game.id)
    assert open_round is not None
    assert open_round.id == second.id


def test_list_games_for_player(db_session_repo: Session) -> None:
    """Newest activity first, capped at limit, other players' games excluded."""
    repo = SQLGameRepository(db_session_repo)
    oldest = repo.create_game(new_game("A", "B", START))
    middle = repo.create_game(new_game("C", "A", START + timedelta(minutes=1)))
    newest = repo.create_game(new_game("A", "D", START + timedelta(minutes=2)))
    repo.create_game(new_game("X", "Y", START + timedelta(minutes=3)))

    games = repo.list_games_for_player("A", limit=50)
    assert [g.id for g in games] == [newest.id, middle.id, oldest.id]

    games = repo.list_games_for_player("A", limit=2)
    assert [g.id for g in games] == [newest.id, middle.id]


def test_list_active_games_with_deadline_before(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    early = accept(repo, repo.create_game(new_game("A", "B")), START)
    late = accept(
        repo, repo.create_game(new_game("C", "D")), START + timedelta(hours=5)
    )
    repo.create_game(new_game("E", "F"))  # pending, no deadline

    cutoff = START + timedelta(hours=25)
    assert [g.id for g in repo.list_active_games_with_deadline_before(cutoff)] == [
        early.id
    ]
    cutoff = START + timedelta(hours=30)
    found = {g.id for g in repo.list_active_games_with_deadline_before(cutoff)}
    assert found == {early.id, late.id}


def test_list_active_games_created_before(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    old = accept(repo, repo.create_game(new_game("A", "B", START)))
    accept(
        repo,
        repo.create_game(new_game("C", "D", START + timedelta(days=2))),
        START + timedelta(days=2),
    )
    repo.create_game(new_game("E", "F", START))  # old but still pending

    found = repo.list_active_games_created_before(START + timedelta(days=1))
    assert [g.id for g in found] == [old.id]


def finish(repo: SQLGameRepository, game: GameModel, loser: str, at: datetime) -> GameModel:
    def mutation(model, open_round):
        skate_game = SkateGame.from_model(model)
        skate_game.forfeit(loser, at)
        return skate_game.to_model(), None

    finished, _ = repo.transact(game.id, mutation)
    return finished


def test_list_finished_games_for_player(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    won = finish(repo, accept(repo, repo.create_game(new_game("A", "B"))), "B", START)
    lost = finish(
        repo,
        accept(repo, repo.create_game(new_game("C", "A"))),
        "A",
        START + timedelta(hours=1),
    )
    accept(repo, repo.create_game(new_game("A", "D")))  # active
    repo.create_game(new_game("A", "E"))  # pending
    finish(repo, accept(repo, repo.create_game(new_game("X", "Y"))), "X", START)

    games = repo.list_finished_games_for_player("A", limit=100)
    assert [g.id for g in games] == [lost.id, won.id]
    assert [g.id for g in repo.list_finished_games_for_player("A", limit=1)] == [lost.id]


def test_top_tricks(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = accept(repo, repo.create_game(new_game()))

    def set_trick(trick: str, minutes: int):
        def mutation(model, open_round):
            new_round = Round.propose(
                model.id, "A", trick, "vid://a", START + timedelta(minutes=minutes)
            )
            return model, new_round.to_model()

        repo.transact(game.id, mutation)

    for minutes, trick in enumerate(["kickflip", "heelflip", "kickflip", "ollie", "kickflip"]):
        set_trick(trick, minutes)

    top = repo.top_tricks("A", limit=2)
    assert [(t.trick, t.count) for t in top] == [("kickflip", 3), ("heelflip", 1)]
    assert repo.top_tricks("B", limit=5) == []


# --- DISPUTES ---
def test_dispute_state_is_stored(db_session_repo: Session) -> None:
    repo = SQLGameRepository(db_session_repo)
    game = accept(repo, repo.create_game(new_game()))
    _, opened = propose(repo, game)
    assert opened is not None

    def miss(model, open_round):
        skate_game = SkateGame.from_model(model)
        current = Round.from_model(open_round)
        current.attach_response("vid://responder")
        skate_game.resolve_round(current, "A", RoundOutcome.MISSED, START, RULES)
        return skate_game.to_model(), current.to_model()

    def dispute(model, disputed_round):
        skate_game = SkateGame.from_model(model)
        current = Round.from_model(disputed_round)
        skate_game.file_dispute(current, "B", None, START, RULES)
        return skate_game.to_model(), current.to_model()

    repo.transact(game.id, miss)
    stored_game, stored_round = repo.transact(game.id, dispute, round_id=opened.id)

    assert stored_game.disputes_used == ["B"]
    assert stored_game.disputed_round_id == opened.id
    assert stored_game.last_round_id == opened.id
    assert stored_round is not None
    assert stored_round.disputed_by == "B"
    assert stored_round.disputed_at == START
    assert stored_round.dispute_outcome is None

    db_session_repo.expire_all()
    assert repo.get_game(game.id) == stored_game
    assert repo.get_round(opened.id) == stored_round
