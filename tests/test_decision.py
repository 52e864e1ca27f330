from unittest.mock import patch

import pytest

from artbattle.decision import process_decision
from artbattle.errors import RepositoryError
from artbattle.models import Artwork
from artbattle.repository import SqliteRepository
from artbattle.votes import Vote
from tests.conftest import add_artwork


def test_vote_for_first_piece(repository: SqliteRepository) -> None:
    a = add_artwork(repository, "A", rating=900, duel_count=3)
    b = add_artwork(repository, "B", rating=905, duel_count=3)

    result = process_decision(repository, a, b, Vote.ONE, k_factor=16)

    assert result.winner == Vote.ONE
    assert result.one_rating_delta == 8
    assert result.two_rating_delta == -8
    assert result.one_rank_delta == 1
    assert result.two_rank_delta == -1
    assert result.one.duel_count == 4
    assert result.two.duel_count == 4

    stored_a = repository.get_artwork(a.id)
    stored_b = repository.get_artwork(b.id)
    assert (stored_a.rating, stored_a.duel_count) == (908, 4)
    assert (stored_b.rating, stored_b.duel_count) == (897, 4)

    [duel] = repository.duels()
    assert (duel.one_id, duel.two_id, duel.winner_id) == (a.id, b.id, a.id)


def test_vote_for_second_piece(repository: SqliteRepository) -> None:
    favorite = add_artwork(repository, "Favorite", rating=1200)
    underdog = add_artwork(repository, "Underdog", rating=800)

    result = process_decision(repository, favorite, underdog, Vote.TWO, k_factor=16)

    assert result.one_rating_delta == -15
    assert result.two_rating_delta == 15
    assert result.one.rating == 1185
    assert result.two.rating == 815
    assert repository.duels()[0].winner_id == underdog.id


def test_decision_uses_fresh_state_from_store(repository: SqliteRepository) -> None:
    a = add_artwork(repository, "A", rating=800, duel_count=0)
    b = add_artwork(repository, "B", rating=800, duel_count=0)
    repository.update_artwork(a.model_copy(update={"duel_count": 7}))

    result = process_decision(repository, a, b, Vote.ONE)

    assert result.one.duel_count == 8


def test_ranks_stay_consistent_after_decisions(repository: SqliteRepository) -> None:
    pieces = [add_artwork(repository, f"P{i}", rating=780 + 10 * i) for i in range(5)]

    process_decision(repository, pieces[0], pieces[4], Vote.ONE)
    process_decision(repository, pieces[1], pieces[2], Vote.TWO)

    everyone = repository.leaderboard(limit=10)
    for piece in everyone:
        assert repository.rank(piece) == 1 + sum(1 for other in everyone if other.rating > piece.rating)


def test_failed_decision_changes_nothing(repository: SqliteRepository) -> None:
    a = add_artwork(repository, "A", rating=900, duel_count=3)
    b = add_artwork(repository, "B", rating=905, duel_count=3)

    with patch.object(SqliteRepository, "append_duel", side_effect=RepositoryError("disk I/O error")):
        with pytest.raises(RepositoryError):
            process_decision(repository, a, b, Vote.ONE)

    assert repository.get_artwork(a.id) == a
    assert repository.get_artwork(b.id) == b
    assert repository.total_duel_count() == 0


def test_decision_on_vanished_piece_fails(repository: SqliteRepository) -> None:
    a = add_artwork(repository, "A")
    ghost = Artwork(id=999, title="Ghost", artist="Nobody", filename="ghost.jpg")

    with pytest.raises(RepositoryError):
        process_decision(repository, a, ghost, Vote.ONE)

    assert repository.get_artwork(a.id).duel_count == 0


def test_decision_message_shape(repository: SqliteRepository) -> None:
    a = add_artwork(repository, "A")
    b = add_artwork(repository, "B")

    message = process_decision(repository, a, b, Vote.TWO).to_message()

    dumped = message.model_dump(by_alias=True)
    assert dumped["winner"] == "two"
    assert dumped["oneRatingDelta"] == -8
    assert dumped["twoRatingDelta"] == 8
    assert dumped["one"]["duelCount"] == 1
