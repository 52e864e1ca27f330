import pytest

from artbattle.rating import expected_score, rating_delta


@pytest.mark.parametrize(
    ("winner", "loser", "delta"),
    [
        (800, 800, 8),  # even match
        (1200, 800, 1),  # favorite wins
        (800, 1200, 15),  # underdog upsets favorite
    ],
)
def test_reference_deltas(winner: int, loser: int, delta: int) -> None:
    assert rating_delta(winner, loser, k_factor=16) == delta


def test_close_ratings_swing_about_half_k() -> None:
    assert rating_delta(900, 905, k_factor=16) == 8
    assert rating_delta(905, 900, k_factor=16) == 8


def test_lopsided_match_still_swings_one_point() -> None:
    assert rating_delta(3000, 100, k_factor=16) == 1


def test_swing_scales_with_k_factor() -> None:
    assert rating_delta(800, 800, k_factor=32) == 16


def test_expected_scores_are_complementary() -> None:
    assert expected_score(1000, 1200) + expected_score(1200, 1000) == pytest.approx(1.0)
    assert expected_score(800, 800) == pytest.approx(0.5)
