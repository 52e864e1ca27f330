import math


DEFAULT_K_FACTOR = 16.0
MIN_SWING = 1


def expected_score(rating: int, opponent_rating: int) -> float:
    """Probability that a piece rated `rating` wins against one rated `opponent_rating`."""
    return 1.0 / (1.0 + 10 ** ((opponent_rating - rating) / 400.0))


def rating_delta(rating_winner: int, rating_loser: int, k_factor: float = DEFAULT_K_FACTOR) -> int:
    """
    Points the winner gains and the loser pays.

    Highly rated pieces gain few points from beating low rated ones, but lose a lot
    when upset. The swing is rounded half away from zero and never drops below
    MIN_SWING, so every decision moves both ratings. Ratings are not floored at zero.
    """
    delta = k_factor * (1.0 - expected_score(rating_winner, rating_loser))
    return max(MIN_SWING, math.floor(delta + 0.5))
