import random
from typing import TYPE_CHECKING, Sequence

from loguru import logger

from artbattle.errors import NoContendersError
from artbattle.models import Artwork

if TYPE_CHECKING:
    from artbattle.repository import ArtworkRepository


DEFAULT_POOL_SIZE = 50


def remaining_count(higher_count: int, size: int) -> int:
    """How many lower-or-equal rated pieces to fetch once `higher_count` higher rated ones were found."""
    if higher_count < size // 2:
        return size - higher_count
    return size // 2


def assemble_pool(lower: Sequence[Artwork], higher: Sequence[Artwork], size: int) -> list[Artwork]:
    """
    Build the contender pool around a benchmark.

    `lower` is ordered closest-below first, `higher` closest-above first. Lower
    entries are prepended one by one, so the closest ratings on both sides meet
    in the middle of the pool. The pool is cut to `size` entries.
    """
    pool = list(reversed(lower)) + list(higher)
    return pool[:size]


def choose_contender(pool: Sequence[Artwork], rng: random.Random | None = None) -> Artwork:
    if not pool:
        raise NoContendersError("no eligible contenders")
    return (rng or random).choice(pool)


def select_duel(
    repository: "ArtworkRepository",
    pool_size: int = DEFAULT_POOL_SIZE,
    rng: random.Random | None = None,
) -> tuple[Artwork, Artwork]:
    """Pick the piece most in need of exposure and a worthy opponent for it.

    The first participant is the piece with the fewest duels. The opponent is
    drawn uniformly from the pool of pieces with the closest ratings.
    """
    benchmark = repository.artwork_with_lowest_duel_count()
    if benchmark is None:
        raise NoContendersError("the catalog is empty")

    pool = repository.artworks_with_similar_rating(benchmark, pool_size)
    logger.debug(f"Contender pool for {benchmark.label()}: {len(pool)} pieces")

    contender = choose_contender(pool, rng)
    return benchmark, contender
