from loguru import logger
from pydantic import BaseModel

from artbattle.errors import RepositoryError
from artbattle.messages import ArtworkMessage, DecisionMessage
from artbattle.models import Artwork, Duel
from artbattle.rating import DEFAULT_K_FACTOR, rating_delta
from artbattle.repository import ArtworkRepository
from artbattle.votes import Vote


class DecisionResult(BaseModel):
    """Outcome of a decided duel, with both pieces as stored afterwards."""

    one: Artwork
    two: Artwork
    winner: Vote
    one_rating_delta: int
    one_rank_delta: int
    two_rating_delta: int
    two_rank_delta: int

    def to_message(self) -> DecisionMessage:
        return DecisionMessage(
            one=ArtworkMessage.from_artwork(self.one),
            two=ArtworkMessage.from_artwork(self.two),
            winner="one" if self.winner == Vote.ONE else "two",
            one_rating_delta=self.one_rating_delta,
            one_rank_delta=self.one_rank_delta,
            two_rating_delta=self.two_rating_delta,
            two_rank_delta=self.two_rank_delta,
        )


def process_decision(
    repository: ArtworkRepository,
    one: Artwork,
    two: Artwork,
    vote: Vote,
    k_factor: float = DEFAULT_K_FACTOR,
) -> DecisionResult:
    """Apply the audience's vote to both pieces in a single transaction.

    Both pieces are re-read inside the transaction, so the update never works on
    a stale copy. Any store failure rolls everything back and raises RepositoryError.
    """

    def apply(repo: ArtworkRepository) -> DecisionResult:
        current_one = _require(repo, one)
        current_two = _require(repo, two)

        one_rank_before = repo.rank(current_one)
        two_rank_before = repo.rank(current_two)

        if vote == Vote.ONE:
            delta = rating_delta(current_one.rating, current_two.rating, k_factor)
            one_delta, two_delta = delta, -delta
            winner_id = current_one.id
        else:
            delta = rating_delta(current_two.rating, current_one.rating, k_factor)
            one_delta, two_delta = -delta, delta
            winner_id = current_two.id

        updated_one = current_one.model_copy(
            update={"rating": current_one.rating + one_delta, "duel_count": current_one.duel_count + 1}
        )
        updated_two = current_two.model_copy(
            update={"rating": current_two.rating + two_delta, "duel_count": current_two.duel_count + 1}
        )
        repo.update_artwork(updated_one)
        repo.update_artwork(updated_two)
        repo.append_duel(Duel(one_id=updated_one.id, two_id=updated_two.id, winner_id=winner_id))

        return DecisionResult(
            one=updated_one,
            two=updated_two,
            winner=vote,
            one_rating_delta=one_delta,
            one_rank_delta=one_rank_before - repo.rank(updated_one),
            two_rating_delta=two_delta,
            two_rank_delta=two_rank_before - repo.rank(updated_two),
        )

    result = repository.run_transaction(apply)
    logger.info(
        f"{result.one.label()} vs {result.two.label()}: piece {result.winner.value} wins, "
        f"swing {abs(result.one_rating_delta)}"
    )
    return result


def _require(repo: ArtworkRepository, artwork: Artwork) -> Artwork:
    if artwork.id is None:
        raise RepositoryError(f"artwork '{artwork.title}' was never stored")
    current = repo.get_artwork(artwork.id)
    if current is None:
        raise RepositoryError(f"artwork {artwork.id} disappeared from the catalog")
    return current
