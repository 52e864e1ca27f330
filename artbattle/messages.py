from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticSerializationError

from artbattle.errors import EncodingError
from artbattle.models import Artwork


class MessageTag(StrEnum):
    DUEL = "DUEL"
    TIMEOUT = "TIMEOUT"
    DECISION = "DECISION"
    LEADERBOARD = "LEADERBOARD"
    SPLASH = "SPLASH"
    ERROR = "ERROR"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArtworkMessage(WireModel):
    id: int
    title: str
    artist: str
    filename: str
    thumbnail: str
    panel: str
    rating: int
    duel_count: int

    @classmethod
    def from_artwork(cls, artwork: Artwork) -> "ArtworkMessage":
        return cls(
            id=artwork.id or 0,
            title=artwork.title,
            artist=artwork.artist,
            filename=artwork.filename,
            thumbnail=artwork.thumbnail,
            panel=artwork.panel,
            rating=artwork.rating,
            duel_count=artwork.duel_count,
        )


class DuelMessage(WireModel):
    """The pair on screen. Sent with DUEL when it starts and TIMEOUT when nobody voted."""

    one: ArtworkMessage
    two: ArtworkMessage

    @classmethod
    def from_pair(cls, one: Artwork, two: Artwork) -> "DuelMessage":
        return cls(one=ArtworkMessage.from_artwork(one), two=ArtworkMessage.from_artwork(two))


class DecisionMessage(WireModel):
    one: ArtworkMessage
    two: ArtworkMessage
    winner: Literal["one", "two"]
    one_rating_delta: int
    one_rank_delta: int = Field(..., description="Positive when the piece climbed")
    two_rating_delta: int
    two_rank_delta: int = Field(..., description="Positive when the piece climbed")


class LeaderboardMessage(WireModel):
    count: int
    entries: list[ArtworkMessage]

    @classmethod
    def from_artworks(cls, artworks: list[Artwork]) -> "LeaderboardMessage":
        return cls(count=len(artworks), entries=[ArtworkMessage.from_artwork(a) for a in artworks])


class SplashMessage(WireModel):
    duel_count: int = Field(..., description="Total number of decided duels")


class ErrorMessage(WireModel):
    message: str


def encode_message(tag: MessageTag, payload: WireModel) -> str:
    """Render a broadcast message as `<TAG>: <json>`."""
    try:
        body = payload.model_dump_json(by_alias=True)
    except (PydanticSerializationError, ValueError) as e:
        raise EncodingError(f"can't encode {tag.value} message: {e}") from e
    return f"{tag.value}: {body}"
