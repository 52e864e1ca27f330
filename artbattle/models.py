from datetime import UTC, datetime

from pydantic import BaseModel, Field


class Artwork(BaseModel):
    """A piece in the show, as stored in the catalog."""

    id: int | None = Field(default=None, description="Catalog identity, assigned on insert")
    title: str = Field(..., description="Title of the piece")
    artist: str = Field(..., description="Name of the artist")
    panel: str = Field(default="", description="Panel or category label")
    filename: str = Field(..., description="Image file, relative to the image directory")
    thumbnail: str = Field(default="", description="Thumbnail file, relative to the image directory, or empty")
    rating: int = Field(default=800, description="Elo rating")
    duel_count: int = Field(default=0, ge=0, description="Number of decided duels this piece took part in")

    def label(self) -> str:
        return f"#{self.id} '{self.title}' ({self.rating})"


class Duel(BaseModel):
    """Append-only record of a decided duel."""

    one_id: int
    two_id: int
    winner_id: int
    decided_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
