from collections.abc import Iterator

import pytest

from artbattle.models import Artwork
from artbattle.repository import SqliteRepository
from artbattle.settings import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_PATH=":memory:",
        SCAN_ON_STARTUP=False,
        DUEL_TIMEOUT=0.1,
        DECISION_COOLDOWN=0.01,
        TIMEOUT_DISPLAY=0.01,
        LEADERBOARD_DURATION=0.01,
        SPLASH_SCREEN_DURATION=0.01,
        ERROR_COOLDOWN=0.01,
    )


@pytest.fixture
def repository() -> Iterator[SqliteRepository]:
    repo = SqliteRepository(":memory:")
    repo.migrate()
    yield repo
    repo.close()


def add_artwork(repository: SqliteRepository, title: str, rating: int = 800, duel_count: int = 0) -> Artwork:
    return repository.add_artwork(
        Artwork(
            title=title,
            artist=f"Artist of {title}",
            panel="A1",
            filename=f"{title.lower().replace(' ', '_')}.jpg",
            rating=rating,
            duel_count=duel_count,
        )
    )
