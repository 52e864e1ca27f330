import sqlite3
import threading
from datetime import datetime
from typing import Any, Callable, Protocol, TypeVar

from loguru import logger

from artbattle.errors import RepositoryError
from artbattle.matchmaking import assemble_pool, remaining_count
from artbattle.models import Artwork, Duel


T = TypeVar("T")

ARTWORK_COLUMNS = ("id", "title", "artist", "panel", "filename", "thumbnail", "rating", "duel_count")

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS artworks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        artist TEXT NOT NULL,
        panel TEXT NOT NULL DEFAULT '',
        filename TEXT NOT NULL UNIQUE,
        thumbnail TEXT NOT NULL DEFAULT '',
        rating INTEGER NOT NULL,
        duel_count INTEGER NOT NULL DEFAULT 0 CHECK (duel_count >= 0)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_artworks_duel_count ON artworks (duel_count)",
    "CREATE INDEX IF NOT EXISTS idx_artworks_rating ON artworks (rating)",
    """
    CREATE TABLE IF NOT EXISTS duels (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        one_id INTEGER NOT NULL REFERENCES artworks (id),
        two_id INTEGER NOT NULL REFERENCES artworks (id),
        winner_id INTEGER NOT NULL REFERENCES artworks (id),
        decided_at TEXT NOT NULL
    )
    """,
)


class ArtworkRepository(Protocol):
    """Queries and updates the duel loop needs from the artwork store.

    Every method raises RepositoryError when the store fails.
    """

    def artwork_with_lowest_duel_count(self) -> Artwork | None: ...

    def artworks_with_similar_rating(self, benchmark: Artwork, count: int) -> list[Artwork]: ...

    def rank(self, artwork: Artwork) -> int: ...

    def get_artwork(self, artwork_id: int) -> Artwork | None: ...

    def update_artwork(self, artwork: Artwork) -> None: ...

    def append_duel(self, duel: Duel) -> None: ...

    def run_transaction(self, fn: Callable[["ArtworkRepository"], T]) -> T: ...

    def leaderboard(self, limit: int) -> list[Artwork]: ...

    def total_duel_count(self) -> int: ...


class SqliteRepository:
    """ArtworkRepository on a single SQLite connection.

    Calls may come from worker threads; a re-entrant lock serializes them, and
    run_transaction holds it for the whole transaction so no other call can
    interleave.
    """

    def __init__(self, path: str):
        self._path = path
        self._lock = threading.RLock()
        self._in_transaction = False
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        except sqlite3.Error as e:
            raise RepositoryError(f"can't open database {path}: {e}") from e
        self._conn.row_factory = sqlite3.Row

    def migrate(self) -> None:
        with self._lock:
            for statement in SCHEMA:
                self._execute(statement)
        logger.info(f"Database ready: {self._path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                return self._conn.execute(sql, params)
            except sqlite3.Error as e:
                raise RepositoryError(f"{e}") from e

    def _fetch_artworks(self, sql: str, params: tuple[Any, ...] = ()) -> list[Artwork]:
        with self._lock:
            rows = self._execute(sql, params).fetchall()
        return [_row_to_artwork(row) for row in rows]

    def _fetch_artwork(self, sql: str, params: tuple[Any, ...] = ()) -> Artwork | None:
        with self._lock:
            row = self._execute(sql, params).fetchone()
        return _row_to_artwork(row) if row is not None else None

    def run_transaction(self, fn: Callable[[ArtworkRepository], T]) -> T:
        """Run `fn` so that all of its calls commit or roll back together.

        Nested calls join the outer transaction.
        """
        with self._lock:
            if self._in_transaction:
                return fn(self)

            self._execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                result = fn(self)
                self._execute("COMMIT")
            except BaseException:
                self._rollback()
                raise
            finally:
                self._in_transaction = False
            return result

    def _rollback(self) -> None:
        if not self._conn.in_transaction:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"Rollback failed: {e}")

    def add_artwork(self, artwork: Artwork) -> Artwork:
        cursor = self._execute(
            "INSERT INTO artworks (title, artist, panel, filename, thumbnail, rating, duel_count) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                artwork.title,
                artwork.artist,
                artwork.panel,
                artwork.filename,
                artwork.thumbnail,
                artwork.rating,
                artwork.duel_count,
            ),
        )
        return artwork.model_copy(update={"id": cursor.lastrowid})

    def get_artwork(self, artwork_id: int) -> Artwork | None:
        return self._fetch_artwork(f"SELECT {_columns()} FROM artworks WHERE id = ?", (artwork_id,))

    def get_artwork_by_filename(self, filename: str) -> Artwork | None:
        return self._fetch_artwork(f"SELECT {_columns()} FROM artworks WHERE filename = ?", (filename,))

    def update_artwork(self, artwork: Artwork) -> None:
        if artwork.id is None:
            raise RepositoryError(f"can't update unsaved artwork '{artwork.title}'")
        cursor = self._execute(
            "UPDATE artworks SET title = ?, artist = ?, panel = ?, filename = ?, thumbnail = ?, "
            "rating = ?, duel_count = ? WHERE id = ?",
            (
                artwork.title,
                artwork.artist,
                artwork.panel,
                artwork.filename,
                artwork.thumbnail,
                artwork.rating,
                artwork.duel_count,
                artwork.id,
            ),
        )
        if cursor.rowcount != 1:
            raise RepositoryError(f"artwork {artwork.id} not found")

    def append_duel(self, duel: Duel) -> None:
        self._execute(
            "INSERT INTO duels (one_id, two_id, winner_id, decided_at) VALUES (?, ?, ?, ?)",
            (duel.one_id, duel.two_id, duel.winner_id, duel.decided_at.isoformat()),
        )

    def duels(self) -> list[Duel]:
        with self._lock:
            rows = self._execute("SELECT one_id, two_id, winner_id, decided_at FROM duels ORDER BY id").fetchall()
        return [
            Duel(
                one_id=row["one_id"],
                two_id=row["two_id"],
                winner_id=row["winner_id"],
                decided_at=datetime.fromisoformat(row["decided_at"]),
            )
            for row in rows
        ]

    def artwork_with_lowest_duel_count(self) -> Artwork | None:
        return self._fetch_artwork(f"SELECT {_columns()} FROM artworks ORDER BY duel_count ASC, id ASC LIMIT 1")

    def artworks_with_similar_rating(self, benchmark: Artwork, count: int) -> list[Artwork]:
        """Up to `count` pieces with ratings around the benchmark's, never the benchmark itself."""
        if count <= 0:
            return []

        higher = self._fetch_artworks(
            f"SELECT {_columns()} FROM artworks WHERE rating > ? AND id != ? ORDER BY rating ASC, id ASC LIMIT ?",
            (benchmark.rating, benchmark.id, count),
        )
        lower = self._fetch_artworks(
            f"SELECT {_columns()} FROM artworks WHERE rating <= ? AND id != ? ORDER BY rating DESC, id ASC LIMIT ?",
            (benchmark.rating, benchmark.id, remaining_count(len(higher), count)),
        )
        return assemble_pool(lower, higher, count)

    def rank(self, artwork: Artwork) -> int:
        with self._lock:
            row = self._execute("SELECT COUNT(*) FROM artworks WHERE rating > ?", (artwork.rating,)).fetchone()
        return row[0] + 1

    def leaderboard(self, limit: int) -> list[Artwork]:
        return self._fetch_artworks(
            f"SELECT {_columns()} FROM artworks ORDER BY rating DESC, id ASC LIMIT ?",
            (limit,),
        )

    def total_duel_count(self) -> int:
        with self._lock:
            row = self._execute("SELECT COUNT(*) FROM duels").fetchone()
        return row[0]


def _columns() -> str:
    return ", ".join(ARTWORK_COLUMNS)


def _row_to_artwork(row: sqlite3.Row) -> Artwork:
    return Artwork(**{column: row[column] for column in ARTWORK_COLUMNS})
