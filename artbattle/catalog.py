from pathlib import Path
from typing import Callable, Protocol

from loguru import logger
from PIL import Image
from pydantic import BaseModel

from artbattle.models import Artwork


TAGS_VERSION = "v1"
IMAGE_SUFFIXES = {".jpg", ".jpeg"}
THUMBNAIL_SUFFIX = "_tn"

EXIF_IFD = 0x8769
USER_COMMENT = 0x9286


class CatalogRepository(Protocol):
    def get_artwork_by_filename(self, filename: str) -> Artwork | None: ...

    def add_artwork(self, artwork: Artwork) -> Artwork: ...

    def update_artwork(self, artwork: Artwork) -> None: ...


class CatalogEntry(BaseModel):
    """Tags the show office writes into each image's EXIF UserComment."""

    artist: str
    title: str
    panel: str


class ScanReport(BaseModel):
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0


def _split_line(line: str, expected_key: str) -> str:
    key, sep, value = line.partition(":")
    if not sep:
        raise ValueError(f"no colon in tag line {line!r}")
    if key.strip() != expected_key:
        raise ValueError(f"unexpected key {key.strip()!r}, expected {expected_key!r}")
    return value.strip()


def parse_user_comment(comment: str) -> CatalogEntry:
    """
    Parse the artwork tags:

        ef-artshow-tags-version: v1
        artist: <artist>
        title: <title>
        panel: <panel>

    Raises ValueError when the block is short, out of order or of another version.
    """
    lines = comment.strip().splitlines()
    if len(lines) < 4:
        raise ValueError("short tag data")

    version = _split_line(lines[0], "ef-artshow-tags-version")
    if version != TAGS_VERSION:
        raise ValueError(f"unexpected tags version {version!r}")

    return CatalogEntry(
        artist=_split_line(lines[1], "artist"),
        title=_split_line(lines[2], "title"),
        panel=_split_line(lines[3], "panel"),
    )


def decode_user_comment(raw: bytes | str) -> str:
    """Decode an EXIF UserComment, which starts with an 8 byte character code."""
    if isinstance(raw, str):
        return raw.strip("\x00")

    code, body = raw[:8], raw[8:]
    if code.startswith(b"UNICODE"):
        if body[:2] in (b"\xff\xfe", b"\xfe\xff"):
            text = body.decode("utf-16")
        elif body[:1] == b"\x00":
            text = body.decode("utf-16-be")
        else:
            text = body.decode("utf-16-le")
    else:
        text = body.decode("utf-8", errors="replace")
    return text.strip("\x00")


def read_user_comment(path: Path) -> str | None:
    with Image.open(path) as image:
        raw = image.getexif().get_ifd(EXIF_IFD).get(USER_COMMENT)
    if not raw:
        return None
    return decode_user_comment(raw)


def is_artwork_image(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_SUFFIXES and not path.stem.endswith(THUMBNAIL_SUFFIX)


def thumbnail_for(path: Path) -> Path | None:
    candidate = path.with_name(f"{path.stem}{THUMBNAIL_SUFFIX}{path.suffix}")
    return candidate if candidate.is_file() else None


def scan_catalog(
    repository: CatalogRepository,
    image_path: Path,
    default_rating: int,
    read_comment: Callable[[Path], str | None] = read_user_comment,
) -> ScanReport:
    """Walk the image directory and bring the catalog in line with the tagged images.

    Known files keep their rating and duel count; only changed tags are written.
    Files that can't be read or carry no valid tags are logged and skipped.
    """
    report = ScanReport()
    if not image_path.is_dir():
        logger.warning(f"Image directory {image_path} does not exist, catalog not scanned")
        return report

    for path in sorted(image_path.rglob("*")):
        if not path.is_file() or not is_artwork_image(path):
            continue

        try:
            comment = read_comment(path)
        except (OSError, SyntaxError, ValueError) as e:
            logger.warning(f"Can't read tags of {path}: {e}")
            report.skipped += 1
            continue
        if not comment:
            logger.warning(f"Missing EXIF UserComment in {path}")
            report.skipped += 1
            continue

        try:
            entry = parse_user_comment(comment)
        except ValueError as e:
            logger.warning(f"Bad tags in {path}: {e}")
            report.skipped += 1
            continue

        thumbnail = thumbnail_for(path)
        _upsert(
            repository,
            report,
            entry=entry,
            filename=path.relative_to(image_path).as_posix(),
            thumbnail=thumbnail.relative_to(image_path).as_posix() if thumbnail else "",
            default_rating=default_rating,
        )

    logger.info(
        f"Catalog scanned: {report.added} added, {report.updated} updated, "
        f"{report.unchanged} unchanged, {report.skipped} skipped"
    )
    return report


def _upsert(
    repository: CatalogRepository,
    report: ScanReport,
    entry: CatalogEntry,
    filename: str,
    thumbnail: str,
    default_rating: int,
) -> None:
    existing = repository.get_artwork_by_filename(filename)
    if existing is None:
        artwork = repository.add_artwork(
            Artwork(
                title=entry.title,
                artist=entry.artist,
                panel=entry.panel,
                filename=filename,
                thumbnail=thumbnail,
                rating=default_rating,
                duel_count=0,
            )
        )
        logger.debug(f"Added {artwork.label()} from {filename}")
        report.added += 1
        return

    changes = {"title": entry.title, "artist": entry.artist, "panel": entry.panel, "thumbnail": thumbnail}
    if all(getattr(existing, field) == value for field, value in changes.items()):
        report.unchanged += 1
        return

    repository.update_artwork(existing.model_copy(update=changes))
    logger.debug(f"Updated tags of {existing.label()}")
    report.updated += 1
