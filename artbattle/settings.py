from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    host: str = Field(default="0.0.0.0", alias="HOST", description="Server host")
    port: int = Field(default=5000, ge=1, le=65535, alias="PORT", description="Server port")

    database_path: str = Field(
        default="artbattle.db",
        min_length=1,
        alias="DATABASE_PATH",
        description="SQLite database file (':memory:' for a throwaway store)",
    )

    image_path: Path = Field(
        default=Path("images"), alias="IMAGE_PATH", description="Directory with the artwork images"
    )
    scan_on_startup: bool = Field(
        default=True, alias="SCAN_ON_STARTUP", description="Scan the image directory into the catalog on startup"
    )

    serial_device: str | None = Field(
        default=None,
        alias="SERIAL_DEVICE",
        description="Device file of the vote buttons, e.g. /dev/ttyUSB0. Remote buttons only when unset",
    )
    serial_retry_attempts: int = Field(
        default=5,
        ge=1,
        alias="SERIAL_RETRY_ATTEMPTS",
        description="Attempts to (re)open the vote device before the reader gives up",
    )

    default_rating: int = Field(
        default=800, ge=1, le=10000, alias="RATING_DEFAULT_POINTS", description="Rating of newly added artworks"
    )
    k_factor: float = Field(default=16, ge=1, le=100, alias="RATING_K_FACTOR", description="Elo K-factor")

    contender_pool_size: int = Field(
        default=50, ge=1, alias="CONTENDER_POOL_SIZE", description="Artworks considered as opponent for a duel"
    )
    leaderboard_size: int = Field(default=10, ge=1, alias="LEADERBOARD_SIZE", description="Entries on the leaderboard")

    duel_timeout_seconds: float = Field(
        default=20, gt=0, le=120, alias="DUEL_TIMEOUT", description="Time the audience has to vote"
    )
    decision_cooldown_seconds: float = Field(
        default=5, gt=0, alias="DECISION_COOLDOWN", description="Time the decision stays on screen"
    )
    timeout_display_seconds: float = Field(
        default=3, gt=0, alias="TIMEOUT_DISPLAY", description="Time the timeout notice stays on screen"
    )
    leaderboard_seconds: float = Field(
        default=15, gt=0, le=120, alias="LEADERBOARD_DURATION", description="Time the leaderboard stays on screen"
    )
    splash_screen_seconds: float = Field(
        default=15, gt=0, le=120, alias="SPLASH_SCREEN_DURATION", description="Time the splash screen stays on screen"
    )
    error_cooldown_seconds: float = Field(
        default=30, gt=0, alias="ERROR_COOLDOWN", description="Time the error banner stays up before resuming"
    )

    client_outbox_size: int = Field(
        default=16, ge=1, alias="CLIENT_OUTBOX_SIZE", description="Messages buffered per display before dropping"
    )
    replay_last_message: bool = Field(
        default=False,
        alias="REPLAY_LAST_MESSAGE",
        description="Send the last broadcast message to displays when they connect",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")

    @field_validator("image_path")
    @classmethod
    def validate_image_path(cls, v: Path) -> Path:
        if ".." in v.parts:
            raise ValueError("image path can't use '..', it wouldn't work in URLs")
        return v
