"""Configuration models using Pydantic for validation."""

import hashlib
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ConfigurationError

ZONE_NAMES = ("source", "destination")


class ZoneSettings(BaseModel):
    """Zone roots and the environment variables that supply them."""

    source_root: Path | None = Field(default=None, description="Root of the source zone")
    destination_root: Path | None = Field(
        default=None, description="Root of the destination zone"
    )
    source_env: str = Field(
        default="DOWNLOAD_PATH", description="Environment variable holding the source root"
    )
    destination_env: str = Field(
        default="MEDIA_PATH", description="Environment variable holding the destination root"
    )

    def root_for(self, zone: str) -> Path:
        """
        Resolve a zone root. The environment takes precedence over the file.

        Raises:
            ConfigurationError: If the zone is unknown or its root is unset.
        """
        if zone not in ZONE_NAMES:
            raise ConfigurationError(f"Unknown zone: {zone}")

        env_name = getattr(self, f"{zone}_env")
        value = os.environ.get(env_name) or getattr(self, f"{zone}_root")
        if not value:
            raise ConfigurationError(f"Environment variable {env_name} is not set")
        return Path(value).expanduser().absolute()


class TransferSettings(BaseModel):
    """Settings for transfer and verification behavior."""

    hash_algorithm: str = Field(default="sha256", description="hashlib algorithm for digests")
    chunk_size: int = Field(
        default=1024 * 1024, ge=4096, description="Read size when hashing files (bytes)"
    )
    cleanup_empty_dirs: bool = Field(
        default=True, description="Remove source directories emptied by a move batch"
    )
    progress_buffer: int = Field(
        default=64, ge=1, description="Maximum queued progress events per stream"
    )

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        """Ensure hashlib knows the algorithm."""
        v = v.lower()
        if v not in hashlib.algorithms_available:
            raise ValueError(f"Unknown hash algorithm: {v}")
        return v


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")
    max_bytes: int = Field(
        default=10 * 1024 * 1024, ge=1024, description="Max log file size before rotation (bytes)"
    )
    backup_count: int = Field(default=5, ge=1, description="Number of rotated log files to keep")
    console_enabled: bool = Field(default=True, description="Enable console logging")
    file_enabled: bool = Field(default=False, description="Enable file logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class DatabaseSettings(BaseModel):
    """Transfer journal configuration."""

    journal_enabled: bool = Field(default=False, description="Record every transfer outcome")
    path: Path = Field(default=Path("data/safemove.db"), description="Path to SQLite journal")


class SafeMoveConfig(BaseModel):
    """Main configuration for SafeMove."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    zones: ZoneSettings = Field(default_factory=ZoneSettings, description="Zone roots")
    transfer: TransferSettings = Field(
        default_factory=TransferSettings, description="Transfer settings"
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings, description="Logging settings"
    )
    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings, description="Journal settings"
    )
