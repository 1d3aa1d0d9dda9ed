"""Engine and store configuration.

Both objects are constructed explicitly and passed to the components that
need them; ``from_env`` builds one from ``SCHEMASYNC_*`` variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

# Environment variable names
ENV_DEBUG = "SCHEMASYNC_DEBUG"
ENV_MIN_SOURCE_LENGTH = "SCHEMASYNC_MIN_SOURCE_LENGTH"
ENV_DEFAULT_DIALECT = "SCHEMASYNC_DEFAULT_DIALECT"
ENV_DATA_DIR = "SCHEMASYNC_DATA_DIR"
ENV_MAP_SIZE = "SCHEMASYNC_MAP_SIZE"
ENV_MAX_WRITE_ATTEMPTS = "SCHEMASYNC_MAX_WRITE_ATTEMPTS"

DEFAULT_DATA_DIR = Path(".schemasync")
DEFAULT_MAP_SIZE = 1024 * 1024 * 1024  # 1 GiB

SUPPORTED_DIALECTS = ("mongoose", "prisma")

# substrings at least one of which must appear in model source
DEFAULT_SCHEMA_MARKERS = ("Schema", "model ", "DataTypes", "@Entity")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def is_debug() -> bool:
    return os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes")


@dataclass
class EngineConfig:
    """Configuration for the schema extraction engine."""

    min_source_length: int = 20
    default_dialect: str = "mongoose"
    schema_markers: tuple[str, ...] = DEFAULT_SCHEMA_MARKERS

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load config from environment variables."""
        dialect = os.environ.get(ENV_DEFAULT_DIALECT, "mongoose").lower()
        if dialect not in SUPPORTED_DIALECTS:
            dialect = "mongoose"
        return cls(
            min_source_length=_env_int(ENV_MIN_SOURCE_LENGTH, 20),
            default_dialect=dialect,
        )


@dataclass
class StoreConfig:
    """Configuration for the canonical schema store."""

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    map_size: int = DEFAULT_MAP_SIZE
    max_write_attempts: int = 3

    @property
    def db_path(self) -> Path:
        return self.data_dir / "schemas.db"

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load config from environment variables."""
        data_dir = os.environ.get(ENV_DATA_DIR)
        return cls(
            data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
            map_size=_env_int(ENV_MAP_SIZE, DEFAULT_MAP_SIZE),
            max_write_attempts=max(1, _env_int(ENV_MAX_WRITE_ATTEMPTS, 3)),
        )
