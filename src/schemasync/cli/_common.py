"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from schemasync.config import StoreConfig
from schemasync.store import CanonicalSchemaStore


def open_store(data_dir: Path | None = None) -> CanonicalSchemaStore:
    """Open the LMDB-backed store, honouring SCHEMASYNC_* settings."""
    config = StoreConfig.from_env()
    if data_dir is not None:
        config.data_dir = data_dir
    return CanonicalSchemaStore.open(config)


def read_source(path: Path | None) -> str:
    """Read source text from ``path``, or stdin when no path is given."""
    if path is None or str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))
