"""Where kintree keeps its database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "kintree"
DEFAULT_DB_FILENAME: Final[str] = "kintree.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local SQLite storage, used when no ``DATABASE_URI`` is configured."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_uri(self, *, ensure: bool = True) -> str:
        data_dir = self.resolve_data_dir()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / self.database_filename}"


def default_data_dir() -> Path:
    """Platform data directory: ``%LOCALAPPDATA%`` on Windows, ``$XDG_DATA_HOME`` elsewhere."""

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("KINTREE_DATA_DIR")
    return StorageConfig(
        data_dir=Path(env_dir) if env_dir else default_data_dir(),
        database_filename=os.getenv("KINTREE_DATABASE_FILE") or DEFAULT_DB_FILENAME,
    )


def get_database_uri(*, storage: StorageConfig | None = None) -> str:
    """``DATABASE_URI`` when set, else the local SQLite file.

    Point ``DATABASE_URI`` at PostgreSQL to serialise tree edits across
    processes; SQLite only serialises them within one process.
    """

    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return env_uri
    return (storage or get_storage_config()).database_uri()
