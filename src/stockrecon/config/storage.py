"""Where the reconciliation store lives.

``DATABASE_URI`` wins outright. Without it the store is a SQLite file under
``STOCKRECON_DATA_DIR`` or the platform's per-user data directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import read_env

APP_DIR_NAME: Final[str] = "stockrecon"
DEFAULT_DB_FILENAME: Final[str] = "stockrecon.db"
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @property
    def database_file(self) -> Path:
        return self.data_dir.expanduser().resolve() / self.database_filename

    def database_uri(self) -> str:
        path = self.database_file
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{path}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def _platform_data_dir() -> Path:
    if os.name == "nt":
        root = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        root = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(root) / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    override = read_env("STOCKRECON_DATA_DIR")
    filename = read_env("STOCKRECON_DB_FILENAME") or DEFAULT_DB_FILENAME
    return StorageConfig(
        data_dir=Path(override) if override else _platform_data_dir(),
        database_filename=filename,
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    echo = (read_env("STOCKRECON_SQL_ECHO") or "").lower() in _TRUTHY
    uri = read_env("DATABASE_URI") or (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri, echo=echo)
