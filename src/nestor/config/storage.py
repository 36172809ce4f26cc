"""Where nestor keeps its database and how the engine is built."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from .env import env_flag, non_blank_env, optional_seconds

APP_DIR_NAME: Final[str] = "nestor"
DEFAULT_DB_FILENAME: Final[str] = "nestor.db"
# seconds a writer waits on a locked SQLite file before giving up
DEFAULT_LOCK_TIMEOUT: Final[float] = 5.0


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self) -> Path:
        """Path of the default SQLite file; creates the data directory."""
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings handed to ``sqlalchemy.create_engine``."""

    uri: str
    echo: bool = False
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    extra: dict[str, Any] = field(default_factory=dict[str, Any])

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": self.echo, **self.extra}
        if self.is_sqlite:
            options["connect_args"] = {"timeout": self.lock_timeout}
        return options


def _platform_data_home() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        return Path(base) if base else Path.home() / "AppData" / "Local"
    base = os.getenv("XDG_DATA_HOME")
    return Path(base) if base else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    data_dir = non_blank_env("NESTOR_DATA_DIR")
    return StorageConfig(
        data_dir=Path(data_dir) if data_dir else _platform_data_home() / APP_DIR_NAME
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    uri = non_blank_env("DATABASE_URI")
    if uri is None:
        uri = f"sqlite+pysqlite:///{(storage or get_storage_config()).database_path()}"
    return DatabaseConfig(
        uri=uri,
        echo=env_flag("NESTOR_SQL_ECHO"),
        lock_timeout=optional_seconds("NESTOR_DB_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT),
    )
