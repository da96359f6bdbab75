"""Locations of the canonical store and the on-disk HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .env import optional_env_bool
from .errors import InvalidConfigurationError

DATA_DIR_ENV: Final[str] = "UNISYNC_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
SQL_ECHO_ENV: Final[str] = "UNISYNC_SQL_ECHO"
STORE_FILENAME: Final[str] = "unisync.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding the default SQLite store and the HTTP cache."""

    data_dir: Path

    def path_for(self, filename: str, *, ensure: bool = True) -> Path:
        data_dir = self.data_dir.expanduser().resolve()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / filename

    def store_url(self, *, ensure: bool = True) -> URL:
        return URL.create(
            "sqlite+pysqlite", database=str(self.path_for(STORE_FILENAME, ensure=ensure))
        )

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self.path_for(HTTP_CACHE_FILENAME, ensure=ensure)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    url: URL
    echo: bool = False


def get_storage_config() -> StorageConfig:
    override = os.getenv(DATA_DIR_ENV, "").strip()
    if override:
        return StorageConfig(data_dir=Path(override))
    xdg_data_home = os.getenv("XDG_DATA_HOME", "").strip()
    base = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=base / "unisync")


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` when set, otherwise a SQLite file in the data directory."""

    echo = optional_env_bool(SQL_ECHO_ENV, default=False)
    raw = os.getenv(DATABASE_URI_ENV, "").strip()
    if not raw:
        return DatabaseConfig(url=(storage or get_storage_config()).store_url(), echo=echo)
    try:
        url = make_url(raw)
    except ArgumentError as exc:
        raise InvalidConfigurationError(f"Invalid value for {DATABASE_URI_ENV}: {raw!r}") from exc
    return DatabaseConfig(url=url, echo=echo)
