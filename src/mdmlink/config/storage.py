"""Where mdmlink keeps its linkage database, matcher cache and policy file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DATA_DIR_VAR: Final[str] = "MDMLINK_DATA_DIR"
DATABASE_FILENAME: Final[str] = "linkage.db"
MATCHER_CACHE_FILENAME: Final[str] = "matcher_cache.db"
POLICY_FILENAME: Final[str] = "policy.toml"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def path(self, filename: str, *, ensure: bool = True) -> Path:
        """``filename`` inside the data directory, creating the directory when ``ensure``."""

        base = self.data_dir.expanduser().resolve()
        if ensure:
            base.mkdir(parents=True, exist_ok=True)
        return base / filename

    def database_path(self, *, ensure: bool = True) -> Path:
        return self.path(DATABASE_FILENAME, ensure=ensure)

    def matcher_cache_path(self, *, ensure: bool = True) -> Path:
        return self.path(MATCHER_CACHE_FILENAME, ensure=ensure)

    def policy_path(self) -> Path:
        # read-only lookup; never creates the directory
        return self.path(POLICY_FILENAME, ensure=False)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv(DATA_DIR_VAR)
    if env_dir:
        return StorageConfig(data_dir=Path(env_dir))
    base = os.getenv("XDG_DATA_HOME")
    base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return StorageConfig(data_dir=base_path / "mdmlink")


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` when set, otherwise the SQLite file in the data directory."""

    echo = os.getenv("MDMLINK_SQL_ECHO", "").strip().lower() in _TRUTHY
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    database_path = (storage or get_storage_config()).database_path()
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{database_path}", echo=echo)
