"""
Bridge Indexer TOML Configuration Loader

Loads config.toml at startup with environment variable overrides.
Each [section] maps to a dataclass with from_dict / apply_env / to_dict.

Environment variable mapping:
    [indexer]  log_level       → BRIDGE_INDEXER_LOG_LEVEL
    [database] type            → BRIDGE_INDEXER_DB_TYPE
    [database.postgres] host   → BRIDGE_INDEXER_DB_HOST
    ...

The database password MUST come from BRIDGE_INDEXER_DB_PASSWORD (or a full
BRIDGE_INDEXER_DATABASE_URL), never from TOML.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from ..constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_POOL_MAX_SIZE,
    DEFAULT_POOL_MIN_SIZE,
    DEFAULT_SQLITE_BUSY_TIMEOUT,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DATABASE_TYPES = ("postgres", "sqlite")


@dataclass
class IndexerSectionConfig:
    """[indexer] section."""
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexerSectionConfig":
        return cls(log_level=str(data.get("log_level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("BRIDGE_INDEXER_LOG_LEVEL"):
            self.log_level = v.upper()


# -- Database -----------------------------------------------------------

@dataclass
class PostgresConfig:
    """[database.postgres]."""
    host: str = "127.0.0.1"
    port: int = 5432
    user: str = "indexer"
    name: str = "indexer"
    password: str = field(default="", repr=False)
    url: str = field(default="", repr=False)
    min_pool_size: int = DEFAULT_POOL_MIN_SIZE
    max_pool_size: int = DEFAULT_POOL_MAX_SIZE
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostgresConfig":
        if "password" in data:
            logger.warning("Ignoring database password in TOML, use BRIDGE_INDEXER_DB_PASSWORD")
        return cls(
            host=data.get("host", "127.0.0.1"),
            port=int(data.get("port", 5432)),
            user=data.get("user", "indexer"),
            name=data.get("name", "indexer"),
            min_pool_size=int(data.get("min_pool_size", DEFAULT_POOL_MIN_SIZE)),
            max_pool_size=int(data.get("max_pool_size", DEFAULT_POOL_MAX_SIZE)),
            command_timeout=float(data.get("command_timeout", DEFAULT_COMMAND_TIMEOUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BRIDGE_INDEXER_DB_HOST"):
            self.host = v
        if v := os.environ.get("BRIDGE_INDEXER_DB_PORT"):
            self.port = int(v)
        if v := os.environ.get("BRIDGE_INDEXER_DB_USER"):
            self.user = v
        if v := os.environ.get("BRIDGE_INDEXER_DB_NAME"):
            self.name = v
        if v := os.environ.get("BRIDGE_INDEXER_DB_PASSWORD"):
            self.password = v
        if v := os.environ.get("BRIDGE_INDEXER_DATABASE_URL"):
            self.url = v

    @property
    def dsn(self) -> str:
        """Connection string; an explicit URL wins over the discrete fields."""
        if self.url:
            return self.url
        credentials = quote(self.user, safe="")
        if self.password:
            credentials += ":" + quote(self.password, safe="")
        return f"postgresql://{credentials}@{self.host}:{self.port}/{self.name}"


@dataclass
class SQLiteConfig:
    """[database.sqlite]."""
    path: str = "data/bridge_indexer.db"
    wal_mode: bool = True
    busy_timeout: int = DEFAULT_SQLITE_BUSY_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SQLiteConfig":
        return cls(
            path=data.get("path", "data/bridge_indexer.db"),
            wal_mode=data.get("wal_mode", True),
            busy_timeout=int(data.get("busy_timeout", DEFAULT_SQLITE_BUSY_TIMEOUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BRIDGE_INDEXER_DB_PATH"):
            self.path = v


@dataclass
class DatabaseConfig:
    """[database] section."""
    type: str = "postgres"
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    sqlite: SQLiteConfig = field(default_factory=SQLiteConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        return cls(
            type=data.get("type", "postgres"),
            postgres=PostgresConfig.from_dict(data.get("postgres", {})),
            sqlite=SQLiteConfig.from_dict(data.get("sqlite", {})),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BRIDGE_INDEXER_DB_TYPE"):
            self.type = v.lower()
        self.postgres.apply_env()
        self.sqlite.apply_env()


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class IndexerConfig:
    """Complete indexer configuration."""
    indexer: IndexerSectionConfig = field(default_factory=IndexerSectionConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexerConfig":
        return cls(
            indexer=IndexerSectionConfig.from_dict(data.get("indexer", {})),
            database=DatabaseConfig.from_dict(data.get("database", {})),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "IndexerConfig":
        """
        Load from a TOML file, then apply env overrides.

        A missing file yields the defaults (still env-overridden).
        """
        path = Path(path)
        if not path.exists():
            logger.info(f"Config file {path} not found, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.indexer.apply_env()
        self.database.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ConfigurationError: on invalid config
        """
        if self.indexer.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.indexer.log_level}")
        if self.database.type not in DATABASE_TYPES:
            raise ConfigurationError(f"Unsupported database type: {self.database.type!r}")
        pg = self.database.postgres
        if pg.min_pool_size < 0 or pg.max_pool_size < 1 or pg.min_pool_size > pg.max_pool_size:
            raise ConfigurationError(
                f"Invalid pool size: min={pg.min_pool_size} max={pg.max_pool_size}"
            )
        if pg.command_timeout <= 0:
            raise ConfigurationError("command_timeout must be positive")
        if self.database.sqlite.path == ":memory:":
            raise ConfigurationError("SQLite storage needs a database file, not :memory:")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics; secrets omitted)."""
        return {
            "indexer": {"log_level": self.indexer.log_level},
            "database": {
                "type": self.database.type,
                "postgres": {
                    "host": self.database.postgres.host,
                    "port": self.database.postgres.port,
                    "user": self.database.postgres.user,
                    "name": self.database.postgres.name,
                    "min_pool_size": self.database.postgres.min_pool_size,
                    "max_pool_size": self.database.postgres.max_pool_size,
                    "command_timeout": self.database.postgres.command_timeout,
                },
                "sqlite": {
                    "path": self.database.sqlite.path,
                    "wal_mode": self.database.sqlite.wal_mode,
                    "busy_timeout": self.database.sqlite.busy_timeout,
                },
            },
        }


def load_config(path: Optional[str] = None) -> IndexerConfig:
    """
    Load indexer configuration.

    Resolution order:
        1. Explicit *path* argument
        2. BRIDGE_INDEXER_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("BRIDGE_INDEXER_CONFIG", "config.toml")

    return IndexerConfig.from_file(path)
