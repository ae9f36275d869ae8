"""
Bridge Indexer Storage

Provides:
  - base: StorageBackend / StorageConnection, the injected storage handle
  - postgres: asyncpg pool backend (production)
  - sqlite: aiosqlite file backend (local development, tests)
  - schema: idempotent migration lists per dialect
"""

from ..config import DatabaseConfig
from ..exceptions import ConfigurationError
from .base import StorageBackend, StorageConnection
from .postgres import PostgresStorage
from .schema import INDEXER_TABLES, migrations_for
from .sqlite import SQLiteStorage


async def open_storage(config: DatabaseConfig, initialize: bool = True) -> StorageBackend:
    """Open the backend selected by ``config.type``."""
    if config.type == "postgres":
        pg = config.postgres
        return await PostgresStorage.create(
            pg.dsn,
            min_size=pg.min_pool_size,
            max_size=pg.max_pool_size,
            command_timeout=pg.command_timeout,
            initialize=initialize,
        )
    if config.type == "sqlite":
        return await SQLiteStorage.create(
            config.sqlite.path,
            wal_mode=config.sqlite.wal_mode,
            busy_timeout=config.sqlite.busy_timeout,
            initialize=initialize,
        )
    raise ConfigurationError(f"Unsupported database type: {config.type!r}")


__all__ = [
    "INDEXER_TABLES",
    "PostgresStorage",
    "SQLiteStorage",
    "StorageBackend",
    "StorageConnection",
    "migrations_for",
    "open_storage",
]
