"""
Storage handle shared by every indexer component.

A ``StorageBackend`` owns the connection resource (a pool, or a database file)
and hands out one connection per logical operation through
``transaction()``. The unit commits when the ``async with`` body completes
and rolls back on any exception, including task cancellation, so an abandoned
unit never leaves partial state behind.

Backends speak the asyncpg calling convention: ``$1, $2...`` placeholders and
``execute`` / ``fetch`` / ``fetchrow`` / ``fetchval``. Driver exceptions are
translated into ``bridge_indexer.exceptions`` at the connection boundary so
callers can react to ``DuplicateKeyError`` at the statement that caused it.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from ..logger import get_logger

logger = get_logger(__name__)

# (column name, declared type, nullable)
ColumnInfo = Tuple[str, str, bool]


class StorageConnection(ABC):
    """A connection checked out for the duration of one unit of work."""

    @abstractmethod
    async def execute(self, query: str, *args: Any) -> Any:
        ...

    @abstractmethod
    async def fetch(self, query: str, *args: Any) -> List[Any]:
        ...

    @abstractmethod
    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]:
        ...

    async def fetchval(self, query: str, *args: Any) -> Any:
        row = await self.fetchrow(query, *args)
        if row is None:
            return None
        return row[0]


class StorageBackend(ABC):
    """Base class for the PostgreSQL and SQLite backends."""

    dialect: str = ""

    @abstractmethod
    def transaction(self, readonly: bool = False):
        """
        Async context manager yielding a ``StorageConnection`` inside a
        transaction. Read-only units never take write locks.
        """

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def table_names(self) -> List[str]:
        """Names of the tables currently present, sorted."""

    @abstractmethod
    async def table_columns(self, table: str) -> List[ColumnInfo]:
        """Column layout of *table* in declaration order."""

    @abstractmethod
    async def index_names(self) -> List[str]:
        """Names of the secondary indexes, sorted."""

    @abstractmethod
    def describe(self) -> str:
        """Connection target with credentials removed, for logs."""

    def migrations(self) -> Sequence[str]:
        from .schema import migrations_for
        return migrations_for(self.dialect)

    async def initialize(self) -> None:
        """
        Apply the structural migrations.

        Every statement is ``CREATE ... IF NOT EXISTS``, so running this any
        number of times leaves an already-correct schema untouched.
        """
        statements = self.migrations()
        async with self.transaction() as conn:
            for statement in statements:
                await conn.execute(statement)
        logger.info(f"Schema ready on {self.describe()} ({len(statements)} statements)")

    async def schema_snapshot(self) -> Dict[str, Any]:
        """Tables with their columns plus index names, for structural comparison."""
        tables = await self.table_names()
        snapshot: Dict[str, Any] = {
            "tables": {name: await self.table_columns(name) for name in tables},
            "indexes": await self.index_names(),
        }
        return snapshot

    @asynccontextmanager
    async def read(self) -> AsyncIterator[StorageConnection]:
        """Shorthand for a read-only unit."""
        async with self.transaction(readonly=True) as conn:
            yield conn

    async def __aenter__(self) -> "StorageBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
