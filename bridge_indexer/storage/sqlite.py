"""
SQLite storage backend for local development and tests.

Each unit of work opens its own ``aiosqlite`` connection to the database file,
so concurrent units get the same isolation SQLite gives separate processes:
writers serialize on ``BEGIN IMMEDIATE``, readers see committed data only.
A file path is required; ``:memory:`` databases are private to one
connection.
"""

import re
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Union

import aiosqlite

from ..constants import DEFAULT_SQLITE_BUSY_TIMEOUT
from ..exceptions import (
    ConfigurationError,
    ConnectivityError,
    ConstraintViolationError,
    DuplicateKeyError,
    IndexerException,
)
from ..logger import get_logger
from .base import ColumnInfo, StorageBackend, StorageConnection

logger = get_logger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$(\d+)")

_UNIQUE_ERRORS = ("SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY")
_CONNECTIVITY_PREFIXES = ("SQLITE_BUSY", "SQLITE_LOCKED", "SQLITE_CANTOPEN", "SQLITE_IOERR")


def to_sqlite_placeholders(query: str) -> str:
    """Rewrite asyncpg-style ``$1`` placeholders to SQLite ``?1``."""
    return _PLACEHOLDER_RE.sub(r"?\1", query)


def translate_error(exc: BaseException) -> Optional[IndexerException]:
    """Map a ``sqlite3`` error to the indexer taxonomy, or None."""
    name = getattr(exc, "sqlite_errorname", None) or ""
    if isinstance(exc, sqlite3.IntegrityError):
        if name in _UNIQUE_ERRORS:
            return DuplicateKeyError(str(exc))
        return ConstraintViolationError(str(exc))
    if isinstance(exc, sqlite3.OperationalError) and name.startswith(_CONNECTIVITY_PREFIXES):
        return ConnectivityError(str(exc))
    return None


class SQLiteConnection(StorageConnection):
    """asyncpg-flavoured facade over an ``aiosqlite.Connection``."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def execute(self, query: str, *args: Any) -> int:
        try:
            async with self._conn.execute(to_sqlite_placeholders(query), args) as cursor:
                return cursor.rowcount
        except sqlite3.Error as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc

    async def fetch(self, query: str, *args: Any) -> List[Any]:
        try:
            async with self._conn.execute(to_sqlite_placeholders(query), args) as cursor:
                return list(await cursor.fetchall())
        except sqlite3.Error as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]:
        try:
            async with self._conn.execute(to_sqlite_placeholders(query), args) as cursor:
                return await cursor.fetchone()
        except sqlite3.Error as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc


class SQLiteStorage(StorageBackend):
    """``StorageBackend`` over a SQLite database file."""

    dialect = "sqlite"

    def __init__(self, path: Union[str, Path], busy_timeout: int = DEFAULT_SQLITE_BUSY_TIMEOUT):
        if str(path) == ":memory:":
            raise ConfigurationError("SQLite storage needs a database file, not :memory:")
        self.path = Path(path)
        self.busy_timeout = busy_timeout

    @classmethod
    async def create(
        cls,
        path: Union[str, Path],
        wal_mode: bool = True,
        busy_timeout: int = DEFAULT_SQLITE_BUSY_TIMEOUT,
        initialize: bool = True,
    ) -> "SQLiteStorage":
        """Create the database file if needed and, unless told otherwise, apply the schema."""
        self = cls(path, busy_timeout=busy_timeout)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConnectivityError(f"Cannot create {self.path.parent}: {exc}") from exc

        if wal_mode:
            # journal mode is persistent in the file, set it outside any transaction
            conn = await self._connect()
            try:
                await conn.execute("PRAGMA journal_mode=WAL")
            finally:
                await conn.close()

        logger.info(f"SQLite database opened: {self.path}")
        if initialize:
            await self.initialize()
        return self

    async def _connect(self) -> aiosqlite.Connection:
        try:
            conn = await aiosqlite.connect(
                str(self.path),
                timeout=self.busy_timeout / 1000,
                isolation_level=None,
            )
        except (sqlite3.Error, OSError) as exc:
            raise ConnectivityError(f"Cannot open {self.path}: {exc}") from exc
        conn.row_factory = aiosqlite.Row
        return conn

    @asynccontextmanager
    async def transaction(self, readonly: bool = False) -> AsyncIterator[StorageConnection]:
        conn = await self._connect()
        try:
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout)}")
            await conn.execute("BEGIN" if readonly else "BEGIN IMMEDIATE")
            try:
                yield SQLiteConnection(conn)
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("ROLLBACK" if readonly else "COMMIT")
        except IndexerException:
            raise
        except sqlite3.Error as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc
        finally:
            await conn.close()

    async def close(self) -> None:
        # connections are per unit of work, nothing is held between units
        logger.info(f"SQLite database closed: {self.path}")

    async def table_names(self) -> List[str]:
        async with self.read() as conn:
            rows = await conn.fetch(
                """
                SELECT name FROM sqlite_master
                WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
                ORDER BY name
                """
            )
        return [row["name"] for row in rows]

    async def table_columns(self, table: str) -> List[ColumnInfo]:
        async with self.read() as conn:
            rows = await conn.fetch(
                'SELECT name, type, "notnull" FROM pragma_table_info($1) ORDER BY cid',
                table,
            )
        return [(row["name"], row["type"], not row["notnull"]) for row in rows]

    async def index_names(self) -> List[str]:
        async with self.read() as conn:
            rows = await conn.fetch(
                """
                SELECT name FROM sqlite_master
                WHERE type = 'index' AND name NOT LIKE 'sqlite_autoindex_%'
                ORDER BY name
                """
            )
        return [row["name"] for row in rows]

    def describe(self) -> str:
        return f"sqlite://{self.path}"
