"""
PostgreSQL storage backend.

Production backend built on an ``asyncpg`` pool. Each unit of work checks a
connection out of the pool, runs inside ``conn.transaction()`` and returns the
connection to the pool on every exit path.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional
from urllib.parse import urlsplit

import asyncpg

from ..constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_POOL_MAX_SIZE,
    DEFAULT_POOL_MIN_SIZE,
)
from ..exceptions import (
    ConnectivityError,
    ConstraintViolationError,
    DuplicateKeyError,
    IndexerException,
)
from ..logger import get_logger
from .base import ColumnInfo, StorageBackend, StorageConnection

logger = get_logger(__name__)

_CONNECTIVITY_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.PostgresConnectionError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
)


def translate_error(exc: BaseException) -> Optional[IndexerException]:
    """Map an asyncpg / socket error to the indexer taxonomy, or None."""
    if isinstance(exc, asyncpg.UniqueViolationError):
        return DuplicateKeyError(str(exc))
    if isinstance(exc, asyncpg.IntegrityConstraintViolationError):
        return ConstraintViolationError(str(exc))
    if isinstance(exc, _CONNECTIVITY_ERRORS):
        return ConnectivityError(str(exc) or type(exc).__name__)
    return None


def redact_dsn(dsn: str) -> str:
    """``postgresql://user@host:port/db`` without the password."""
    parts = urlsplit(dsn)
    host = parts.hostname or "localhost"
    if parts.port:
        host = f"{host}:{parts.port}"
    user = f"{parts.username}@" if parts.username else ""
    return f"{parts.scheme}://{user}{host}{parts.path}"


class PostgresConnection(StorageConnection):
    """Translating wrapper around an ``asyncpg.Connection``."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def execute(self, query: str, *args: Any) -> Any:
        try:
            return await self._conn.execute(query, *args)
        except asyncpg.PostgresError as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc

    async def fetch(self, query: str, *args: Any) -> List[Any]:
        try:
            return await self._conn.fetch(query, *args)
        except asyncpg.PostgresError as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]:
        try:
            return await self._conn.fetchrow(query, *args)
        except asyncpg.PostgresError as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc

    async def fetchval(self, query: str, *args: Any) -> Any:
        try:
            return await self._conn.fetchval(query, *args)
        except asyncpg.PostgresError as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc


class PostgresStorage(StorageBackend):
    """``StorageBackend`` over an ``asyncpg.Pool``."""

    dialect = "postgres"

    def __init__(self, pool: asyncpg.Pool, dsn: str):
        self._pool = pool
        self._dsn = dsn

    @classmethod
    async def create(
        cls,
        dsn: str,
        min_size: int = DEFAULT_POOL_MIN_SIZE,
        max_size: int = DEFAULT_POOL_MAX_SIZE,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        initialize: bool = True,
    ) -> "PostgresStorage":
        """Open the pool and, unless told otherwise, apply the schema."""
        try:
            pool = await asyncpg.create_pool(
                dsn=dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
            )
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise ConnectivityError(f"Cannot connect to {redact_dsn(dsn)}: {exc}") from exc

        self = cls(pool, dsn)
        logger.info(f"PostgreSQL pool opened: {self.describe()} (min={min_size}, max={max_size})")
        if initialize:
            try:
                await self.initialize()
            except BaseException:
                await pool.close()
                logger.info(f"PostgreSQL pool closed after failed schema setup: {self.describe()}")
                raise
        return self

    @asynccontextmanager
    async def transaction(self, readonly: bool = False) -> AsyncIterator[StorageConnection]:
        try:
            conn = await self._pool.acquire()
        except _CONNECTIVITY_ERRORS as exc:
            raise ConnectivityError(f"Cannot acquire connection to {self.describe()}: {exc}") from exc

        try:
            async with conn.transaction(readonly=readonly):
                yield PostgresConnection(conn)
        except IndexerException:
            raise
        except Exception as exc:
            err = translate_error(exc)
            if err is None:
                raise
            raise err from exc
        finally:
            await self._pool.release(conn)

    async def close(self) -> None:
        await self._pool.close()
        logger.info(f"PostgreSQL pool closed: {self.describe()}")

    async def table_names(self) -> List[str]:
        async with self.read() as conn:
            rows = await conn.fetch(
                """
                SELECT table_name FROM information_schema.tables
                WHERE table_schema = current_schema()
                ORDER BY table_name
                """
            )
        return [row["table_name"] for row in rows]

    async def table_columns(self, table: str) -> List[ColumnInfo]:
        async with self.read() as conn:
            rows = await conn.fetch(
                """
                SELECT column_name, data_type, is_nullable
                FROM information_schema.columns
                WHERE table_schema = current_schema() AND table_name = $1
                ORDER BY ordinal_position
                """,
                table,
            )
        return [(row["column_name"], row["data_type"], row["is_nullable"] == "YES") for row in rows]

    async def index_names(self) -> List[str]:
        async with self.read() as conn:
            rows = await conn.fetch(
                """
                SELECT indexname FROM pg_indexes
                WHERE schemaname = current_schema()
                ORDER BY indexname
                """
            )
        return [row["indexname"] for row in rows]

    def describe(self) -> str:
        return redact_dsn(self._dsn)
