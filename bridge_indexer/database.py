"""
Bridge Indexer Database

``Database`` owns one storage handle and exposes the producer-facing and
reader-facing operations of the indexer on top of it.

Usage:
    from bridge_indexer.config import load_config
    from bridge_indexer.database import Database

    db = await Database.create(load_config())
    await db.ingest_block(ChainScope.ORIGIN, block)
    page = await db.list_deposits(address, PaginationParam(limit=20))
    await db.close()

Nothing here is global: every component receives the handle at construction,
and callers are free to build a ``Database`` around a storage backend they
opened themselves (tests do).
"""

from typing import Optional, Sequence

from .airdrops import AirdropLookup
from .config import IndexerConfig
from .correlation import WithdrawalCorrelator
from .guid import GUIDFactory, uuid4_guid
from .ingestion import IngestionEngine
from .logger import get_logger, set_log_level
from .queries import QueryEngine
from .storage import StorageBackend, open_storage
from .tokens import TokenRegistry
from .types import (
    Airdrop,
    BlockLocator,
    ChainScope,
    DepositEvent,
    IndexedBlock,
    PaginatedDeposits,
    PaginatedWithdrawals,
    PaginationParam,
    Token,
    WithdrawalEvent,
    WithdrawalView,
)

logger = get_logger(__name__)


class Database:
    """Facade over the token registry, ingestion and query engines."""

    def __init__(self, storage: StorageBackend, guid_factory: GUIDFactory = uuid4_guid):
        self.storage = storage
        self.tokens = TokenRegistry(storage)
        self.ingestion = IngestionEngine(storage, guid_factory, WithdrawalCorrelator())
        self.queries = QueryEngine(storage)
        self.airdrops = AirdropLookup(storage)

    @classmethod
    async def create(cls, config: IndexerConfig, guid_factory: GUIDFactory = uuid4_guid) -> "Database":
        """Open the configured backend and make sure the schema is in place."""
        config.validate()
        set_log_level(config.indexer.log_level)
        storage = await open_storage(config.database)
        return cls(storage, guid_factory)

    @property
    def config(self) -> str:
        """Connection target, without credentials."""
        return self.storage.describe()

    async def initialize(self) -> None:
        await self.storage.initialize()

    async def close(self) -> None:
        await self.storage.close()

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -- Producer side -------------------------------------------------

    async def add_token(self, scope: ChainScope, address: str, token: Token) -> None:
        await self.tokens.add_token(scope, address, token)

    async def ingest_block(
        self,
        scope: ChainScope,
        block: IndexedBlock,
        deposits: Optional[Sequence[DepositEvent]] = None,
        withdrawals: Optional[Sequence[WithdrawalEvent]] = None,
    ) -> None:
        await self.ingestion.ingest_block(scope, block, deposits, withdrawals)

    # -- Reader side ---------------------------------------------------

    async def get_token(self, scope: ChainScope, address: str) -> Optional[Token]:
        return await self.tokens.get_token(scope, address)

    async def list_deposits(self, address: str, page: Optional[PaginationParam] = None) -> PaginatedDeposits:
        return await self.queries.list_deposits(address, page)

    async def list_withdrawals(self, address: str, page: Optional[PaginationParam] = None) -> PaginatedWithdrawals:
        return await self.queries.list_withdrawals(address, page)

    async def get_withdrawal_status(self, tx_hash: str) -> Optional[WithdrawalView]:
        return await self.queries.get_withdrawal_status(tx_hash)

    async def get_highest_block(self, scope: ChainScope) -> Optional[BlockLocator]:
        return await self.queries.get_highest_block(scope)

    async def get_block_by_hash(self, scope: ChainScope, block_hash: str) -> Optional[IndexedBlock]:
        return await self.queries.get_block_by_hash(scope, block_hash)

    async def get_airdrop(self, address: str) -> Optional[Airdrop]:
        return await self.airdrops.get_airdrop(address)
