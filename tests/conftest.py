"""
Shared fixtures for the bridge indexer test suite.

Every storage-backed test runs against a fresh SQLite file. When
BRIDGE_INDEXER_TEST_DATABASE_URL points at a scratch PostgreSQL database the
same tests also run there; the indexer tables are dropped before and after
each test.
"""

import os
import sys

import pytest
import pytest_asyncio

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from bridge_indexer.database import Database
from bridge_indexer.guid import SequentialGUIDFactory
from bridge_indexer.storage import INDEXER_TABLES, PostgresStorage, SQLiteStorage
from bridge_indexer.types import (
    ChainScope,
    DepositEvent,
    IndexedBlock,
    Token,
    WithdrawalEvent,
)

POSTGRES_URL = os.environ.get("BRIDGE_INDEXER_TEST_DATABASE_URL", "")


# ============================================================================
# Chain data helpers
# ============================================================================

def addr(n: int) -> str:
    """Deterministic 20 byte address, lower case."""
    return "0x" + f"{n:040x}"


def h(n: int) -> str:
    """Deterministic 32 byte hash, lower case."""
    return "0x" + f"{n:064x}"


L1_TOKEN = addr(0xE1)
L2_TOKEN = addr(0xE2)
ALICE = addr(0xA1)
BOB = addr(0xB0B)


# ============================================================================
# Storage
# ============================================================================

async def _drop_indexer_tables(storage):
    async with storage.transaction() as conn:
        await conn.execute(f"DROP TABLE IF EXISTS {', '.join(INDEXER_TABLES)} CASCADE")


@pytest_asyncio.fixture(params=["sqlite", "postgres"])
async def storage(request, tmp_path):
    """A freshly initialized storage backend."""
    if request.param == "sqlite":
        backend = await SQLiteStorage.create(tmp_path / "indexer.db")
        yield backend
        await backend.close()
        return

    if not POSTGRES_URL:
        pytest.skip("BRIDGE_INDEXER_TEST_DATABASE_URL not set")
    backend = await PostgresStorage.create(POSTGRES_URL, initialize=False)
    await _drop_indexer_tables(backend)
    await backend.initialize()
    yield backend
    await _drop_indexer_tables(backend)
    await backend.close()


@pytest.fixture
def guid_factory():
    return SequentialGUIDFactory(prefix="test")


@pytest_asyncio.fixture
async def db(storage, guid_factory):
    """Database facade with both bridge tokens registered."""
    database = Database(storage, guid_factory)
    await database.add_token(ChainScope.ORIGIN, L1_TOKEN, Token(name="Wrapped Ether", symbol="WETH", decimals=18))
    await database.add_token(ChainScope.DESTINATION, L2_TOKEN, Token(name="Wrapped Ether", symbol="WETH", decimals=18))
    return database


# ============================================================================
# Event factories
# ============================================================================

@pytest.fixture
def make_block():
    """Factory for IndexedBlock; hash and parent derive from *number* unless given."""
    def _make(number, *, timestamp=None, block_hash=None, deposits=(), withdrawals=(), salt=0):
        return IndexedBlock(
            hash=block_hash or h(0x10_0000 * (salt + 1) + number),
            parent_hash=h(0x10_0000 * (salt + 1) + number - 1) if number else h(0),
            number=number,
            timestamp=1_700_000_000 + number * 12 if timestamp is None else timestamp,
            deposits=list(deposits),
            withdrawals=list(withdrawals),
        )
    return _make


@pytest.fixture
def make_deposit():
    def _make(tx, *, sender=ALICE, recipient=BOB, amount=100, log_index=0, l1_token=L1_TOKEN, data=b""):
        return DepositEvent(
            from_address=sender,
            to_address=recipient,
            l1_token=l1_token,
            l2_token=L2_TOKEN,
            amount=amount,
            tx_hash=h(tx),
            log_index=log_index,
            data=data,
        )
    return _make


@pytest.fixture
def make_withdrawal():
    def _make(tx, *, sender=ALICE, recipient=BOB, amount=100, log_index=0, l2_token=L2_TOKEN, data=b""):
        return WithdrawalEvent(
            from_address=sender,
            to_address=recipient,
            l1_token=L1_TOKEN,
            l2_token=l2_token,
            amount=amount,
            tx_hash=h(tx),
            log_index=log_index,
            data=data,
        )
    return _make
