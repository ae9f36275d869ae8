"""
Query & Pagination Engine

Read side of the indexer. Every call runs in its own read-only unit and
never writes.

Listings join each event to its block (number, timestamp) and to the token
metadata of the chain the listing is keyed on, filter by the sender address
and page with LIMIT/OFFSET. The total is a second COUNT over the same join
and filter in a separate read-only unit; if blocks are written between the
two, page and total may disagree by those rows.
"""

from typing import Optional

from .exceptions import InvalidHashError, MalformedRowError
from .logger import get_logger
from .storage import StorageBackend
from .tokens import token_from_row
from .types import (
    BlockLocator,
    ChainScope,
    DepositView,
    IndexedBlock,
    PaginatedDeposits,
    PaginatedWithdrawals,
    PaginationParam,
    WithdrawalView,
    normalize_address,
    normalize_hash,
)

logger = get_logger(__name__)

# ── Deposits ────────────────────────────────────────────────────────

_DEPOSITS_FROM = """
FROM deposits
    INNER JOIN l1_blocks ON deposits.l1_block_hash = l1_blocks.hash
    INNER JOIN l1_tokens ON deposits.l1_token = l1_tokens.address
WHERE deposits.from_address = $1
"""

_SELECT_DEPOSITS = f"""
SELECT
    deposits.guid, deposits.from_address, deposits.to_address,
    deposits.amount, deposits.tx_hash, deposits.log_index, deposits.data,
    deposits.l1_token, deposits.l2_token,
    l1_tokens.name, l1_tokens.symbol, l1_tokens.decimals,
    l1_blocks.number AS block_number, l1_blocks.timestamp AS block_timestamp
{_DEPOSITS_FROM}
ORDER BY l1_blocks.timestamp, l1_blocks.number, deposits.log_index, deposits.guid
LIMIT $2 OFFSET $3
"""

_COUNT_DEPOSITS = f"SELECT count(*) {_DEPOSITS_FROM}"

# ── Withdrawals ─────────────────────────────────────────────────────

_WITHDRAWALS_FROM = """
FROM withdrawals
    INNER JOIN l2_blocks ON withdrawals.l2_block_hash = l2_blocks.hash
    INNER JOIN l2_tokens ON withdrawals.l2_token = l2_tokens.address
    LEFT JOIN l1_blocks ON withdrawals.l1_block_hash = l1_blocks.hash
WHERE withdrawals.from_address = $1
"""

_WITHDRAWAL_COLUMNS = """
    withdrawals.guid, withdrawals.from_address, withdrawals.to_address,
    withdrawals.amount, withdrawals.tx_hash, withdrawals.log_index, withdrawals.data,
    withdrawals.l1_token, withdrawals.l2_token,
    withdrawals.l1_block_hash, withdrawals.l2_block_hash,
    l2_tokens.name, l2_tokens.symbol, l2_tokens.decimals,
    l1_blocks.number AS l1_block_number, l1_blocks.timestamp AS l1_block_timestamp,
    l2_blocks.number AS l2_block_number, l2_blocks.timestamp AS l2_block_timestamp
"""

_SELECT_WITHDRAWALS = f"""
SELECT {_WITHDRAWAL_COLUMNS}
{_WITHDRAWALS_FROM}
ORDER BY l2_blocks.timestamp, l2_blocks.number, withdrawals.log_index, withdrawals.guid
LIMIT $2 OFFSET $3
"""

_COUNT_WITHDRAWALS = f"SELECT count(*) {_WITHDRAWALS_FROM}"

# Both block links are required: an initiated-only withdrawal has no status yet.
_SELECT_WITHDRAWAL_STATUS = f"""
SELECT {_WITHDRAWAL_COLUMNS}
FROM withdrawals
    INNER JOIN l1_blocks ON withdrawals.l1_block_hash = l1_blocks.hash
    INNER JOIN l2_blocks ON withdrawals.l2_block_hash = l2_blocks.hash
    INNER JOIN l2_tokens ON withdrawals.l2_token = l2_tokens.address
WHERE withdrawals.tx_hash = $1
"""


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)


def deposit_from_row(row) -> DepositView:
    try:
        return DepositView(
            guid=row["guid"],
            from_address=row["from_address"],
            to_address=row["to_address"],
            amount=int(row["amount"]),
            tx_hash=row["tx_hash"],
            log_index=int(row["log_index"]),
            data=bytes(row["data"]),
            l1_token=token_from_row(row, address=row["l1_token"]),
            l2_token=row["l2_token"],
            block_number=int(row["block_number"]),
            block_timestamp=int(row["block_timestamp"]),
        )
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise MalformedRowError(f"Cannot decode deposit row: {exc}") from exc


def withdrawal_from_row(row) -> WithdrawalView:
    try:
        return WithdrawalView(
            guid=row["guid"],
            from_address=row["from_address"],
            to_address=row["to_address"],
            amount=int(row["amount"]),
            tx_hash=row["tx_hash"],
            log_index=int(row["log_index"]),
            data=bytes(row["data"]),
            l1_token=row["l1_token"],
            l2_token=token_from_row(row, address=row["l2_token"]),
            l2_block_hash=row["l2_block_hash"],
            l2_block_number=int(row["l2_block_number"]),
            l2_block_timestamp=int(row["l2_block_timestamp"]),
            l1_block_hash=row["l1_block_hash"],
            l1_block_number=_optional_int(row["l1_block_number"]),
            l1_block_timestamp=_optional_int(row["l1_block_timestamp"]),
        )
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise MalformedRowError(f"Cannot decode withdrawal row: {exc}") from exc


class QueryEngine:
    """Address-scoped listings, status lookups and block lookups."""

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    async def list_deposits(self, address: str, page: Optional[PaginationParam] = None) -> PaginatedDeposits:
        """Deposits sent by *address*, oldest L1 block first."""
        address = normalize_address(address)
        page = page or PaginationParam()

        async with self._storage.read() as conn:
            rows = await conn.fetch(_SELECT_DEPOSITS, address, page.limit, page.offset)
        items = [deposit_from_row(row) for row in rows]

        async with self._storage.read() as conn:
            total = await conn.fetchval(_COUNT_DEPOSITS, address)

        result_page = PaginationParam(limit=page.limit, offset=page.offset, total=int(total))
        return PaginatedDeposits(pagination=result_page, items=items)

    async def list_withdrawals(self, address: str, page: Optional[PaginationParam] = None) -> PaginatedWithdrawals:
        """Withdrawals sent by *address*, oldest L2 block first."""
        address = normalize_address(address)
        page = page or PaginationParam()

        async with self._storage.read() as conn:
            rows = await conn.fetch(_SELECT_WITHDRAWALS, address, page.limit, page.offset)
        items = [withdrawal_from_row(row) for row in rows]

        async with self._storage.read() as conn:
            total = await conn.fetchval(_COUNT_WITHDRAWALS, address)

        result_page = PaginationParam(limit=page.limit, offset=page.offset, total=int(total))
        return PaginatedWithdrawals(pagination=result_page, items=items)

    async def get_withdrawal_status(self, tx_hash: str) -> Optional[WithdrawalView]:
        """
        Finalization status of the withdrawal initiated by *tx_hash*.

        None until both the L2 initiation and the L1 finalization are indexed.
        """
        tx_hash = normalize_hash(tx_hash)
        async with self._storage.read() as conn:
            row = await conn.fetchrow(_SELECT_WITHDRAWAL_STATUS, tx_hash)
        if row is None:
            return None
        return withdrawal_from_row(row)

    async def get_highest_block(self, scope: ChainScope) -> Optional[BlockLocator]:
        """Locator of the highest indexed block on *scope*, used to resume scanning."""
        scope = ChainScope(scope)
        query = f"SELECT number, hash FROM {scope.table_prefix}_blocks ORDER BY number DESC LIMIT 1"
        async with self._storage.read() as conn:
            row = await conn.fetchrow(query)
        if row is None:
            return None
        try:
            return BlockLocator(number=int(row["number"]), hash=row["hash"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise MalformedRowError(f"Cannot decode {scope} block locator: {exc}") from exc

    async def get_block_by_hash(self, scope: ChainScope, block_hash: str) -> Optional[IndexedBlock]:
        """The indexed block header for *block_hash*; events are not loaded."""
        scope = ChainScope(scope)
        block_hash = normalize_hash(block_hash)
        query = f"""
            SELECT hash, parent_hash, number, timestamp
            FROM {scope.table_prefix}_blocks
            WHERE hash = $1
        """
        async with self._storage.read() as conn:
            row = await conn.fetchrow(query, block_hash)
        if row is None:
            return None
        try:
            return IndexedBlock(
                hash=row["hash"],
                parent_hash=row["parent_hash"],
                number=int(row["number"]),
                timestamp=int(row["timestamp"]),
            )
        except (KeyError, IndexError, TypeError, ValueError, InvalidHashError) as exc:
            raise MalformedRowError(f"Cannot decode {scope} block {block_hash}: {exc}") from exc
