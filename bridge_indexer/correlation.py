"""
Withdrawal Correlation Engine

A withdrawal is observed twice: initiated in an L2 block and, later,
finalized in an L1 block. Both observations carry the L2 transaction hash,
and ``withdrawals.tx_hash`` is unique, so each observation is an upsert on
that key rather than a plain insert:

    L2 (initiation)    insert with l2_block_hash; on conflict keep every
                       data column and only fill in l2_block_hash if it is
                       still empty (first linkage wins)
    L1 (finalization)  insert with l1_block_hash; on conflict set
                       l1_block_hash and nothing else

Whatever the arrival order, and however often either phase is redelivered,
one row survives per transaction hash and it carries both block links once
both phases have been seen.

The upserts run on the caller's connection, inside the same transaction as
the block row they reference.
"""

from typing import List

from .logger import get_logger
from .storage import StorageConnection
from .types import ChainScope, WithdrawalEvent

logger = get_logger(__name__)

# Fields both phases report; log_index and data legitimately differ per chain.
CORRELATED_FIELDS = ("from_address", "to_address", "l1_token", "l2_token", "amount")

_UPSERT_INITIATED = """
INSERT INTO withdrawals
    (guid, from_address, to_address, l1_token, l2_token, amount, tx_hash, log_index, l2_block_hash, data)
VALUES
    ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
ON CONFLICT (tx_hash) DO UPDATE SET
    l2_block_hash = COALESCE(withdrawals.l2_block_hash, EXCLUDED.l2_block_hash)
"""

_UPSERT_FINALIZED = """
INSERT INTO withdrawals
    (guid, from_address, to_address, l1_token, l2_token, amount, tx_hash, log_index, l1_block_hash, data)
VALUES
    ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
ON CONFLICT (tx_hash) DO UPDATE SET
    l1_block_hash = EXCLUDED.l1_block_hash
"""

_SELECT_CORRELATED = """
SELECT from_address, to_address, l1_token, l2_token, amount
FROM withdrawals
WHERE tx_hash = $1
"""


class WithdrawalCorrelator:
    """Applies the two-phase merge rule for one withdrawal at a time."""

    async def upsert(
        self,
        conn: StorageConnection,
        scope: ChainScope,
        block_hash: str,
        withdrawal: WithdrawalEvent,
        guid: str,
    ) -> List[str]:
        """
        Merge *withdrawal*, observed in block *block_hash* of *scope*.

        *guid* is only used when this observation creates the row.

        Returns:
            Names of the correlated fields whose stored value differs from
            this observation. The stored values are kept; the difference is
            logged and left for the caller to act on.
        """
        statement = _UPSERT_FINALIZED if scope == ChainScope.ORIGIN else _UPSERT_INITIATED
        await conn.execute(
            statement,
            guid,
            withdrawal.from_address,
            withdrawal.to_address,
            withdrawal.l1_token,
            withdrawal.l2_token,
            str(withdrawal.amount),
            withdrawal.tx_hash,
            withdrawal.log_index,
            block_hash,
            withdrawal.data,
        )

        mismatched = await self._mismatched_fields(conn, withdrawal)
        if mismatched:
            logger.warning(
                f"Withdrawal {withdrawal.tx_hash} seen in {scope} block {block_hash} "
                f"disagrees with stored row on {', '.join(mismatched)}; keeping stored values"
            )
        return mismatched

    async def _mismatched_fields(self, conn: StorageConnection, withdrawal: WithdrawalEvent) -> List[str]:
        row = await conn.fetchrow(_SELECT_CORRELATED, withdrawal.tx_hash)
        observed = {
            "from_address": withdrawal.from_address,
            "to_address": withdrawal.to_address,
            "l1_token": withdrawal.l1_token,
            "l2_token": withdrawal.l2_token,
            "amount": str(withdrawal.amount),
        }
        return [name for name in CORRELATED_FIELDS if row[name] != observed[name]]
