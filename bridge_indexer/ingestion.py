"""
Transactional Ingestion Engine

Persists one scanned block together with every bridge event it contains as a
single unit of work:

    1. insert the block row (a known hash aborts with DuplicateBlockError)
    2. insert each deposit (L1 blocks only) with a freshly minted guid
    3. merge each withdrawal through the correlation engine

Any failure rolls the whole unit back, so a block is never visible without
all of its events and no event is ever visible before its block. Nothing is
retried here; the producer decides whether to resubmit the block.
"""

from typing import Optional, Sequence

from .correlation import WithdrawalCorrelator
from .exceptions import DuplicateBlockError, DuplicateKeyError, IndexerException
from .guid import GUIDFactory, uuid4_guid
from .logger import get_logger
from .storage import StorageBackend
from .types import ChainScope, DepositEvent, IndexedBlock, WithdrawalEvent

logger = get_logger(__name__)

_INSERT_DEPOSIT = """
INSERT INTO deposits
    (guid, from_address, to_address, l1_token, l2_token, amount, tx_hash, log_index, l1_block_hash, data)
VALUES
    ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
"""


def _insert_block_statement(scope: ChainScope) -> str:
    return f"""
    INSERT INTO {scope.table_prefix}_blocks
        (hash, parent_hash, number, timestamp)
    VALUES
        ($1, $2, $3, $4)
    """


class IngestionEngine:
    """
    Writes indexed blocks for both chains.

    Args:
        storage: Storage handle shared with the rest of the indexer.
        guid_factory: Mints deposit and withdrawal row identifiers.
        correlator: Withdrawal merge rule; one is created if omitted.
    """

    def __init__(
        self,
        storage: StorageBackend,
        guid_factory: GUIDFactory = uuid4_guid,
        correlator: Optional[WithdrawalCorrelator] = None,
    ):
        self._storage = storage
        self._new_guid = guid_factory
        self._correlator = correlator or WithdrawalCorrelator()

    async def ingest_block(
        self,
        scope: ChainScope,
        block: IndexedBlock,
        deposits: Optional[Sequence[DepositEvent]] = None,
        withdrawals: Optional[Sequence[WithdrawalEvent]] = None,
    ) -> None:
        """
        Atomically persist *block* and its events on *scope*.

        Events default to ``block.deposits`` / ``block.withdrawals``; explicit
        sequences take their place.

        Raises:
            ValueError: deposits were supplied for an L2 block.
            DuplicateBlockError: the block hash is already indexed on *scope*.
            IndexerException: any storage failure; nothing was persisted.
        """
        scope = ChainScope(scope)
        deposits = list(block.deposits if deposits is None else deposits)
        withdrawals = list(block.withdrawals if withdrawals is None else withdrawals)

        if deposits and scope != ChainScope.ORIGIN:
            raise ValueError(f"{scope} block {block.hash} cannot carry deposits")

        try:
            async with self._storage.transaction() as conn:
                try:
                    await conn.execute(
                        _insert_block_statement(scope),
                        block.hash,
                        block.parent_hash,
                        block.number,
                        block.timestamp,
                    )
                except DuplicateKeyError as exc:
                    raise DuplicateBlockError(scope, block.hash) from exc

                for deposit in deposits:
                    guid = self._new_guid()
                    await conn.execute(
                        _INSERT_DEPOSIT,
                        guid,
                        deposit.from_address,
                        deposit.to_address,
                        deposit.l1_token,
                        deposit.l2_token,
                        str(deposit.amount),
                        deposit.tx_hash,
                        deposit.log_index,
                        block.hash,
                        deposit.data,
                    )
                    logger.debug(f"Deposit {deposit.tx_hash}:{deposit.log_index} -> {guid}")

                for withdrawal in withdrawals:
                    await self._correlator.upsert(conn, scope, block.hash, withdrawal, self._new_guid())
                    logger.debug(f"Withdrawal {withdrawal.tx_hash} merged from {scope}")
        except IndexerException as exc:
            logger.error(f"Rolled back {scope} block {block.number} {block.hash}: {exc}")
            raise

        logger.info(
            f"Indexed {scope} block {block.number} {block.hash} "
            f"({len(deposits)} deposits, {len(withdrawals)} withdrawals)"
        )
