"""
Airdrop allocation lookup.

The ``airdrops`` table is loaded out of band; the indexer only reads it.
Addresses are stored lower-cased.
"""

from typing import Optional

from .exceptions import MalformedRowError
from .storage import StorageBackend
from .types import Airdrop, normalize_address

_SELECT_AIRDROP = """
SELECT
    address, voter_amount, multisig_signer_amount, gitcoin_amount,
    active_bridged_amount, op_user_amount, op_repeat_user_amount,
    bonus_amount, total_amount
FROM airdrops
WHERE address = $1
"""


class AirdropLookup:

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    async def get_airdrop(self, address: str) -> Optional[Airdrop]:
        address = normalize_address(address).lower()
        async with self._storage.read() as conn:
            row = await conn.fetchrow(_SELECT_AIRDROP, address)
        if row is None:
            return None
        try:
            return Airdrop(
                address=row["address"],
                voter_amount=str(row["voter_amount"]),
                multisig_signer_amount=str(row["multisig_signer_amount"]),
                gitcoin_amount=str(row["gitcoin_amount"]),
                active_bridged_amount=str(row["active_bridged_amount"]),
                op_user_amount=str(row["op_user_amount"]),
                op_repeat_user_amount=str(row["op_repeat_user_amount"]),
                bonus_amount=str(row["bonus_amount"]),
                total_amount=str(row["total_amount"]),
            )
        except (KeyError, IndexError) as exc:
            raise MalformedRowError(f"Cannot decode airdrop row: {exc}") from exc
