"""
Tests for the airdrop allocation lookup.
"""

import pytest

from conftest import ALICE, BOB

from bridge_indexer.exceptions import InvalidAddressError


async def _load_airdrop(storage, address: str, **amounts):
    columns = ["address"] + list(amounts)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    async with storage.transaction() as conn:
        await conn.execute(
            f"INSERT INTO airdrops ({', '.join(columns)}) VALUES ({placeholders})",
            address, *amounts.values(),
        )


@pytest.mark.asyncio
class TestAirdropLookup:

    async def test_found(self, db):
        await _load_airdrop(db.storage, ALICE, voter_amount="100", bonus_amount="5", total_amount="105")

        airdrop = await db.get_airdrop(ALICE)

        assert airdrop.address == ALICE
        assert airdrop.voter_amount == "100"
        assert airdrop.bonus_amount == "5"
        assert airdrop.total_amount == "105"
        assert airdrop.gitcoin_amount == "0"

    async def test_checksummed_input(self, db):
        await _load_airdrop(db.storage, ALICE, total_amount="1")
        checksummed = "0x" + ALICE[2:].upper()
        assert (await db.get_airdrop(checksummed)).total_amount == "1"

    async def test_absent(self, db):
        assert await db.get_airdrop(BOB) is None

    async def test_invalid_address(self, db):
        with pytest.raises(InvalidAddressError):
            await db.get_airdrop("0xnope")
