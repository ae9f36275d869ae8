"""
Tests for the read side: listings, pagination totals and enrichment.
"""

import pytest

from conftest import ALICE, BOB, L1_TOKEN, L2_TOKEN, addr, h

from bridge_indexer.exceptions import InvalidAddressError, InvalidHashError, MalformedRowError
from bridge_indexer.types import (
    ChainScope,
    PaginationParam,
    Token,
    WithdrawalState,
    normalize_address,
)


async def _ingest_deposits(db, make_block, make_deposit, count, sender=ALICE, first_tx=1):
    """One L1 block per deposit, numbered from 1."""
    for i in range(count):
        tx = first_tx + i
        await db.ingest_block(
            ChainScope.ORIGIN,
            make_block(tx, deposits=[make_deposit(tx, sender=sender, amount=tx * 10)]),
        )


# ═══════════════════════════════════════════════════════════════════════
#  1. DEPOSITS
# ═══════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
class TestListDeposits:

    async def test_round_trip(self, db, make_block, make_deposit):
        deposit = make_deposit(1, amount=10**30, log_index=4, data=b"\xca\xfe")
        block = make_block(12, deposits=[deposit])
        await db.ingest_block(ChainScope.ORIGIN, block)

        page = await db.list_deposits(ALICE)

        assert page.total == 1
        [view] = page.items
        assert view.guid == "test-000001"
        assert view.from_address == normalize_address(ALICE)
        assert view.to_address == normalize_address(BOB)
        assert view.amount == 10**30
        assert view.tx_hash == h(1)
        assert view.log_index == 4
        assert view.data == b"\xca\xfe"
        assert view.l2_token == normalize_address(L2_TOKEN)
        assert view.l1_token == Token("Wrapped Ether", "WETH", 18, normalize_address(L1_TOKEN))
        assert view.block_number == block.number
        assert view.block_timestamp == block.timestamp

    async def test_empty(self, db):
        page = await db.list_deposits(BOB)
        assert page.total == 0
        assert page.items == []

    async def test_filters_by_sender(self, db, make_block, make_deposit):
        await _ingest_deposits(db, make_block, make_deposit, 3, sender=ALICE)
        await _ingest_deposits(db, make_block, make_deposit, 2, sender=BOB, first_tx=10)

        alice = await db.list_deposits(ALICE)
        bob = await db.list_deposits(BOB)
        assert alice.total == 3
        assert bob.total == 2
        assert {d.from_address for d in bob.items} == {normalize_address(BOB)}

    async def test_address_case_insensitive(self, db, make_block, make_deposit):
        await _ingest_deposits(db, make_block, make_deposit, 1)
        page = await db.list_deposits(ALICE.upper().replace("0X", "0x"))
        assert page.total == 1

    async def test_ordered_by_block_timestamp(self, db, make_block, make_deposit):
        # later block number, earlier timestamp
        await db.ingest_block(ChainScope.ORIGIN, make_block(2, timestamp=100, deposits=[make_deposit(2)]))
        await db.ingest_block(ChainScope.ORIGIN, make_block(1, timestamp=200, deposits=[make_deposit(1)]))

        page = await db.list_deposits(ALICE)
        assert [d.block_number for d in page.items] == [2, 1]

    async def test_ties_broken_by_log_index(self, db, make_block, make_deposit):
        block = make_block(1, deposits=[make_deposit(1, log_index=9), make_deposit(2, log_index=3)])
        await db.ingest_block(ChainScope.ORIGIN, block)

        page = await db.list_deposits(ALICE)
        assert [d.log_index for d in page.items] == [3, 9]

    async def test_unregistered_token_excluded_from_page_and_total(self, db, make_block, make_deposit):
        unknown = addr(0xBAD)
        await db.ingest_block(ChainScope.ORIGIN, make_block(1, deposits=[make_deposit(1, l1_token=unknown)]))
        await db.ingest_block(ChainScope.ORIGIN, make_block(2, deposits=[make_deposit(2)]))

        page = await db.list_deposits(ALICE)
        assert page.total == 1
        assert len(page.items) == 1

    async def test_invalid_address(self, db):
        with pytest.raises(InvalidAddressError):
            await db.list_deposits("alice")


# ═══════════════════════════════════════════════════════════════════════
#  2. PAGINATION
# ═══════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
class TestPagination:

    @pytest.mark.parametrize("limit", [1, 2, 3, 7])
    async def test_total_independent_of_limit(self, db, make_block, make_deposit, limit):
        await _ingest_deposits(db, make_block, make_deposit, 7)

        page = await db.list_deposits(ALICE, PaginationParam(limit=limit))
        assert page.total == 7
        assert len(page.items) == limit
        assert page.pagination.limit == limit
        assert page.pagination.offset == 0

    @pytest.mark.parametrize("limit", [1, 2, 3, 7, 10])
    async def test_pages_concatenate_to_full_set(self, db, make_block, make_deposit, limit):
        await _ingest_deposits(db, make_block, make_deposit, 7)

        seen = []
        page_param = PaginationParam(limit=limit)
        while True:
            page = await db.list_deposits(ALICE, page_param)
            if not page.items:
                break
            seen.extend(page.items)
            page_param = page_param.next_page()

        assert [d.tx_hash for d in seen] == [h(n) for n in range(1, 8)]
        assert len({d.guid for d in seen}) == 7

    async def test_offset_past_end(self, db, make_block, make_deposit):
        await _ingest_deposits(db, make_block, make_deposit, 2)
        page = await db.list_deposits(ALICE, PaginationParam(limit=5, offset=10))
        assert page.items == []
        assert page.total == 2

    async def test_zero_limit_still_counts(self, db, make_block, make_deposit):
        await _ingest_deposits(db, make_block, make_deposit, 3)
        page = await db.list_deposits(ALICE, PaginationParam(limit=0))
        assert page.items == []
        assert page.total == 3

    async def test_default_page(self, db, make_block, make_deposit):
        await _ingest_deposits(db, make_block, make_deposit, 12)
        page = await db.list_deposits(ALICE)
        assert len(page.items) == 10
        assert page.total == 12
        assert page.pagination.to_dict() == {"limit": 10, "offset": 0, "total": 12}


# ═══════════════════════════════════════════════════════════════════════
#  3. WITHDRAWALS
# ═══════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
class TestListWithdrawals:

    async def test_initiated_and_finalized(self, db, make_block, make_withdrawal):
        first, second = make_withdrawal(1, amount=5), make_withdrawal(2, amount=6)
        await db.ingest_block(ChainScope.DESTINATION, make_block(1, withdrawals=[first]))
        await db.ingest_block(ChainScope.DESTINATION, make_block(2, withdrawals=[second]))
        await db.ingest_block(ChainScope.ORIGIN, make_block(30, withdrawals=[first]))

        page = await db.list_withdrawals(ALICE)

        assert page.total == 2
        assert [w.tx_hash for w in page.items] == [h(1), h(2)]
        assert [w.state for w in page.items] == [WithdrawalState.FINALIZED, WithdrawalState.INITIATED]
        assert page.items[0].l1_block_number == 30
        assert page.items[1].l1_block_number is None
        assert page.items[0].l2_token.address == normalize_address(L2_TOKEN)
        assert page.items[0].l1_token == normalize_address(L1_TOKEN)

    async def test_finalization_only_not_listed(self, db, make_block, make_withdrawal):
        await db.ingest_block(ChainScope.ORIGIN, make_block(1, withdrawals=[make_withdrawal(1)]))
        page = await db.list_withdrawals(ALICE)
        assert page.total == 0
        assert page.items == []

    async def test_paging(self, db, make_block, make_withdrawal):
        for n in range(1, 6):
            await db.ingest_block(ChainScope.DESTINATION, make_block(n, withdrawals=[make_withdrawal(n)]))

        page = await db.list_withdrawals(ALICE, PaginationParam(limit=2, offset=2))
        assert page.total == 5
        assert [w.l2_block_number for w in page.items] == [3, 4]

    async def test_status_unknown_hash(self, db):
        assert await db.get_withdrawal_status(h(0x999)) is None

    async def test_status_invalid_hash(self, db):
        with pytest.raises(InvalidHashError):
            await db.get_withdrawal_status("0xabc")


# ═══════════════════════════════════════════════════════════════════════
#  4. ORDERING TIES
# ═══════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
class TestOrderingTies:

    async def test_same_block_and_log_index_pages_cleanly(self, db, make_block, make_withdrawal):
        withdrawals = [make_withdrawal(n, log_index=0) for n in (1, 2, 3)]
        await db.ingest_block(ChainScope.DESTINATION, make_block(7, withdrawals=withdrawals))

        seen = []
        for offset in range(3):
            page = await db.list_withdrawals(ALICE, PaginationParam(limit=1, offset=offset))
            seen.extend(w.tx_hash for w in page.items)

        assert seen == [h(1), h(2), h(3)]

    async def test_deposit_ties_follow_guid(self, db, make_block, make_deposit):
        deposits = [make_deposit(n, log_index=0) for n in (1, 2)]
        await db.ingest_block(ChainScope.ORIGIN, make_block(3, deposits=deposits))

        first = await db.list_deposits(ALICE, PaginationParam(limit=1, offset=0))
        second = await db.list_deposits(ALICE, PaginationParam(limit=1, offset=1))

        assert [first.items[0].guid, second.items[0].guid] == ["test-000001", "test-000002"]


# ═══════════════════════════════════════════════════════════════════════
#  5. UNDECODABLE ROWS
# ═══════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
class TestMalformedRows:

    async def _corrupt(self, db, query, *args):
        async with db.storage.transaction() as conn:
            await conn.execute(query, *args)

    async def test_deposit_amount(self, db, make_block, make_deposit):
        await db.ingest_block(ChainScope.ORIGIN, make_block(1, deposits=[make_deposit(1)]))
        await self._corrupt(db, "UPDATE deposits SET amount = $1", "not-a-number")

        with pytest.raises(MalformedRowError):
            await db.list_deposits(ALICE)

    async def test_withdrawal_amount(self, db, make_block, make_withdrawal):
        await db.ingest_block(ChainScope.DESTINATION, make_block(1, withdrawals=[make_withdrawal(1)]))
        await db.ingest_block(ChainScope.ORIGIN, make_block(2, withdrawals=[make_withdrawal(1)]))
        await self._corrupt(db, "UPDATE withdrawals SET amount = $1", "not-a-number")

        with pytest.raises(MalformedRowError):
            await db.list_withdrawals(ALICE)
        with pytest.raises(MalformedRowError):
            await db.get_withdrawal_status(h(1))

    async def test_token_decimals(self, db):
        if db.storage.dialect != "sqlite":
            pytest.skip("PostgreSQL enforces the INTEGER column type")
        await self._corrupt(db, "UPDATE l1_tokens SET decimals = $1", "eighteen")

        with pytest.raises(MalformedRowError):
            await db.get_token(ChainScope.ORIGIN, L1_TOKEN)
