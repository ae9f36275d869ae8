"""
Tests for the indexer data types.

Tests:
  - Address and hash normalization
  - Event validation
  - Read model state and serialization
  - Pagination window validation
  - Sequential guid generation
"""

import threading

import pytest

from conftest import ALICE, BOB, L1_TOKEN, L2_TOKEN, h

from bridge_indexer.exceptions import InvalidAddressError, InvalidHashError
from bridge_indexer.guid import SequentialGUIDFactory, uuid4_guid
from bridge_indexer.types import (
    ChainScope,
    DepositEvent,
    IndexedBlock,
    PaginationParam,
    Token,
    WithdrawalState,
    WithdrawalView,
    normalize_address,
    normalize_hash,
)


# ═══════════════════════════════════════════════════════════════════════
#  1. NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════

class TestNormalization:

    def test_address_is_checksummed(self):
        raw = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
        assert normalize_address(raw) == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"

    def test_address_forms_collapse(self):
        checksummed = normalize_address(ALICE)
        assert normalize_address(ALICE.upper().replace("0X", "0x")) == checksummed
        assert normalize_address(bytes.fromhex(ALICE[2:])) == checksummed

    @pytest.mark.parametrize("bad", ["", "0x1234", "not-an-address", None, 42])
    def test_invalid_address(self, bad):
        with pytest.raises(InvalidAddressError):
            normalize_address(bad)

    def test_hash_lowercased_and_prefixed(self):
        value = "AB" * 32
        assert normalize_hash(value) == "0x" + "ab" * 32
        assert normalize_hash("0x" + value) == "0x" + "ab" * 32

    def test_hash_from_bytes(self):
        assert normalize_hash(b"\x01" * 32) == "0x" + "01" * 32

    @pytest.mark.parametrize("bad", ["0x1234", "zz" * 32, "", None])
    def test_invalid_hash(self, bad):
        with pytest.raises(InvalidHashError):
            normalize_hash(bad)


# ═══════════════════════════════════════════════════════════════════════
#  2. EVENTS & BLOCKS
# ═══════════════════════════════════════════════════════════════════════

class TestEvents:

    def test_deposit_normalizes_fields(self):
        deposit = DepositEvent(
            from_address=ALICE,
            to_address=BOB,
            l1_token=L1_TOKEN,
            l2_token=L2_TOKEN,
            amount=5,
            tx_hash=h(1).upper().replace("0X", "0x"),
            log_index=3,
        )
        assert deposit.from_address == normalize_address(ALICE)
        assert deposit.tx_hash == h(1)
        assert deposit.data == b""

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            DepositEvent(ALICE, BOB, L1_TOKEN, L2_TOKEN, -1, h(1), 0)

    def test_block_header_drops_events(self):
        deposit = DepositEvent(ALICE, BOB, L1_TOKEN, L2_TOKEN, 1, h(1), 0)
        block = IndexedBlock(hash=h(10), parent_hash=h(9), number=10, timestamp=100, deposits=[deposit])
        header = block.header()
        assert header.deposits == []
        assert header.hash == block.hash
        assert block.deposits == [deposit]
        assert block.locator.number == 10

    def test_block_rejects_bad_hash(self):
        with pytest.raises(InvalidHashError):
            IndexedBlock(hash="0xdead", parent_hash=h(0), number=1, timestamp=1)

    def test_scope_values(self):
        assert ChainScope("l1") is ChainScope.ORIGIN
        assert str(ChainScope.DESTINATION) == "l2"
        assert ChainScope.DESTINATION.table_prefix == "l2"


# ═══════════════════════════════════════════════════════════════════════
#  3. READ MODELS
# ═══════════════════════════════════════════════════════════════════════

class TestWithdrawalView:

    def _view(self, **overrides):
        fields = dict(
            guid="g",
            from_address=normalize_address(ALICE),
            to_address=normalize_address(BOB),
            amount=7,
            tx_hash=h(1),
            log_index=0,
            data=b"\x01",
            l1_token=normalize_address(L1_TOKEN),
            l2_token=Token("Wrapped Ether", "WETH", 18, normalize_address(L2_TOKEN)),
            l2_block_hash=h(4),
            l2_block_number=4,
            l2_block_timestamp=40,
        )
        fields.update(overrides)
        return WithdrawalView(**fields)

    def test_initiated_without_l1_block(self):
        assert self._view().state == WithdrawalState.INITIATED

    def test_finalized_with_l1_block(self):
        view = self._view(l1_block_number=9, l1_block_timestamp=90)
        assert view.state == WithdrawalState.FINALIZED

    def test_to_dict(self):
        d = self._view().to_dict()
        assert d["amount"] == "7"
        assert d["data"] == "0x01"
        assert d["l2Token"]["symbol"] == "WETH"
        assert d["state"] == "initiated"


# ═══════════════════════════════════════════════════════════════════════
#  4. PAGINATION
# ═══════════════════════════════════════════════════════════════════════

class TestPaginationParam:

    def test_defaults(self):
        page = PaginationParam()
        assert (page.limit, page.offset, page.total) == (10, 0, 0)

    def test_next_page(self):
        page = PaginationParam(limit=25, offset=50, total=999).next_page()
        assert (page.limit, page.offset, page.total) == (25, 75, 0)

    @pytest.mark.parametrize("limit, offset", [(-1, 0), (1001, 0), (10, -5)])
    def test_invalid_window(self, limit, offset):
        with pytest.raises(ValueError):
            PaginationParam(limit=limit, offset=offset)


# ═══════════════════════════════════════════════════════════════════════
#  5. GUIDS
# ═══════════════════════════════════════════════════════════════════════

class TestGUIDs:

    def test_sequential(self):
        factory = SequentialGUIDFactory(prefix="dep")
        assert [factory() for _ in range(3)] == ["dep-000001", "dep-000002", "dep-000003"]

    def test_sequential_unique_across_threads(self):
        factory = SequentialGUIDFactory()
        seen = []
        lock = threading.Lock()

        def worker():
            ids = [factory() for _ in range(200)]
            with lock:
                seen.extend(ids)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(seen)) == 800

    def test_uuid4_unique(self):
        assert uuid4_guid() != uuid4_guid()

