"""
Bridge Indexer Types

Core data structures for the two-chain bridge indexer.

Defines:
  - ChainScope enum for the origin (L1) and destination (L2) chains
  - Token metadata, written once per scope and address
  - IndexedBlock, the unit of ingestion, with its deposit/withdrawal events
  - DepositView / WithdrawalView read models joined with block and token data
  - PaginationParam and the paginated result envelopes
  - Address and hash normalization shared by writers and readers
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from eth_utils import is_address, to_checksum_address

from .constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, VALID_HASH_PATTERN
from .exceptions import InvalidAddressError, InvalidHashError


# ══════════════════════════════════════════════════════════════════════
#  CHAIN SCOPES
# ══════════════════════════════════════════════════════════════════════

class ChainScope(str, Enum):
    """
    The two chains a bridged asset moves between.

    ORIGIN is where deposits are initiated and withdrawals finalized,
    DESTINATION is where withdrawals are initiated.
    """
    ORIGIN      = "l1"
    DESTINATION = "l2"

    @property
    def table_prefix(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class WithdrawalState(str, Enum):
    """Lifecycle of a withdrawal row keyed by transaction hash."""
    INITIATED = "initiated"   # seen on L2, no L1 block yet
    FINALIZED = "finalized"   # L1 block linked


# ══════════════════════════════════════════════════════════════════════
#  NORMALIZATION
# ══════════════════════════════════════════════════════════════════════

def normalize_address(address: Union[str, bytes]) -> str:
    """Return the EIP-55 checksummed form of *address*."""
    if isinstance(address, bytes):
        address = "0x" + address.hex()
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def normalize_hash(value: Union[str, bytes]) -> str:
    """Return *value* as a lower-case, 0x-prefixed 32 byte hex string."""
    if isinstance(value, bytes):
        value = value.hex()
    if not isinstance(value, str) or not VALID_HASH_PATTERN.match(value):
        raise InvalidHashError(f"Invalid hash: {value!r}")
    value = value.lower()
    return value if value.startswith("0x") else "0x" + value


# ══════════════════════════════════════════════════════════════════════
#  TOKENS & BLOCKS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Token:
    """
    ERC20 metadata for a bridged token.

    ``address`` is filled in on reads; writers pass it separately.
    """
    name: str
    symbol: str
    decimals: int
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }


@dataclass(frozen=True)
class BlockLocator:
    """(number, hash) of the most recently indexed block of a chain."""
    number: int
    hash: str


@dataclass
class DepositEvent:
    """
    A deposit observed on L1.

    Attributes:
        from_address: Depositor on L1
        to_address: Recipient on L2
        l1_token: Token contract on L1
        l2_token: Token contract on L2
        amount: Amount in the token's smallest unit
        tx_hash: L1 transaction hash
        log_index: Position of the event log within the block
        data: Opaque extra payload carried by the bridge message
    """
    from_address: str
    to_address: str
    l1_token: str
    l2_token: str
    amount: int
    tx_hash: str
    log_index: int
    data: bytes = b""

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("amount must be non-negative")
        self.from_address = normalize_address(self.from_address)
        self.to_address = normalize_address(self.to_address)
        self.l1_token = normalize_address(self.l1_token)
        self.l2_token = normalize_address(self.l2_token)
        self.tx_hash = normalize_hash(self.tx_hash)


@dataclass
class WithdrawalEvent:
    """
    A withdrawal observed on either chain.

    The same ``tx_hash`` (the L2 initiating transaction) is reported by both
    the L2 initiation and the L1 finalization, and is the correlation key.
    """
    from_address: str
    to_address: str
    l1_token: str
    l2_token: str
    amount: int
    tx_hash: str
    log_index: int
    data: bytes = b""

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("amount must be non-negative")
        self.from_address = normalize_address(self.from_address)
        self.to_address = normalize_address(self.to_address)
        self.l1_token = normalize_address(self.l1_token)
        self.l2_token = normalize_address(self.l2_token)
        self.tx_hash = normalize_hash(self.tx_hash)


@dataclass
class IndexedBlock:
    """
    A fully scanned block and every bridge event it contains.

    Deposits only occur on L1 blocks. Withdrawals occur on both: initiations
    on L2 blocks and finalizations on L1 blocks.
    """
    hash: str
    parent_hash: str
    number: int
    timestamp: int
    deposits: List[DepositEvent] = field(default_factory=list)
    withdrawals: List[WithdrawalEvent] = field(default_factory=list)

    def __post_init__(self):
        if self.number < 0:
            raise ValueError("number must be non-negative")
        self.hash = normalize_hash(self.hash)
        self.parent_hash = normalize_hash(self.parent_hash)

    @property
    def locator(self) -> BlockLocator:
        return BlockLocator(number=self.number, hash=self.hash)

    def header(self) -> "IndexedBlock":
        """Copy of this block without its events."""
        return replace(self, deposits=[], withdrawals=[])


# ══════════════════════════════════════════════════════════════════════
#  READ MODELS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class DepositView:
    """A deposit joined with its L1 block and L1 token metadata."""
    guid: str
    from_address: str
    to_address: str
    amount: int
    tx_hash: str
    log_index: int
    data: bytes
    l1_token: Token
    l2_token: str
    block_number: int
    block_timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guid": self.guid,
            "from": self.from_address,
            "to": self.to_address,
            "amount": str(self.amount),
            "transactionHash": self.tx_hash,
            "logIndex": self.log_index,
            "data": "0x" + self.data.hex(),
            "l1Token": self.l1_token.to_dict(),
            "l2Token": self.l2_token,
            "blockNumber": self.block_number,
            "blockTimestamp": self.block_timestamp,
        }


@dataclass
class WithdrawalView:
    """
    A withdrawal joined with its L2 block and L2 token metadata.

    The L1 fields stay empty until the finalization has been indexed.
    """
    guid: str
    from_address: str
    to_address: str
    amount: int
    tx_hash: str
    log_index: int
    data: bytes
    l1_token: str
    l2_token: Token
    l2_block_hash: str
    l2_block_number: int
    l2_block_timestamp: int
    l1_block_hash: Optional[str] = None
    l1_block_number: Optional[int] = None
    l1_block_timestamp: Optional[int] = None

    @property
    def state(self) -> WithdrawalState:
        if self.l1_block_number is None:
            return WithdrawalState.INITIATED
        return WithdrawalState.FINALIZED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guid": self.guid,
            "from": self.from_address,
            "to": self.to_address,
            "amount": str(self.amount),
            "transactionHash": self.tx_hash,
            "logIndex": self.log_index,
            "data": "0x" + self.data.hex(),
            "l1Token": self.l1_token,
            "l2Token": self.l2_token.to_dict(),
            "l1BlockHash": self.l1_block_hash,
            "l1BlockNumber": self.l1_block_number,
            "l1BlockTimestamp": self.l1_block_timestamp,
            "l2BlockHash": self.l2_block_hash,
            "l2BlockNumber": self.l2_block_number,
            "l2BlockTimestamp": self.l2_block_timestamp,
            "state": self.state.value,
        }


@dataclass
class PaginationParam:
    """Page window requested by a reader; ``total`` is set on the way out."""
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = 0
    total: int = 0

    def __post_init__(self):
        if self.limit < 0 or self.limit > MAX_PAGE_LIMIT:
            raise ValueError(f"limit must be between 0 and {MAX_PAGE_LIMIT}")
        if self.offset < 0:
            raise ValueError("offset must be non-negative")

    def next_page(self) -> "PaginationParam":
        return PaginationParam(limit=self.limit, offset=self.offset + self.limit)

    def to_dict(self) -> Dict[str, Any]:
        return {"limit": self.limit, "offset": self.offset, "total": self.total}


@dataclass
class PaginatedDeposits:
    pagination: PaginationParam
    items: List[DepositView] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.pagination.total


@dataclass
class PaginatedWithdrawals:
    pagination: PaginationParam
    items: List[WithdrawalView] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.pagination.total


@dataclass(frozen=True)
class Airdrop:
    """Airdrop allocation of an address; amounts are decimal strings."""
    address: str
    voter_amount: str
    multisig_signer_amount: str
    gitcoin_amount: str
    active_bridged_amount: str
    op_user_amount: str
    op_repeat_user_amount: str
    bonus_amount: str
    total_amount: str
