"""
Bridge Indexer Exceptions

Custom exception classes for the bridge indexer persistence core.
"""


class IndexerException(Exception):
    """Base exception for the bridge indexer."""
    pass


class ConstraintViolationError(IndexerException):
    """An integrity constraint of the store would be violated."""
    pass


class DuplicateKeyError(ConstraintViolationError):
    """A unique key already exists (token address, block hash)."""
    pass


class DuplicateBlockError(DuplicateKeyError):
    """Block hash has already been indexed for this chain scope."""

    def __init__(self, scope, block_hash: str):
        super().__init__(f"{scope} block {block_hash} is already indexed")
        self.scope = scope
        self.block_hash = block_hash


class ConnectivityError(IndexerException):
    """Storage backend is unreachable or the connection was lost."""
    pass


class MalformedRowError(IndexerException):
    """A stored row could not be decoded into its entity."""
    pass


class InvalidAddressError(IndexerException):
    """Invalid address format."""
    pass


class InvalidHashError(IndexerException):
    """Invalid block or transaction hash."""
    pass


class ConfigurationError(IndexerException):
    """Configuration error."""
    pass
