"""
Token Registry

Write-once ERC20 metadata per chain scope, keyed by contract address.
The producer registers each token the first time it sees it; the query
engine joins against the same tables to enrich deposits and withdrawals.
"""

from typing import Optional

from .exceptions import DuplicateKeyError, MalformedRowError
from .logger import get_logger
from .storage import StorageBackend
from .types import ChainScope, Token, normalize_address

logger = get_logger(__name__)


def _tokens_table(scope: ChainScope) -> str:
    return f"{ChainScope(scope).table_prefix}_tokens"


def token_from_row(row, address: Optional[str] = None) -> Token:
    """Decode a ``(name, symbol, decimals[, address])`` row."""
    try:
        return Token(
            name=row["name"],
            symbol=row["symbol"],
            decimals=int(row["decimals"]),
            address=address if address is not None else row["address"],
        )
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise MalformedRowError(f"Cannot decode token row: {exc}") from exc


class TokenRegistry:
    """Point reads and write-once inserts into ``l1_tokens`` / ``l2_tokens``."""

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    async def get_token(self, scope: ChainScope, address: str) -> Optional[Token]:
        """
        Return the token registered at *address* on *scope*, or None.

        None means "not registered"; storage failures raise.
        """
        address = normalize_address(address)
        query = f"SELECT name, symbol, decimals FROM {_tokens_table(scope)} WHERE address = $1"

        async with self._storage.read() as conn:
            row = await conn.fetchrow(query, address)

        if row is None:
            return None
        return token_from_row(row, address=address)

    async def add_token(self, scope: ChainScope, address: str, token: Token) -> None:
        """
        Register *token* at *address* on *scope*.

        Raises:
            DuplicateKeyError: the address is already registered in this scope;
                the stored row is left as it was.
        """
        address = normalize_address(address)
        query = f"""
            INSERT INTO {_tokens_table(scope)}
                (address, name, symbol, decimals)
            VALUES
                ($1, $2, $3, $4)
        """

        try:
            async with self._storage.transaction() as conn:
                await conn.execute(query, address, token.name, token.symbol, int(token.decimals))
        except DuplicateKeyError as exc:
            raise DuplicateKeyError(f"{scope} token {address} is already registered") from exc

        logger.info(f"Registered {scope} token {token.symbol} at {address}")
