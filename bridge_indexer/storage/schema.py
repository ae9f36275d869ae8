"""
Indexer schema, one migration list per SQL dialect.

Statements are applied in order by ``StorageBackend.initialize``. They must
stay idempotent: only ``CREATE TABLE IF NOT EXISTS`` and
``CREATE INDEX IF NOT EXISTS``.

Tables:
    l1_tokens / l2_tokens  : ERC20 metadata per chain, keyed by address
    l1_blocks / l2_blocks  : fully scanned blocks, keyed by hash
    deposits               : L1 deposit events, one row per event
    withdrawals            : one row per withdrawal transaction hash,
                             linked to its L2 and (once finalized) L1 block
    airdrops               : airdrop allocations, loaded out of band
"""

from typing import List, Sequence

from ..exceptions import ConfigurationError

# ── PostgreSQL ──────────────────────────────────────────────────────

POSTGRES_MIGRATIONS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS l1_tokens (
        address     VARCHAR(42) PRIMARY KEY,
        name        VARCHAR     NOT NULL,
        symbol      VARCHAR     NOT NULL,
        decimals    INTEGER     NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS l2_tokens (
        address     VARCHAR(42) PRIMARY KEY,
        name        VARCHAR     NOT NULL,
        symbol      VARCHAR     NOT NULL,
        decimals    INTEGER     NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS l1_blocks (
        hash        VARCHAR(66) PRIMARY KEY,
        parent_hash VARCHAR(66) NOT NULL,
        number      BIGINT      NOT NULL,
        timestamp   BIGINT      NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS l2_blocks (
        hash        VARCHAR(66) PRIMARY KEY,
        parent_hash VARCHAR(66) NOT NULL,
        number      BIGINT      NOT NULL,
        timestamp   BIGINT      NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deposits (
        guid          VARCHAR     PRIMARY KEY,
        from_address  VARCHAR(42) NOT NULL,
        to_address    VARCHAR(42) NOT NULL,
        l1_token      VARCHAR(42) NOT NULL,
        l2_token      VARCHAR(42) NOT NULL,
        amount        VARCHAR     NOT NULL,
        tx_hash       VARCHAR(66) NOT NULL,
        log_index     INTEGER     NOT NULL,
        l1_block_hash VARCHAR(66) NOT NULL REFERENCES l1_blocks(hash),
        data          BYTEA       NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS withdrawals (
        guid          VARCHAR     PRIMARY KEY,
        from_address  VARCHAR(42) NOT NULL,
        to_address    VARCHAR(42) NOT NULL,
        l1_token      VARCHAR(42) NOT NULL,
        l2_token      VARCHAR(42) NOT NULL,
        amount        VARCHAR     NOT NULL,
        tx_hash       VARCHAR(66) NOT NULL UNIQUE,
        log_index     INTEGER     NOT NULL,
        l1_block_hash VARCHAR(66) REFERENCES l1_blocks(hash),
        l2_block_hash VARCHAR(66) REFERENCES l2_blocks(hash),
        data          BYTEA       NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS airdrops (
        address                VARCHAR(42) PRIMARY KEY,
        voter_amount           VARCHAR     NOT NULL DEFAULT '0',
        multisig_signer_amount VARCHAR     NOT NULL DEFAULT '0',
        gitcoin_amount         VARCHAR     NOT NULL DEFAULT '0',
        active_bridged_amount  VARCHAR     NOT NULL DEFAULT '0',
        op_user_amount         VARCHAR     NOT NULL DEFAULT '0',
        op_repeat_user_amount  VARCHAR     NOT NULL DEFAULT '0',
        bonus_amount           VARCHAR     NOT NULL DEFAULT '0',
        total_amount           VARCHAR     NOT NULL DEFAULT '0'
    )
    """,
    "CREATE INDEX IF NOT EXISTS l1_blocks_number_idx ON l1_blocks (number)",
    "CREATE INDEX IF NOT EXISTS l2_blocks_number_idx ON l2_blocks (number)",
    "CREATE INDEX IF NOT EXISTS deposits_from_address_idx ON deposits (from_address)",
    "CREATE INDEX IF NOT EXISTS deposits_l1_block_hash_idx ON deposits (l1_block_hash)",
    "CREATE INDEX IF NOT EXISTS withdrawals_from_address_idx ON withdrawals (from_address)",
    "CREATE INDEX IF NOT EXISTS withdrawals_l1_block_hash_idx ON withdrawals (l1_block_hash)",
    "CREATE INDEX IF NOT EXISTS withdrawals_l2_block_hash_idx ON withdrawals (l2_block_hash)",
]


# ── SQLite ──────────────────────────────────────────────────────────

SQLITE_MIGRATIONS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS l1_tokens (
        address     TEXT    PRIMARY KEY,
        name        TEXT    NOT NULL,
        symbol      TEXT    NOT NULL,
        decimals    INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS l2_tokens (
        address     TEXT    PRIMARY KEY,
        name        TEXT    NOT NULL,
        symbol      TEXT    NOT NULL,
        decimals    INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS l1_blocks (
        hash        TEXT    PRIMARY KEY,
        parent_hash TEXT    NOT NULL,
        number      INTEGER NOT NULL,
        timestamp   INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS l2_blocks (
        hash        TEXT    PRIMARY KEY,
        parent_hash TEXT    NOT NULL,
        number      INTEGER NOT NULL,
        timestamp   INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deposits (
        guid          TEXT    PRIMARY KEY,
        from_address  TEXT    NOT NULL,
        to_address    TEXT    NOT NULL,
        l1_token      TEXT    NOT NULL,
        l2_token      TEXT    NOT NULL,
        amount        TEXT    NOT NULL,
        tx_hash       TEXT    NOT NULL,
        log_index     INTEGER NOT NULL,
        l1_block_hash TEXT    NOT NULL REFERENCES l1_blocks(hash),
        data          BLOB    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS withdrawals (
        guid          TEXT    PRIMARY KEY,
        from_address  TEXT    NOT NULL,
        to_address    TEXT    NOT NULL,
        l1_token      TEXT    NOT NULL,
        l2_token      TEXT    NOT NULL,
        amount        TEXT    NOT NULL,
        tx_hash       TEXT    NOT NULL UNIQUE,
        log_index     INTEGER NOT NULL,
        l1_block_hash TEXT    REFERENCES l1_blocks(hash),
        l2_block_hash TEXT    REFERENCES l2_blocks(hash),
        data          BLOB    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS airdrops (
        address                TEXT PRIMARY KEY,
        voter_amount           TEXT NOT NULL DEFAULT '0',
        multisig_signer_amount TEXT NOT NULL DEFAULT '0',
        gitcoin_amount         TEXT NOT NULL DEFAULT '0',
        active_bridged_amount  TEXT NOT NULL DEFAULT '0',
        op_user_amount         TEXT NOT NULL DEFAULT '0',
        op_repeat_user_amount  TEXT NOT NULL DEFAULT '0',
        bonus_amount           TEXT NOT NULL DEFAULT '0',
        total_amount           TEXT NOT NULL DEFAULT '0'
    )
    """,
    "CREATE INDEX IF NOT EXISTS l1_blocks_number_idx ON l1_blocks (number)",
    "CREATE INDEX IF NOT EXISTS l2_blocks_number_idx ON l2_blocks (number)",
    "CREATE INDEX IF NOT EXISTS deposits_from_address_idx ON deposits (from_address)",
    "CREATE INDEX IF NOT EXISTS deposits_l1_block_hash_idx ON deposits (l1_block_hash)",
    "CREATE INDEX IF NOT EXISTS withdrawals_from_address_idx ON withdrawals (from_address)",
    "CREATE INDEX IF NOT EXISTS withdrawals_l1_block_hash_idx ON withdrawals (l1_block_hash)",
    "CREATE INDEX IF NOT EXISTS withdrawals_l2_block_hash_idx ON withdrawals (l2_block_hash)",
]

INDEXER_TABLES = (
    "airdrops",
    "deposits",
    "l1_blocks",
    "l1_tokens",
    "l2_blocks",
    "l2_tokens",
    "withdrawals",
)


def migrations_for(dialect: str) -> Sequence[str]:
    if dialect == "postgres":
        return POSTGRES_MIGRATIONS
    if dialect == "sqlite":
        return SQLITE_MIGRATIONS
    raise ConfigurationError(f"Unsupported database dialect: {dialect!r}")
