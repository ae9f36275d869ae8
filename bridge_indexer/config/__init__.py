"""
Bridge Indexer Configuration

Loads config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DatabaseConfig,
    IndexerConfig,
    IndexerSectionConfig,
    PostgresConfig,
    SQLiteConfig,
    load_config,
)

__all__ = [
    "DatabaseConfig",
    "IndexerConfig",
    "IndexerSectionConfig",
    "PostgresConfig",
    "SQLiteConfig",
    "load_config",
]
