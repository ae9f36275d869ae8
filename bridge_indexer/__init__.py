"""
Bridge Indexer Package

Persistence core of a two-chain bridge indexer. Core imports are lazily
loaded so that importing a submodule does not open the whole stack:

    from bridge_indexer.database import Database
    from bridge_indexer.types import ChainScope, IndexedBlock
    from bridge_indexer.exceptions import DuplicateBlockError
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading the storage drivers at package import
def __getattr__(name):
    if name == 'Database':
        from .database import Database
        return Database
    elif name == 'ChainScope':
        from .types import ChainScope
        return ChainScope
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'bridge_indexer' has no attribute {name!r}")

__all__ = ['Database', 'ChainScope', 'load_config']
