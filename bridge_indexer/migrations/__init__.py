"""
Bridge Indexer Migrations

Idempotent schema setup for the indexer database.
"""

from .apply_schema import main, run_migration

__all__ = ['main', 'run_migration']
