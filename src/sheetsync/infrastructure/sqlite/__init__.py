"""
SQLite infrastructure package.

Provides the durable key-value store behind the tracking state.
"""

from sheetsync.infrastructure.sqlite.store import SqliteKeyValueStore

__all__ = [
    "SqliteKeyValueStore",
]
