"""
SQLite-backed key-value store for tracking state.

Holds the JSON blobs the engine persists between invocations:
row statuses, baseline values, cell guards, row locks, the tracking
column position and the operation-in-progress flag.

Uses stdlib sqlite3 with no ORM. The connection runs in autocommit mode;
every single statement is atomic on its own and compare-and-set style
operations open an explicit IMMEDIATE transaction.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)

# Schema version - increment when making breaking changes
SCHEMA_VERSION = 1

MEMORY = ":memory:"


class SqliteKeyValueStore:
    """
    Durable string-keyed storage.

    Usage:
        store = SqliteKeyValueStore(Path("output/sync_state.db"))
        store.initialize_schema()

        store.set("Sheet1:status", '{"42": "Modified"}')
        store.get("Sheet1:status")
    """

    def __init__(self, db_path: Path | str) -> None:
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file (created if not exists),
                or ":memory:"
        """
        self.db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        self._connection: sqlite3.Connection | None = None
        logger.debug("SqliteKeyValueStore initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._connection = sqlite3.connect(str(self.db_path), isolation_level=None)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA busy_timeout = 5000")
            logger.debug("Database connection established")
            self.initialize_schema()
        return self._connection

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")

    def __enter__(self) -> SqliteKeyValueStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ========================================================================
    # Schema Management
    # ========================================================================

    def initialize_schema(self) -> None:
        """
        Create tables if they don't exist.

        Safe to call multiple times - uses CREATE TABLE IF NOT EXISTS.
        """
        conn = self._get_connection()

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL,
                expires_at REAL
            )
        """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """
        )

        conn.execute(
            "INSERT OR REPLACE INTO schema_meta (key, value) VALUES ('version', ?)",
            (str(SCHEMA_VERSION),),
        )
        logger.debug("State schema initialized (version %d)", SCHEMA_VERSION)

    # ========================================================================
    # Key-Value Operations
    # ========================================================================

    def get(self, key: str) -> str | None:
        row = self._get_connection().execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self._get_connection().execute(
            """
            INSERT INTO kv_store (key, value, updated_at, expires_at)
            VALUES (?, ?, ?, NULL)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at,
                expires_at = NULL
        """,
            (key, value, time.time()),
        )

    def delete(self, key: str) -> None:
        self._get_connection().execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        rows = self._get_connection().execute(
            "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ).fetchall()
        return [row["key"] for row in rows]

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns rows removed."""
        cursor = self._get_connection().execute(
            "DELETE FROM kv_store WHERE substr(key, 1, ?) = ?",
            (len(prefix), prefix),
        )
        return cursor.rowcount

    def set_if_absent_or_expired(self, key: str, value: str, now: float, ttl: float) -> bool:
        """
        Atomically claim a key.

        The key is written (with expiry now + ttl) only if it is absent or
        its previous claim has expired. Used for row locks and the
        operation-in-progress flag.

        Returns:
            True if this call claimed the key, False if a live claim exists
        """
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            row = conn.execute(
                "SELECT expires_at FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            if row is not None and row["expires_at"] is not None and row["expires_at"] > now:
                conn.execute("COMMIT")
                return False

            if row is not None and row["expires_at"] is not None:
                logger.debug("Force-expiring stale claim on %s", key)

            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at,
                    expires_at = excluded.expires_at
            """,
                (key, value, now, now + ttl),
            )
            conn.execute("COMMIT")
            return True
        except Exception:
            conn.execute("ROLLBACK")
            raise
