import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from auctionstore.core.storage.kv import ChangeSet
from auctionstore.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Bucketed Key-Value store for engine state (records, balances, events).
    2. Chain metadata (current block height).
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. KV Store
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    bucket TEXT NOT NULL,
                    key BLOB NOT NULL,
                    value BLOB NOT NULL,
                    PRIMARY KEY (bucket, key)
                )
            """)

            # 2. Chain State (Metadata)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chain_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    def close(self):
        """Close the connection of the current thread, if any."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Key-Value Operations
    # =========================================================================

    def put(self, bucket: str, key: bytes, value: bytes):
        """Save a key-value pair."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (bucket, key, value) VALUES (?, ?, ?)",
                (bucket, key, value)
            )

    def get(self, bucket: str, key: bytes) -> Optional[bytes]:
        """Get value by key."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT value FROM kv_store WHERE bucket = ? AND key = ?", (bucket, key)
        )
        row = cursor.fetchone()
        return row['value'] if row else None

    def delete(self, bucket: str, key: bytes):
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM kv_store WHERE bucket = ? AND key = ?", (bucket, key))

    def items(self, bucket: str) -> List[Tuple[bytes, bytes]]:
        """Get all (key, value) of a bucket ordered by key."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT key, value FROM kv_store WHERE bucket = ? ORDER BY key ASC", (bucket,)
        )
        return [(row['key'], row['value']) for row in cursor]

    def count(self, bucket: str) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM kv_store WHERE bucket = ?", (bucket,))
        return cursor.fetchone()['cnt']

    def write_batch(self, changes: ChangeSet):
        """
        Atomically apply puts and deletes.

        Args:
            changes: (bucket, key) -> value, None meaning delete
        """
        conn = self._get_conn()
        with conn:
            for (bucket, key), value in changes.items():
                if value is None:
                    conn.execute(
                        "DELETE FROM kv_store WHERE bucket = ? AND key = ?", (bucket, key)
                    )
                else:
                    conn.execute(
                        "INSERT OR REPLACE INTO kv_store (bucket, key, value) VALUES (?, ?, ?)",
                        (bucket, key, value)
                    )

    # =========================================================================
    # Chain State Operations
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM chain_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None
