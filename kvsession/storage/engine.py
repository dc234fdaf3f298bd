"""
Embedded KV Engine: Bucketed Key-Value Store on SQLite WAL

Provides a small transactional key-value database with:
- Named buckets (namespaces) holding opaque byte keys and values
- Read transactions (snapshot of the last committed state)
- Write transactions (all-or-nothing commit)
- Ordered key scans for background sweeps

Thread Safety:
- Single writer, multiple readers (SQLite WAL mode)
- Writers are serialized by a lock and BEGIN IMMEDIATE
- Readers use their own connection and never block on a writer

Usage:
    engine = KVEngine(EngineConfig(db_path=Path("sessions.db")))
    await engine.open()

    def put(tx: Transaction) -> Result[None, StorageError]:
        tx.create_bucket_if_not_exists(b"sessions").put(b"k", b"v")
        return Ok(None)

    await engine.update(put)
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from kvsession.core.config import EngineConfig
from kvsession.core.errors import SessionStoreError, StorageError
from kvsession.core.types import Result, Ok, Err

logger = logging.getLogger(__name__)

T = TypeVar("T")

TxFn = Callable[["Transaction"], Result[T, SessionStoreError]]


@dataclass
class EngineStats:
    """Engine statistics."""

    read_transactions: int = 0
    write_transactions: int = 0
    rolled_back: int = 0


class Bucket:
    """
    Handle to a named bucket, valid only inside its transaction.

    Keys and values are raw bytes. Keys are ordered bytewise.
    """

    __slots__ = ("_tx", "_name")

    def __init__(self, tx: Transaction, name: bytes) -> None:
        self._tx = tx
        self._name = name

    @property
    def name(self) -> bytes:
        return self._name

    def get(self, key: bytes) -> Optional[bytes]:
        """Point lookup. None if the key is absent."""
        row = self._tx.conn.execute(
            "SELECT value FROM kv_store WHERE bucket = ? AND key = ?",
            (self._name, key),
        ).fetchone()
        return bytes(row[0]) if row else None

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or replace a key."""
        self._tx.require_writable()
        if not key:
            raise ValueError("key required")
        self._tx.conn.execute(
            "INSERT OR REPLACE INTO kv_store (bucket, key, value) VALUES (?, ?, ?)",
            (self._name, key, value),
        )

    def delete(self, key: bytes) -> None:
        """Remove a key. Deleting an absent key is a no-op."""
        self._tx.require_writable()
        self._tx.conn.execute(
            "DELETE FROM kv_store WHERE bucket = ? AND key = ?",
            (self._name, key),
        )

    def scan(
        self,
        after: Optional[bytes] = None,
        limit: int = 100,
    ) -> list[tuple[bytes, bytes]]:
        """
        Return up to `limit` key-value pairs in key order.

        Starts strictly after `after` when given, so callers can page
        through a bucket across several transactions.
        """
        if after is None:
            rows = self._tx.conn.execute(
                "SELECT key, value FROM kv_store WHERE bucket = ? "
                "ORDER BY key LIMIT ?",
                (self._name, limit),
            ).fetchall()
        else:
            rows = self._tx.conn.execute(
                "SELECT key, value FROM kv_store WHERE bucket = ? AND key > ? "
                "ORDER BY key LIMIT ?",
                (self._name, after, limit),
            ).fetchall()
        return [(bytes(k), bytes(v)) for k, v in rows]

    def count(self) -> int:
        row = self._tx.conn.execute(
            "SELECT COUNT(*) FROM kv_store WHERE bucket = ?",
            (self._name,),
        ).fetchone()
        return int(row[0])


class Transaction:
    """A single read or write transaction."""

    __slots__ = ("conn", "writable")

    def __init__(self, conn: sqlite3.Connection, writable: bool) -> None:
        self.conn = conn
        self.writable = writable

    def require_writable(self) -> None:
        if not self.writable:
            raise PermissionError("transaction is read-only")

    def bucket(self, name: bytes) -> Optional[Bucket]:
        """Return the bucket, or None if it was never created."""
        row = self.conn.execute(
            "SELECT 1 FROM kv_buckets WHERE name = ?",
            (name,),
        ).fetchone()
        return Bucket(self, name) if row else None

    def create_bucket_if_not_exists(self, name: bytes) -> Bucket:
        self.require_writable()
        if not name:
            raise ValueError("bucket name required")
        self.conn.execute(
            "INSERT OR IGNORE INTO kv_buckets (name) VALUES (?)",
            (name,),
        )
        return Bucket(self, name)

    def delete_bucket(self, name: bytes) -> None:
        """Drop a bucket and every key in it."""
        self.require_writable()
        self.conn.execute("DELETE FROM kv_store WHERE bucket = ?", (name,))
        self.conn.execute("DELETE FROM kv_buckets WHERE name = ?", (name,))


class KVEngine:
    """
    SQLite-backed bucketed key-value engine.

    One instance per database file, shared by the whole process.
    Every view()/update() call is exactly one transaction.
    """

    __slots__ = (
        "_config", "_read_conn", "_write_conn",
        "_read_lock", "_write_lock", "_stats", "_closed",
    )

    PRAGMAS = [
        "PRAGMA journal_mode = WAL",      # Write-Ahead Logging
        "PRAGMA synchronous = NORMAL",    # Safe with WAL
        "PRAGMA temp_store = MEMORY",
    ]

    SCHEMA = [
        "CREATE TABLE IF NOT EXISTS kv_buckets ("
        " name BLOB PRIMARY KEY"
        ") WITHOUT ROWID",
        "CREATE TABLE IF NOT EXISTS kv_store ("
        " bucket BLOB NOT NULL,"
        " key BLOB NOT NULL,"
        " value BLOB NOT NULL,"
        " PRIMARY KEY (bucket, key)"
        ") WITHOUT ROWID",
    ]

    def __init__(self, config: EngineConfig) -> None:
        self._config = config
        self._read_conn: Optional[sqlite3.Connection] = None
        self._write_conn: Optional[sqlite3.Connection] = None
        self._read_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._stats = EngineStats()
        self._closed = False

    @property
    def path(self) -> str:
        return str(self._config.db_path)

    @property
    def is_open(self) -> bool:
        return self._write_conn is not None and not self._closed

    @property
    def stats(self) -> EngineStats:
        return self._stats

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.path,
            check_same_thread=False,
            isolation_level=None,  # Autocommit for explicit transaction control
        )
        conn.execute(f"PRAGMA busy_timeout = {int(self._config.busy_timeout_ms)}")
        conn.execute(f"PRAGMA cache_size = -{int(self._config.cache_size_kb)}")
        if self._config.mmap_enabled:
            conn.execute("PRAGMA mmap_size = 268435456")
        for pragma in self.PRAGMAS:
            conn.execute(pragma)
        return conn

    async def open(self) -> Result[None, StorageError]:
        """Open both connections and create the schema."""
        if self.is_open:
            return Ok(None)
        try:
            self._config.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._write_conn = self._connect()
            for statement in self.SCHEMA:
                self._write_conn.execute(statement)
            self._read_conn = self._connect()
            self._closed = False
            logger.info("KV engine opened", extra={"db_path": self.path})
            return Ok(None)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"KV engine open failed: {e}")
            self._close_connections()
            return Err(StorageError.unavailable(self.path, cause=e))

    async def view(self, fn: TxFn[T]) -> Result[T, SessionStoreError]:
        """Run fn inside a read-only transaction."""
        if not self.is_open or self._read_conn is None:
            return Err(StorageError.unavailable(self.path))
        with self._read_lock:
            self._stats.read_transactions += 1
            return self._run(self._read_conn, fn, writable=False)

    async def update(self, fn: TxFn[T]) -> Result[T, SessionStoreError]:
        """Run fn inside a read-write transaction. Err or exception rolls back."""
        if not self.is_open or self._write_conn is None:
            return Err(StorageError.unavailable(self.path))
        with self._write_lock:
            self._stats.write_transactions += 1
            return self._run(self._write_conn, fn, writable=True)

    def _run(
        self,
        conn: sqlite3.Connection,
        fn: TxFn[T],
        writable: bool,
    ) -> Result[T, SessionStoreError]:
        operation = "update" if writable else "view"
        try:
            conn.execute("BEGIN IMMEDIATE" if writable else "BEGIN")
        except sqlite3.Error as e:
            return Err(StorageError.transaction_failed(operation, cause=e))

        try:
            result = fn(Transaction(conn, writable))
        except (sqlite3.Error, PermissionError, ValueError) as e:
            self._rollback(conn)
            return Err(StorageError.transaction_failed(operation, cause=e))
        except BaseException:
            self._rollback(conn)
            raise

        if result.is_err():
            self._rollback(conn)
            return result

        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(conn)
            return Err(StorageError.transaction_failed(operation, cause=e))
        return result

    def _rollback(self, conn: sqlite3.Connection) -> None:
        self._stats.rolled_back += 1
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def _close_connections(self) -> None:
        for conn in (self._read_conn, self._write_conn):
            if conn is not None:
                conn.close()
        self._read_conn = None
        self._write_conn = None

    async def close(self) -> None:
        """Close the engine. Subsequent transactions fail as unavailable."""
        if self._closed:
            return
        self._closed = True
        with self._write_lock, self._read_lock:
            if self._write_conn is not None:
                try:
                    self._write_conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                except sqlite3.Error as e:
                    logger.warning(f"WAL checkpoint on close failed: {e}")
            self._close_connections()
        logger.info("KV engine closed", extra={"db_path": self.path})

    async def __aenter__(self) -> KVEngine:
        result = await self.open()
        if result.is_err():
            raise result.error
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
