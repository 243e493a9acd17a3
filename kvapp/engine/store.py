"""
StoreHandle - synchronous byte-key/byte-value operations on the embedded engine.
"""

import logging
import os
import sqlite3
from pathlib import Path

from kvapp.models.exceptions import StoreError

logger = logging.getLogger(__name__)


class StoreHandle:
    """
    Ordered, durable key-value store backed by a SQLite database file.

    Provides:
    - get(key): Read the current value of a key
    - put(key, value): Insert or replace a value
    - delete(key): Remove a key
    - health(): Liveness probe returning the size on disk
    - flush(): Checkpoint the write-ahead log into the database file

    The engine runs in WAL journal mode with synchronous=FULL, so every
    completed write is durable. Each operation is a single autocommit
    statement and is atomic from the caller's perspective.

    Absence is never an error: get() returns None and delete() returns
    False for a missing key. Engine and filesystem failures raise StoreError.
    """

    DB_FILENAME = "kv.sqlite3"

    def __init__(self, storage_dir: str, conn: sqlite3.Connection) -> None:
        self._storage_dir = storage_dir
        self._conn = conn
        self._closed = False

    @classmethod
    def open(cls, storage_dir: str) -> "StoreHandle":
        """
        Open (or create) the store inside storage_dir.

        Args:
            storage_dir: Directory holding the store files. Created if missing.

        Returns:
            An open StoreHandle.

        Raises:
            StoreError: If the directory or database cannot be opened.
        """
        if not storage_dir or not storage_dir.strip():
            raise StoreError("open", ValueError("storage_dir cannot be empty"))

        storage_dir = os.path.abspath(storage_dir)
        conn = None
        try:
            Path(storage_dir).mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                os.path.join(storage_dir, cls.DB_FILENAME),
                isolation_level=None,
                check_same_thread=False,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=FULL")
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                " key BLOB PRIMARY KEY NOT NULL,"
                " value BLOB NOT NULL"
                ") WITHOUT ROWID"
            )
        except (OSError, sqlite3.Error) as e:
            if conn is not None:
                conn.close()
            raise StoreError("open", e) from e

        logger.info(f"Opened store at {storage_dir}")
        return cls(storage_dir, conn)

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    def get(self, key: bytes) -> bytes | None:
        """
        Retrieve the value stored under key.

        Returns:
            The value if found, None otherwise.
        """
        try:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (bytes(key),)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError("get", e) from e
        return None if row is None else bytes(row[0])

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or replace the value stored under key."""
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (bytes(key), bytes(value)),
            )
        except sqlite3.Error as e:
            raise StoreError("put", e) from e

    def delete(self, key: bytes) -> bool:
        """
        Remove key from the store.

        Returns:
            True if a record existed and was removed, False otherwise.
        """
        try:
            cursor = self._conn.execute("DELETE FROM kv WHERE key = ?", (bytes(key),))
        except sqlite3.Error as e:
            raise StoreError("delete", e) from e
        return cursor.rowcount > 0

    def health(self) -> int:
        """
        Probe the engine and the store directory.

        Returns:
            Total size in bytes of the files in the store directory.
        """
        try:
            self._conn.execute("SELECT 1 FROM kv LIMIT 1").fetchone()
            with os.scandir(self._storage_dir) as entries:
                return sum(entry.stat().st_size for entry in entries if entry.is_file())
        except (OSError, sqlite3.Error) as e:
            raise StoreError("health", e) from e

    def flush(self) -> None:
        """Checkpoint the write-ahead log into the main database file."""
        try:
            self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except sqlite3.Error as e:
            raise StoreError("flush", e) from e

    def close(self) -> None:
        """Flush and release the engine. Further operations raise StoreError."""
        if self._closed:
            return
        self._closed = True
        try:
            self.flush()
        finally:
            self._conn.close()
        logger.info(f"Closed store at {self._storage_dir}")

    def __enter__(self) -> "StoreHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
