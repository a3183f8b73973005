"""
SQLite-backed KV store
======================

Durable nonce bitmaps for long-lived deployments. Implements the `KV` /
`Batch` protocols from `permit2_nft.state.kv`.

- Table schema: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- Keys/values are raw bytes; ordering is lexicographic (memcmp).
- WAL journal, NORMAL sync.

Threading:
- `check_same_thread=False`; the connection is guarded by an internal lock and
  batches execute inside a single `BEGIN IMMEDIATE` transaction.
"""

from __future__ import annotations

import os
import sqlite3
import threading
from typing import Iterator, Optional, Tuple, Union

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode=%s" % p["journal_mode"])
    cur.execute("PRAGMA synchronous=%s" % p["synchronous"])
    cur.execute("PRAGMA temp_store=%s" % p["temp_store"])
    cur.execute("PRAGMA foreign_keys=%s" % p["foreign_keys"])
    cur.close()


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )


def _prefix_hi(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte string strictly greater than every key starting with
    `prefix`, or None if the prefix is all 0xFF.

    Example: b"ab\\x01" -> b"ab\\x02"; b"\\xff\\xff" -> None
    """
    if not prefix:
        return None
    p = bytearray(prefix)
    for i in range(len(p) - 1, -1, -1):
        if p[i] != 0xFF:
            p[i] += 1
            del p[i + 1 :]
            return bytes(p)
    return None


class SQLiteBatch:
    __slots__ = ("_kv", "_open")

    def __init__(self, kv: "SQLiteKV") -> None:
        self._kv = kv
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._kv._lock.acquire()
        try:
            self._kv._conn.execute("BEGIN IMMEDIATE")
        except BaseException:
            self._kv._lock.release()
            raise
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._kv._conn.execute(
            "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
            (memoryview(key), memoryview(value)),
        )

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._kv._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if exc_type is None:
                self._kv._conn.execute("COMMIT")
            else:
                self._kv._conn.execute("ROLLBACK")
        finally:
            self._open = False
            self._kv._lock.release()
        return None


class SQLiteKV:
    """
    SQLite-backed KV. Use `open_sqlite_kv(path)` to construct.
    """

    __slots__ = ("_conn", "_lock")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            cur = self._conn.execute("SELECT v FROM kv WHERE k = ?", (memoryview(key),))
            row = cur.fetchone()
            cur.close()
        return bytes(row[0]) if row is not None else None

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
                (memoryview(key), memoryview(value)),
            )

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Keys with the given binary prefix, in lexicographic order."""
        hi = _prefix_hi(prefix)
        if hi is not None:
            sql = "SELECT k, v FROM kv WHERE k >= ? AND k < ? ORDER BY k"
            args: tuple = (memoryview(prefix), memoryview(hi))
        else:
            sql = "SELECT k, v FROM kv WHERE substr(k,1,?) = ? ORDER BY k"
            args = (len(prefix), memoryview(prefix))
        with self._lock:
            rows = self._conn.execute(sql, args).fetchall()
        for k, v in rows:
            yield bytes(k), bytes(v)

    def batch(self) -> SQLiteBatch:
        return SQLiteBatch(self)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def open_sqlite_kv(
    path: Union[str, "os.PathLike[str]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
) -> SQLiteKV:
    """
    Open (or create) a SQLite KV at `path`. `create=False` raises if the file
    does not exist. ":memory:" gives a private, non-durable store.
    """
    path_str = os.fspath(path)
    if not create and path_str != ":memory:" and not os.path.exists(path_str):
        raise FileNotFoundError(f"SQLite KV not found at {path_str}")
    conn = sqlite3.connect(
        path_str,
        isolation_level=None,      # autocommit; batches BEGIN explicitly
        check_same_thread=False,
    )
    _apply_pragmas(conn, pragmas)
    _migrate(conn)
    return SQLiteKV(conn)


__all__ = ["SQLiteKV", "SQLiteBatch", "open_sqlite_kv"]
