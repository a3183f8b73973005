"""
permit2_nft.state — storage backends for nonce bitmaps and ledger balances.

- kv      : KV/Batch protocols and the in-memory backend
- sqlite  : durable SQLite backend
- journal : nested checkpoints (begin/commit/revert) over any KV
"""

from .journal import Journal
from .kv import KV, Batch, InMemoryKV, be_u256, be_uint, from_be
from .sqlite import SQLiteKV, open_sqlite_kv

__all__ = [
    "KV",
    "Batch",
    "InMemoryKV",
    "Journal",
    "SQLiteKV",
    "open_sqlite_kv",
    "be_uint",
    "be_u256",
    "from_be",
]
