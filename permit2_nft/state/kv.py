"""
KV interface for permit state
=============================

Backend-agnostic key–value protocols used by the nonce registry and the
reference ledger, plus an in-memory backend for tests and embedded use.

Keys and values are raw bytes. Integers are stored big-endian, fixed width,
so keys sort lexicographically in numeric order.

Batching
--------
`KV.batch()` returns a context manager; writes inside it apply atomically
(all or none) on backends that support transactions:

>>> kv = InMemoryKV()
>>> with kv.batch() as b:
...     b.put(b"a", b"1")
...     b.delete(b"b")

Typing
------
Protocols (PEP 544) so backends can be duck-typed.
"""

from __future__ import annotations

import threading
from typing import (Dict, Iterator, List, Optional, Protocol, Tuple,
                    runtime_checkable)

# ---------------------------------------------------------------------------
# Fixed-width integer helpers
# ---------------------------------------------------------------------------


def be_uint(n: int, width: int) -> bytes:
    if not (0 <= n < (1 << (8 * width))):
        raise ValueError(f"value out of range for {width}-byte field")
    return int(n).to_bytes(width, "big")


def be_u256(n: int) -> bytes:
    return be_uint(n, 32)


def from_be(b: Optional[bytes]) -> int:
    """Decode big-endian unsigned; missing/empty values read as zero."""
    if not b:
        return 0
    return int.from_bytes(b, "big")


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Batch(Protocol):
    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(Protocol):
    def get(self, key: bytes) -> Optional[bytes]: ...
    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]: ...
    def batch(self) -> Batch: ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class _MemoryBatch:
    """Stages writes and applies them under the store lock on clean exit."""

    __slots__ = ("_kv", "_ops")

    def __init__(self, kv: "InMemoryKV") -> None:
        self._kv = kv
        self._ops: List[Tuple[bytes, Optional[bytes]]] = []

    def __enter__(self) -> "_MemoryBatch":
        self._ops = []
        return self

    def put(self, key: bytes, value: bytes) -> None:
        self._ops.append((bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        self._ops.append((bytes(key), None))

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self._kv._apply(self._ops)
        self._ops = []
        return None


class InMemoryKV:
    """Thread-safe dict-backed KV with ordered prefix iteration."""

    __slots__ = ("_m", "_lock")

    def __init__(self) -> None:
        self._m: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._m.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._m[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._m.pop(key, None)

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        with self._lock:
            items = sorted((k, v) for k, v in self._m.items() if k.startswith(prefix))
        yield from items

    def batch(self) -> _MemoryBatch:
        return _MemoryBatch(self)

    def __len__(self) -> int:
        return len(self._m)

    def _apply(self, ops: List[Tuple[bytes, Optional[bytes]]]) -> None:
        with self._lock:
            for k, v in ops:
                if v is None:
                    self._m.pop(k, None)
                else:
                    self._m[k] = v


__all__ = [
    "be_uint",
    "be_u256",
    "from_be",
    "Batch",
    "KV",
    "InMemoryKV",
]
