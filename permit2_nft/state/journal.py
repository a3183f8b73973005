"""
permit2_nft.state.journal — checkpointed writes over a KV backend.

A stack of overlays layered over any `KV`. With no open checkpoint, writes go
straight to the backend. `begin()` pushes an overlay; writes land in the top
overlay and reads consult overlays from top → base. `commit()` merges the top
overlay into the next layer, or applies it to the backend in one batch if it
was the outermost. `revert()` discards the top overlay.

    j = Journal(kv)
    j.begin()
    j.put(key, value)
    j.commit()          # or j.revert()

Deletions are staged as `None` markers so they shadow base values until
commit.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .kv import KV

_Overlay = Dict[bytes, Optional[bytes]]


def _b(x: bytes | bytearray | memoryview, *, name: str) -> bytes:
    if not isinstance(x, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like")
    return bytes(x)


class Journal:
    def __init__(self, kv: KV) -> None:
        self.kv = kv
        self._stack: List[_Overlay] = []
        self._lock = threading.RLock()

    # --- checkpoints ---

    def depth(self) -> int:
        return len(self._stack)

    def begin(self) -> None:
        with self._lock:
            self._stack.append({})

    def commit(self) -> None:
        with self._lock:
            if not self._stack:
                raise RuntimeError("commit() without matching begin()")
            top = self._stack.pop()
            if self._stack:
                self._stack[-1].update(top)
                return
            if not top:
                return
            with self.kv.batch() as b:
                for k, v in top.items():
                    if v is None:
                        b.delete(k)
                    else:
                        b.put(k, v)

    def revert(self) -> None:
        with self._lock:
            if not self._stack:
                raise RuntimeError("revert() without matching begin()")
            self._stack.pop()

    # --- reads/writes ---

    def get(self, key: bytes) -> Optional[bytes]:
        k = _b(key, name="key")
        with self._lock:
            for layer in reversed(self._stack):
                if k in layer:
                    return layer[k]
            return self.kv.get(k)

    def put(self, key: bytes, value: bytes) -> None:
        k = _b(key, name="key")
        v = _b(value, name="value")
        with self._lock:
            if self._stack:
                self._stack[-1][k] = v
            else:
                self.kv.put(k, v)

    def delete(self, key: bytes) -> None:
        k = _b(key, name="key")
        with self._lock:
            if self._stack:
                self._stack[-1][k] = None
            else:
                self.kv.delete(k)


__all__ = ["Journal"]
