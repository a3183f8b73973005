"""
permit2_nft.nonces — unordered nonce bitmaps.

Each owner has a sparse map of 256-bit words. A nonce names one bit:

    word_pos = nonce >> 8         (248-bit index)
    bit_pos  = nonce & 0xFF

A set bit means the nonce is spent. Owners may sign permits with nonces in
any order; each nonce is accepted at most once. Bits are only ever set, never
cleared, so a spent or invalidated nonce stays unusable forever.

Storage layout (through a `Journal` over any `KV`):

    key   = namespace || b":" || owner (20) || word_pos (31, big-endian)
    value = word (32, big-endian)

Missing keys read as zero.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from .errors import InvalidNonce
from .events import EVT_UNORDERED_NONCE_INVALIDATION, EventLog
from .state.journal import Journal
from .state.kv import KV, InMemoryKV, be_u256, be_uint, from_be
from .types import Address, check_uint256, to_address

log = logging.getLogger(__name__)

WORD_POS_LIMIT = 1 << 248
_WORD_POS_BYTES = 31


def bitmap_positions(nonce: int) -> Tuple[int, int]:
    """Split a nonce into (word_pos, bit_pos)."""
    n = check_uint256(nonce, name="nonce")
    return n >> 8, n & 0xFF


class NonceRegistry:
    """
    Per-owner nonce bitmaps with atomic check-and-set.

    Parameters
    ----------
    kv : KV | None
        Backing store; defaults to a fresh InMemoryKV.
    events : EventLog | None
        Where invalidation events go; defaults to a private log.
    namespace : bytes
        Key prefix, so several registries can share one store.
    """

    def __init__(
        self,
        kv: Optional[KV] = None,
        *,
        events: Optional[EventLog] = None,
        namespace: bytes = b"nonce",
    ) -> None:
        self.journal = Journal(kv if kv is not None else InMemoryKV())
        self.events = events if events is not None else EventLog()
        self._ns = bytes(namespace) + b":"
        self._lock = threading.RLock()

    def _key(self, owner: Address, word_pos: int) -> bytes:
        return self._ns + owner + be_uint(word_pos, _WORD_POS_BYTES)

    def _read(self, owner: Address, word_pos: int) -> int:
        return from_be(self.journal.get(self._key(owner, word_pos)))

    def _write(self, owner: Address, word_pos: int, word: int) -> None:
        self.journal.put(self._key(owner, word_pos), be_u256(word))

    # --- views ---

    def nonce_bitmap(self, owner: Address, word_pos: int) -> int:
        o = to_address(owner, name="owner")
        if not (0 <= word_pos < WORD_POS_LIMIT):
            raise ValueError("word_pos out of range")
        with self._lock:
            return self._read(o, word_pos)

    def is_used(self, owner: Address, nonce: int) -> bool:
        word_pos, bit_pos = bitmap_positions(nonce)
        return bool(self.nonce_bitmap(owner, word_pos) >> bit_pos & 1)

    # --- mutations ---

    def consume(self, owner: Address, nonce: int) -> None:
        """
        Spend `nonce` for `owner`. Raises InvalidNonce, writing nothing, if the
        bit is already set.
        """
        o = to_address(owner, name="owner")
        word_pos, bit_pos = bitmap_positions(nonce)
        bit = 1 << bit_pos
        with self._lock:
            flipped = self._read(o, word_pos) ^ bit
            if flipped & bit == 0:
                raise InvalidNonce(owner=o, nonce=nonce)
            self._write(o, word_pos, flipped)

    def invalidate(self, owner: Address, word_pos: int, mask: int) -> int:
        """
        OR `mask` into the word at `word_pos`; returns the resulting word.
        Already-set bits stay set, so repeating a call changes nothing.
        """
        o = to_address(owner, name="owner")
        check_uint256(word_pos, name="word_pos")
        check_uint256(mask, name="mask")
        if word_pos >= WORD_POS_LIMIT:
            raise ValueError("word_pos out of range")
        with self._lock:
            word = self._read(o, word_pos) | mask
            self._write(o, word_pos, word)
            self.events.emit(
                EVT_UNORDERED_NONCE_INVALIDATION,
                {"owner": o, "word": word_pos, "mask": mask},
            )
        log.info(
            "nonces invalidated",
            extra={"owner": "0x" + o.hex(), "word_pos": word_pos, "mask": hex(mask)},
        )
        return word

    # --- checkpoints ---

    def begin(self) -> None:
        self.journal.begin()

    def commit(self) -> None:
        self.journal.commit()

    def revert(self) -> None:
        self.journal.revert()


__all__ = ["WORD_POS_LIMIT", "bitmap_positions", "NonceRegistry"]
