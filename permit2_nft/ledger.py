"""
permit2_nft.ledger — the asset registry the validator dispatches to.

The validator only needs

    transfer_from(token, from_, to, token_id)

which must raise if `from_` does not own the item or has not approved the
validator as operator. Ledgers that also implement `begin/commit/revert`
(`Checkpointable`) take part in the validator's atomic scope, so a batch that
fails half-way leaves no partial transfers behind.

`InMemoryNFTLedger` is an ERC-721 style reference ledger used by tests and
embedders. Ownership and approvals live in a `Journal` over any KV:

    own:<token><id32>            -> owner (20)
    bal:<token><owner>           -> count (32)
    apr:<token><id32>            -> approved spender (20)
    all:<owner><operator>        -> b"\\x01"
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol, runtime_checkable

from .errors import LedgerError
from .state.journal import Journal
from .state.kv import KV, InMemoryKV, be_u256, from_be
from .types import ZERO_ADDRESS, Address, check_uint256, to_address

log = logging.getLogger(__name__)


@runtime_checkable
class Ledger(Protocol):
    def transfer_from(self, token: Address, from_: Address, to: Address, token_id: int) -> None: ...


@runtime_checkable
class Checkpointable(Protocol):
    def begin(self) -> None: ...
    def commit(self) -> None: ...
    def revert(self) -> None: ...


class InMemoryNFTLedger:
    """
    Parameters
    ----------
    operator : address
        The account allowed to move tokens on owners' behalf (the validator's
        own address). Owners must approve it per token or for all tokens.
    kv : KV | None
        Backing store; defaults to a fresh InMemoryKV.
    """

    def __init__(self, operator: Address, kv: Optional[KV] = None) -> None:
        self.operator = to_address(operator, name="operator")
        self.journal = Journal(kv if kv is not None else InMemoryKV())
        self._lock = threading.RLock()

    # --- keys ---

    @staticmethod
    def _k_owner(token: Address, token_id: int) -> bytes:
        return b"own:" + token + be_u256(token_id)

    @staticmethod
    def _k_balance(token: Address, owner: Address) -> bytes:
        return b"bal:" + token + owner

    @staticmethod
    def _k_approval(token: Address, token_id: int) -> bytes:
        return b"apr:" + token + be_u256(token_id)

    @staticmethod
    def _k_all(owner: Address, operator: Address) -> bytes:
        return b"all:" + owner + operator

    def _set_balance(self, token: Address, owner: Address, delta: int) -> None:
        key = self._k_balance(token, owner)
        self.journal.put(key, be_u256(from_be(self.journal.get(key)) + delta))

    # --- views ---

    def owner_of(self, token: Address, token_id: int) -> Address:
        t = to_address(token, name="token")
        tid = check_uint256(token_id, name="token_id")
        with self._lock:
            raw = self.journal.get(self._k_owner(t, tid))
        if raw is None:
            raise LedgerError.unknown_token(token=t, token_id=tid)
        return raw

    def balance_of(self, token: Address, owner: Address) -> int:
        t = to_address(token, name="token")
        o = to_address(owner, name="owner")
        with self._lock:
            return from_be(self.journal.get(self._k_balance(t, o)))

    def get_approved(self, token: Address, token_id: int) -> Optional[Address]:
        t = to_address(token, name="token")
        tid = check_uint256(token_id, name="token_id")
        with self._lock:
            return self.journal.get(self._k_approval(t, tid))

    def is_approved_for_all(self, owner: Address, operator: Address) -> bool:
        o = to_address(owner, name="owner")
        op = to_address(operator, name="operator")
        with self._lock:
            return self.journal.get(self._k_all(o, op)) is not None

    # --- mutations ---

    def mint(self, token: Address, to: Address, token_id: int) -> None:
        t = to_address(token, name="token")
        dst = to_address(to, name="to")
        tid = check_uint256(token_id, name="token_id")
        if dst == ZERO_ADDRESS:
            raise LedgerError("Cannot mint to the zero address", reason="zero-address", token=t, token_id=tid)
        with self._lock:
            if self.journal.get(self._k_owner(t, tid)) is not None:
                raise LedgerError("Token already minted", reason="exists", token=t, token_id=tid)
            self.journal.put(self._k_owner(t, tid), dst)
            self._set_balance(t, dst, +1)

    def approve(self, owner: Address, spender: Address, token_id: int, *, token: Address) -> None:
        t = to_address(token, name="token")
        o = to_address(owner, name="owner")
        s = to_address(spender, name="spender")
        with self._lock:
            if self.owner_of(t, token_id) != o:
                raise LedgerError.not_owner(token=t, token_id=token_id, claimed=o)
            self.journal.put(self._k_approval(t, token_id), s)

    def set_approval_for_all(self, owner: Address, operator: Address, approved: bool) -> None:
        key = self._k_all(to_address(owner, name="owner"), to_address(operator, name="operator"))
        with self._lock:
            if approved:
                self.journal.put(key, b"\x01")
            else:
                self.journal.delete(key)

    def transfer_from(self, token: Address, from_: Address, to: Address, token_id: int) -> None:
        t = to_address(token, name="token")
        src = to_address(from_, name="from")
        dst = to_address(to, name="to")
        tid = check_uint256(token_id, name="token_id")
        if dst == ZERO_ADDRESS:
            raise LedgerError("Cannot transfer to the zero address", reason="zero-address", token=t, token_id=tid)
        with self._lock:
            if self.owner_of(t, tid) != src:
                raise LedgerError.not_owner(token=t, token_id=tid, claimed=src)
            approved = self.journal.get(self._k_approval(t, tid))
            if approved != self.operator and not self.is_approved_for_all(src, self.operator):
                raise LedgerError.not_approved(token=t, token_id=tid, operator=self.operator)
            self.journal.delete(self._k_approval(t, tid))
            self.journal.put(self._k_owner(t, tid), dst)
            self._set_balance(t, src, -1)
            self._set_balance(t, dst, +1)
        log.debug(
            "token transferred",
            extra={"token": "0x" + t.hex(), "token_id": tid, "from": "0x" + src.hex(), "to": "0x" + dst.hex()},
        )

    # --- checkpoints ---

    def begin(self) -> None:
        self.journal.begin()

    def commit(self) -> None:
        self.journal.commit()

    def revert(self) -> None:
        self.journal.revert()


__all__ = ["Ledger", "Checkpointable", "InMemoryNFTLedger"]
