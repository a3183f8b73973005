"""
permit2_nft.validator — signature-based NFT transfers.

A spender presents an owner-signed permit plus its own transfer details. The
validator checks, in order, that the permit is still valid, that the spender
asks for exactly what was signed, that the nonce is fresh, and that the owner
really signed it for this spender. Only then does it ask the ledger to move
the items.

Single permit
-------------
    deadline → amount → nonce → digest → signature → transfer

Batch permit
------------
    deadline → lengths → nonce → digest → signature → per-item (amount, skip, transfer)

A batch item whose requested amount is 0 is skipped (the spender opts out of
it). Because the requested amount must equal the signed token id, that only
happens for token id 0.

Atomicity
---------
Each state-changing call runs in one atomic scope: the nonce journal, the
event log and (when it supports checkpoints) the ledger are checkpointed on
entry, committed on success and reverted on any exception, which is then
re-raised unchanged. Calls on one validator are serialized by a lock.

Commits run nonces first, then the ledger, then events. If a commit itself
fails (a storage error in a KV batch), the parts after it are reverted, so
the worst residue is a consumed nonce with no transfer: the owner signs a
fresh permit. Subscriber failures never fail a call (see events).
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence, Union

from .config import PermitConfig, load_config
from .domain import Domain, EIP712Domain
from .errors import InvalidAmount, LengthMismatch, SignatureExpired
from .events import EventLog
from .hashing import hash_batch, hash_single
from .ledger import Checkpointable, Ledger
from .logging import bound
from .nonces import NonceRegistry
from .signature import SignatureVerifier
from .state.sqlite import open_sqlite_kv
from .types import (Address, Permit, PermitBatchTransferFrom,
                    PermitTransferFrom, SignatureTransferDetails,
                    TransferOutcome, to_address)

log = logging.getLogger(__name__)

Clock = Callable[[], int]
TransferDetails = Union[SignatureTransferDetails, Sequence[SignatureTransferDetails]]


def _system_clock() -> int:
    return int(time.time())


class PermitValidator:
    """
    Parameters
    ----------
    ledger : Ledger
        Where validated transfers are dispatched.
    domain : EIP712Domain | DomainSeparatorCache
        The signing domain shared with permit signers.
    nonces : NonceRegistry | None
        Replay protection; defaults to an in-memory registry.
    verifier : SignatureVerifier | None
        Defaults to a verifier with no contract signers.
    clock : Callable[[], int] | None
        Current time in seconds; defaults to the system clock.
    events : EventLog | None
        Event sink; defaults to the nonce registry's log.
    """

    def __init__(
        self,
        *,
        ledger: Ledger,
        domain: Domain,
        nonces: Optional[NonceRegistry] = None,
        verifier: Optional[SignatureVerifier] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        if nonces is None:
            nonces = NonceRegistry(events=events if events is not None else EventLog())
        elif events is not None and events is not nonces.events:
            raise ValueError("events must be the log the nonce registry emits to")
        self.ledger = ledger
        self.domain = domain
        self.nonces = nonces
        self.events = nonces.events
        self.verifier = verifier if verifier is not None else SignatureVerifier()
        self._clock = clock if clock is not None else _system_clock
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls,
        cfg: Optional[PermitConfig] = None,
        *,
        ledger: Ledger,
        verifier: Optional[SignatureVerifier] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
    ) -> "PermitValidator":
        """Wire domain and nonce storage from a PermitConfig (default: the environment)."""
        cfg = cfg if cfg is not None else load_config()
        domain = EIP712Domain(
            name=cfg.domain_name,
            chain_id=cfg.chain_id,
            verifying_contract=cfg.verifying_contract,
            version=cfg.domain_version,
        )
        kv = open_sqlite_kv(cfg.nonce_db_path) if cfg.nonce_db_path else None
        nonces = NonceRegistry(kv, events=events if events is not None else EventLog())
        return cls(ledger=ledger, domain=domain, nonces=nonces, verifier=verifier, clock=clock)

    # --- views ---

    @property
    def domain_separator(self) -> bytes:
        return self.domain.separator

    def nonce_bitmap(self, owner: Address, word_pos: int) -> int:
        return self.nonces.nonce_bitmap(owner, word_pos)

    # --- atomic scope ---

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        with self._lock:
            parts: List[Checkpointable] = [self.nonces]
            if isinstance(self.ledger, Checkpointable):
                parts.append(self.ledger)
            parts.append(self.events)
            for p in parts:
                p.begin()
            try:
                yield
            except BaseException as exc:
                for p in reversed(parts):
                    p.revert()
                log.info(
                    "permit rejected",
                    extra={"code": getattr(exc, "code", None), "error": type(exc).__name__},
                )
                raise
            # Nonces commit first: a failing later commit can burn a nonce
            # but never leave a moved item with a reusable signature.
            # A part whose commit raises has already dropped its own layer.
            done = 0
            try:
                for p in parts:
                    p.commit()
                    done += 1
            except BaseException:
                for p in reversed(parts[done + 1:]):
                    p.revert()
                log.error("permit commit failed", extra={"committed": done}, exc_info=True)
                raise

    # --- entry points ---

    def permit_transfer_from(
        self,
        permit: Permit,
        transfer_details: TransferDetails,
        owner: Address,
        signature: bytes,
        *,
        spender: Address,
    ) -> TransferOutcome:
        """
        Transfer the items `permit` covers from `owner`, as `spender` asks.

        A PermitTransferFrom takes one SignatureTransferDetails; a
        PermitBatchTransferFrom takes a sequence of them. Anything else is a
        TypeError. Raises a PermitError subclass (or the ledger's error) and
        leaves no state change behind when any check fails.
        """
        o = to_address(owner, name="owner")
        s = to_address(spender, name="spender")
        batch = isinstance(permit, PermitBatchTransferFrom)
        if isinstance(permit, PermitTransferFrom):
            if not isinstance(transfer_details, SignatureTransferDetails):
                raise TypeError("single permit requires one SignatureTransferDetails")
        elif batch:
            if isinstance(transfer_details, SignatureTransferDetails) or not isinstance(
                transfer_details, (list, tuple)
            ):
                raise TypeError("batch permit requires a sequence of SignatureTransferDetails")
            transfer_details = tuple(transfer_details)
            for i, d in enumerate(transfer_details):
                if not isinstance(d, SignatureTransferDetails):
                    raise TypeError(f"transfer_details[{i}] must be a SignatureTransferDetails")
        else:
            raise TypeError(f"unsupported permit type {type(permit).__name__}")

        with bound(owner=o, spender=s, nonce=permit.nonce, op="transfer"):
            with self._atomic():
                if batch:
                    outcome = self._transfer_batch(permit, transfer_details, o, bytes(signature), s)
                else:
                    outcome = self._transfer_single(permit, transfer_details, o, bytes(signature), s)
            log.debug(
                "permit accepted",
                extra={"transferred": list(outcome.transferred), "skipped": list(outcome.skipped)},
            )
        return outcome

    def invalidate_unordered_nonces(self, word_pos: int, mask: int, *, caller: Address) -> int:
        """Mark every nonce in `mask` at `word_pos` as spent for `caller`. Returns the new word."""
        c = to_address(caller, name="caller")
        with bound(owner=c, op="invalidate"):
            with self._atomic():
                return self.nonces.invalidate(c, word_pos, mask)

    # --- paths ---

    def _check_deadline(self, deadline: int) -> None:
        now = int(self._clock())
        if now > deadline:
            raise SignatureExpired(deadline, now=now)

    def _transfer_single(
        self,
        permit: PermitTransferFrom,
        details: SignatureTransferDetails,
        owner: Address,
        signature: bytes,
        spender: Address,
    ) -> TransferOutcome:
        self._check_deadline(permit.deadline)

        token_id = permit.permitted.token_id
        if details.requested_amount != token_id:
            raise InvalidAmount(token_id, requested=details.requested_amount)

        self.nonces.consume(owner, permit.nonce)

        digest = self.domain.hash_typed_data(hash_single(permit, spender))
        self.verifier.verify(signature, digest, owner)

        self.ledger.transfer_from(permit.permitted.token, owner, details.to, token_id)
        return TransferOutcome(
            digest=digest, owner=owner, spender=spender, nonce=permit.nonce, transferred=(0,)
        )

    def _transfer_batch(
        self,
        permit: PermitBatchTransferFrom,
        details: Sequence[SignatureTransferDetails],
        owner: Address,
        signature: bytes,
        spender: Address,
    ) -> TransferOutcome:
        self._check_deadline(permit.deadline)

        if len(permit.permitted) != len(details):
            raise LengthMismatch(permitted=len(permit.permitted), requested=len(details))

        self.nonces.consume(owner, permit.nonce)

        digest = self.domain.hash_typed_data(hash_batch(permit, spender))
        self.verifier.verify(signature, digest, owner)

        transferred: List[int] = []
        skipped: List[int] = []
        for i, (permission, d) in enumerate(zip(permit.permitted, details)):
            if d.requested_amount != permission.token_id:
                raise InvalidAmount(permission.token_id, requested=d.requested_amount, index=i)
            if d.requested_amount == 0:
                skipped.append(i)
                continue
            self.ledger.transfer_from(permission.token, owner, d.to, permission.token_id)
            transferred.append(i)

        return TransferOutcome(
            digest=digest,
            owner=owner,
            spender=spender,
            nonce=permit.nonce,
            transferred=tuple(transferred),
            skipped=tuple(skipped),
        )


__all__ = ["PermitValidator"]
