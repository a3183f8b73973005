"""
Permit errors

Structured exceptions raised by the permit engine. Every failure is immediate
and aborts the whole call; nothing here is retried or downgraded to a warning.
Each exception carries a stable integer code so callers (relayers, indexers,
tests) can classify failures without string-matching.

Hierarchy
---------
PermitError (base)
 ├─ SignatureExpired          : block time is past the permit deadline
 ├─ InvalidAmount             : requested amount/id differs from the signed one
 ├─ LengthMismatch            : batch permitted/transfer-details lengths differ
 ├─ InvalidNonce              : nonce already consumed or invalidated
 ├─ SignatureError
 │   ├─ InvalidSignatureLength: not 65 (r,s,v) or 64 (EIP-2098) bytes
 │   ├─ InvalidSigner         : recovered signer is not the claimed owner
 │   ├─ InvalidSignature      : recovery is impossible (bad v/r/s, off-curve)
 │   └─ InvalidContractSignature : EIP-1271 signer rejected the signature
 └─ LedgerError               : the external ledger refused the transfer

NOTE: Keep this module free of heavy imports; it is used from every layer.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Mapping, Optional


class ErrorCode(IntEnum):
    """Stable error codes for permit-engine exceptions."""
    PERMIT_GENERIC             = 3000
    SIGNATURE_EXPIRED          = 3001
    INVALID_AMOUNT             = 3002
    LENGTH_MISMATCH            = 3003
    INVALID_NONCE              = 3004
    INVALID_SIGNATURE_LENGTH   = 3005
    INVALID_SIGNER             = 3006
    INVALID_SIGNATURE          = 3007
    INVALID_CONTRACT_SIGNATURE = 3008
    LEDGER                     = 3010


def _hex(b: Optional[bytes]) -> Optional[str]:
    return None if b is None else "0x" + bytes(b).hex()


class PermitError(Exception):
    """
    Base class for permit-engine exceptions.

    Parameters
    ----------
    message : str
        Human-readable description.
    code : ErrorCode | int
        Stable code for programmatic handling (default: PERMIT_GENERIC).
    context : Mapping[str, Any] | None
        Optional structured fields (small dict, JSON-friendly).
    cause : BaseException | None
        Optional underlying exception; also set via `raise ... from ...`.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | int = ErrorCode.PERMIT_GENERIC,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: int = int(code)
        self.context: Dict[str, Any] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:  # pragma: no cover - trivial
        tail = f" context={self.context}" if self.context else ""
        return f"[{self.code}] {self.message}{tail}"

    def to_dict(self) -> Dict[str, Any]:
        """Structured view suitable for logs or RPC error `data` fields."""
        out: Dict[str, Any] = {
            "code": self.code,
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.context:
            out["context"] = self.context
        return out


class SignatureExpired(PermitError):
    """Raised when the current time is strictly past the permit deadline."""

    def __init__(self, deadline: int, *, now: Optional[int] = None) -> None:
        self.deadline = int(deadline)
        self.now = now
        ctx: Dict[str, Any] = {"deadline": self.deadline}
        if now is not None:
            ctx["now"] = int(now)
        super().__init__(
            f"Signature expired at {self.deadline}",
            code=ErrorCode.SIGNATURE_EXPIRED,
            context=ctx,
        )


class InvalidAmount(PermitError):
    """
    Raised when a spender-requested amount does not match the signed token id.

    `expected` is the signed `token_id`; `index` is set for batch items.
    """

    def __init__(
        self,
        expected: int,
        *,
        requested: Optional[int] = None,
        index: Optional[int] = None,
    ) -> None:
        self.expected = int(expected)
        self.requested = requested
        self.index = index
        ctx: Dict[str, Any] = {"expected": self.expected}
        if requested is not None:
            ctx["requested"] = int(requested)
        if index is not None:
            ctx["index"] = int(index)
        super().__init__(
            f"Invalid amount, expected {self.expected}",
            code=ErrorCode.INVALID_AMOUNT,
            context=ctx,
        )


class LengthMismatch(PermitError):
    """Raised when a batch has a different number of permissions and transfer details."""

    def __init__(self, *, permitted: int, requested: int) -> None:
        self.permitted = int(permitted)
        self.requested = int(requested)
        super().__init__(
            "Permitted and transfer details lengths differ",
            code=ErrorCode.LENGTH_MISMATCH,
            context={"permitted": self.permitted, "requested": self.requested},
        )


class InvalidNonce(PermitError):
    """Raised when an (owner, nonce) pair has already been consumed or invalidated."""

    def __init__(self, *, owner: Optional[bytes] = None, nonce: Optional[int] = None) -> None:
        self.owner = owner
        self.nonce = nonce
        ctx: Dict[str, Any] = {}
        if owner is not None:
            ctx["owner"] = _hex(owner)
        if nonce is not None:
            ctx["nonce"] = int(nonce)
        super().__init__("Nonce already used", code=ErrorCode.INVALID_NONCE, context=ctx)


class SignatureError(PermitError):
    """Common base for the signature failures below."""


class InvalidSignatureLength(SignatureError):
    def __init__(self, length: int) -> None:
        self.length = int(length)
        super().__init__(
            f"Invalid signature length {self.length}",
            code=ErrorCode.INVALID_SIGNATURE_LENGTH,
            context={"length": self.length},
        )


class InvalidSigner(SignatureError):
    """Recovered signer differs from the claimed one."""

    def __init__(self, *, recovered: bytes, claimed: bytes) -> None:
        self.recovered = bytes(recovered)
        self.claimed = bytes(claimed)
        super().__init__(
            "Recovered signer does not match claimed signer",
            code=ErrorCode.INVALID_SIGNER,
            context={"recovered": _hex(self.recovered), "claimed": _hex(self.claimed)},
        )


class InvalidSignature(SignatureError):
    """Signer recovery is mathematically impossible for this (digest, signature)."""

    def __init__(self, reason: str = "recovery failed", *, cause: Optional[BaseException] = None) -> None:
        self.reason = reason
        super().__init__(
            f"Invalid signature: {reason}",
            code=ErrorCode.INVALID_SIGNATURE,
            context={"reason": reason},
            cause=cause,
        )


class InvalidContractSignature(SignatureError):
    def __init__(self, *, signer: bytes) -> None:
        self.signer = bytes(signer)
        super().__init__(
            "Contract signer rejected the signature",
            code=ErrorCode.INVALID_CONTRACT_SIGNATURE,
            context={"signer": _hex(self.signer)},
        )


class LedgerError(PermitError):
    """
    Raised by a ledger collaborator when it refuses a transfer.

    Context fields
    --------------
    - reason   : short machine-friendly reason ('not-owner', 'not-approved', 'unknown-token', ...)
    - token    : hex token address
    - token_id : asset identifier
    """

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        token: Optional[bytes] = None,
        token_id: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.reason = reason
        base: Dict[str, Any] = {"reason": reason}
        if token is not None:
            base["token"] = _hex(token)
        if token_id is not None:
            base["token_id"] = int(token_id)
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.LEDGER, context=base)

    @classmethod
    def not_owner(cls, *, token: bytes, token_id: int, claimed: bytes) -> "LedgerError":
        return cls(
            "Transfer from address that does not own the token",
            reason="not-owner",
            token=token,
            token_id=token_id,
            context={"claimed": _hex(claimed)},
        )

    @classmethod
    def not_approved(cls, *, token: bytes, token_id: int, operator: bytes) -> "LedgerError":
        return cls(
            "Operator is not approved for this token",
            reason="not-approved",
            token=token,
            token_id=token_id,
            context={"operator": _hex(operator)},
        )

    @classmethod
    def unknown_token(cls, *, token: bytes, token_id: int) -> "LedgerError":
        return cls("Token does not exist", reason="unknown-token", token=token, token_id=token_id)


__all__ = [
    "ErrorCode",
    "PermitError",
    "SignatureExpired",
    "InvalidAmount",
    "LengthMismatch",
    "InvalidNonce",
    "SignatureError",
    "InvalidSignatureLength",
    "InvalidSigner",
    "InvalidSignature",
    "InvalidContractSignature",
    "LedgerError",
]
