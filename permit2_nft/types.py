"""
permit2_nft.types — permit data model.

All structures are immutable, call-scoped values. Construction validates and
normalizes fields so the hasher and validator can assume canonical input:

- Addresses: accepted as 20-byte `bytes` or `0x` hex (lowercase or EIP-55
  checksummed) and stored as canonical 20-byte `bytes`.
- Integers: plain `int` (not `bool`) in the uint256 range.

Shapes
------
TokenPermission          {token, token_id}
PermitTransferFrom       {permitted: TokenPermission, nonce, deadline}
PermitBatchTransferFrom  {permitted: (TokenPermission, ...), nonce, deadline}
SignatureTransferDetails {to, requested_amount}       (spender-supplied, unsigned)

`Permit` is the tagged variant over the two permit shapes; hashing and
validation dispatch on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from eth_utils import to_canonical_address, to_checksum_address

UINT256_MAX = (1 << 256) - 1
ADDRESS_LENGTH = 20
ZERO_ADDRESS = b"\x00" * ADDRESS_LENGTH

Address = bytes


def to_address(value: Any, *, name: str = "address") -> Address:
    """Normalize an address-like value into canonical 20 bytes."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        b = bytes(value)
        if len(b) != ADDRESS_LENGTH:
            raise ValueError(f"{name} must be {ADDRESS_LENGTH} bytes, got {len(b)}")
        return b
    if isinstance(value, str):
        try:
            return bytes(to_canonical_address(value))
        except ValueError as exc:
            raise ValueError(f"{name} is not a valid address: {value!r}") from exc
    raise TypeError(f"{name} must be bytes or hex str, got {type(value).__name__}")


def check_uint256(value: Any, *, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} out of uint256 range")
    return int(value)


def checksum(address: Address) -> str:
    """EIP-55 rendering, for logs and JSON views."""
    return to_checksum_address(address)


# ---------------------------------------------------------------------------
# Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPermission:
    """
    Which asset may move. For non-fungible assets `token_id` is both the item
    identifier and the signed "amount" the spender must echo back.
    """

    token: Address
    token_id: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "token", to_address(self.token, name="token"))
        object.__setattr__(self, "token_id", check_uint256(self.token_id, name="token_id"))

    def to_dict(self) -> Dict[str, Any]:
        return {"token": checksum(self.token), "tokenId": self.token_id}


@dataclass(frozen=True)
class PermitTransferFrom:
    permitted: TokenPermission
    nonce: int
    deadline: int

    def __post_init__(self) -> None:
        if not isinstance(self.permitted, TokenPermission):
            raise TypeError("permitted must be a TokenPermission")
        object.__setattr__(self, "nonce", check_uint256(self.nonce, name="nonce"))
        object.__setattr__(self, "deadline", check_uint256(self.deadline, name="deadline"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permitted": self.permitted.to_dict(),
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass(frozen=True)
class PermitBatchTransferFrom:
    """One signature and one nonce over an ordered list of permissions."""

    permitted: Tuple[TokenPermission, ...]
    nonce: int
    deadline: int

    def __post_init__(self) -> None:
        items = tuple(self.permitted)
        for i, p in enumerate(items):
            if not isinstance(p, TokenPermission):
                raise TypeError(f"permitted[{i}] must be a TokenPermission")
        object.__setattr__(self, "permitted", items)
        object.__setattr__(self, "nonce", check_uint256(self.nonce, name="nonce"))
        object.__setattr__(self, "deadline", check_uint256(self.deadline, name="deadline"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permitted": [p.to_dict() for p in self.permitted],
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass(frozen=True)
class SignatureTransferDetails:
    """Where the spender sends one permitted item, and the id it claims to move."""

    to: Address
    requested_amount: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "to", to_address(self.to, name="to"))
        object.__setattr__(
            self, "requested_amount", check_uint256(self.requested_amount, name="requested_amount")
        )


Permit = Union[PermitTransferFrom, PermitBatchTransferFrom]


@dataclass(frozen=True)
class TransferOutcome:
    """
    Result of a successful permit call.

    transferred : indices dispatched to the ledger (always (0,) for a single permit)
    skipped     : batch indices opted out through the zero sentinel
    """

    digest: bytes
    owner: Address
    spender: Address
    nonce: int
    transferred: Tuple[int, ...]
    skipped: Tuple[int, ...] = ()


__all__ = [
    "UINT256_MAX",
    "ADDRESS_LENGTH",
    "ZERO_ADDRESS",
    "Address",
    "to_address",
    "check_uint256",
    "checksum",
    "TokenPermission",
    "PermitTransferFrom",
    "PermitBatchTransferFrom",
    "SignatureTransferDetails",
    "Permit",
    "TransferOutcome",
]
