"""
permit2_nft.hashing — canonical EIP-712 struct hashes for permits.

Digests are domain-bound only after the outer wrapping in
`permit2_nft.domain.EIP712Domain.hash_typed_data`; this module produces the
inner struct hashes.

Type strings are fixed forever: any change re-keys every typehash and
invalidates all outstanding, unexpired signatures.

    hash_token_permission(p) = keccak(enc(TOKEN_PERMISSIONS_TYPEHASH, token, tokenId))
    hash_single(permit, spender) =
        keccak(enc(PERMIT_TRANSFER_FROM_TYPEHASH, hash_token_permission(permitted),
                   spender, nonce, deadline))
    hash_batch(permit, spender) =
        keccak(enc(PERMIT_BATCH_TRANSFER_FROM_TYPEHASH,
                   keccak(h_0 || h_1 || ... || h_n-1),   # packed 32-byte item digests
                   spender, nonce, deadline))

`enc` is standard (32-byte padded) ABI encoding. The spender is always the
entity presenting the permit and is passed explicitly; it is not a field of
the signed structure.
"""

from __future__ import annotations

from typing import Final

from eth_abi import encode
from eth_utils import keccak

from .types import (Address, Permit, PermitBatchTransferFrom, PermitTransferFrom,
                    TokenPermission, to_address)

# ---------------------------------------------------------------------------
# Canonical type strings & typehashes
# ---------------------------------------------------------------------------

TOKEN_PERMISSIONS_TYPE: Final[str] = "TokenPermissions(address token,uint256 tokenId)"

PERMIT_TRANSFER_FROM_TYPE: Final[str] = (
    "PermitTransferFrom(TokenPermissions permitted,address spender,uint256 nonce,uint256 deadline)"
    + TOKEN_PERMISSIONS_TYPE
)

PERMIT_BATCH_TRANSFER_FROM_TYPE: Final[str] = (
    "PermitBatchTransferFrom(TokenPermissions[] permitted,address spender,uint256 nonce,uint256 deadline)"
    + TOKEN_PERMISSIONS_TYPE
)

TOKEN_PERMISSIONS_TYPEHASH: Final[bytes] = keccak(text=TOKEN_PERMISSIONS_TYPE)
PERMIT_TRANSFER_FROM_TYPEHASH: Final[bytes] = keccak(text=PERMIT_TRANSFER_FROM_TYPE)
PERMIT_BATCH_TRANSFER_FROM_TYPEHASH: Final[bytes] = keccak(text=PERMIT_BATCH_TRANSFER_FROM_TYPE)


# ---------------------------------------------------------------------------
# Struct hashes
# ---------------------------------------------------------------------------


def hash_token_permission(permission: TokenPermission) -> bytes:
    return keccak(
        encode(
            ["bytes32", "address", "uint256"],
            [TOKEN_PERMISSIONS_TYPEHASH, permission.token, permission.token_id],
        )
    )


def hash_single(permit: PermitTransferFrom, spender: Address) -> bytes:
    """Struct hash of a single-item permit as honored by `spender`."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "address", "uint256", "uint256"],
            [
                PERMIT_TRANSFER_FROM_TYPEHASH,
                hash_token_permission(permit.permitted),
                to_address(spender, name="spender"),
                permit.nonce,
                permit.deadline,
            ],
        )
    )


def hash_batch(permit: PermitBatchTransferFrom, spender: Address) -> bytes:
    """
    Struct hash of a batch permit. Item digests are concatenated without
    padding or length prefix, so the result depends on the exact item
    sequence (order and count).
    """
    packed = b"".join(hash_token_permission(p) for p in permit.permitted)
    return keccak(
        encode(
            ["bytes32", "bytes32", "address", "uint256", "uint256"],
            [
                PERMIT_BATCH_TRANSFER_FROM_TYPEHASH,
                keccak(packed),
                to_address(spender, name="spender"),
                permit.nonce,
                permit.deadline,
            ],
        )
    )


def hash_permit(permit: Permit, spender: Address) -> bytes:
    """Dispatch on the permit variant."""
    if isinstance(permit, PermitTransferFrom):
        return hash_single(permit, spender)
    if isinstance(permit, PermitBatchTransferFrom):
        return hash_batch(permit, spender)
    raise TypeError(f"unsupported permit type: {type(permit).__name__}")


__all__ = [
    "TOKEN_PERMISSIONS_TYPE",
    "PERMIT_TRANSFER_FROM_TYPE",
    "PERMIT_BATCH_TRANSFER_FROM_TYPE",
    "TOKEN_PERMISSIONS_TYPEHASH",
    "PERMIT_TRANSFER_FROM_TYPEHASH",
    "PERMIT_BATCH_TRANSFER_FROM_TYPEHASH",
    "hash_token_permission",
    "hash_single",
    "hash_batch",
    "hash_permit",
]
