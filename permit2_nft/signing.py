"""
permit2_nft.signing — off-chain helpers for owners and integrators.

Produces signatures the validator accepts:

    sign_permit(permit, spender=..., private_key=..., domain=...)  -> 65 bytes
    to_compact(signature)                                          -> 64 bytes (EIP-2098)

Signatures are low-s with v ∈ {27, 28}. Keys are raw 32 bytes or hex strings.
Never use these helpers with keys you do not control; they exist for wallets,
tooling and tests.
"""

from __future__ import annotations

from typing import Union

from py_ecc.secp256k1 import ecdsa_raw_sign, privtopub

from .domain import Domain
from .errors import InvalidSignatureLength
from .hashing import hash_permit
from .signature import COMPACT_SIGNATURE_LENGTH, SIGNATURE_LENGTH, public_key_to_address
from .types import Address, Permit, to_address

PrivateKey = Union[bytes, str]


def _key_bytes(private_key: PrivateKey) -> bytes:
    if isinstance(private_key, str):
        h = private_key[2:] if private_key.startswith(("0x", "0X")) else private_key
        private_key = bytes.fromhex(h)
    key = bytes(private_key)
    if len(key) != 32:
        raise ValueError("private key must be 32 bytes")
    return key


def private_key_to_address(private_key: PrivateKey) -> Address:
    x, y = privtopub(_key_bytes(private_key))
    return public_key_to_address(x, y)


def sign_digest(digest: bytes, private_key: PrivateKey) -> bytes:
    """Sign a 32-byte digest; returns r || s || v."""
    if len(digest) != 32:
        raise ValueError("digest must be 32 bytes")
    v, r, s = ecdsa_raw_sign(bytes(digest), _key_bytes(private_key))
    return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])


def to_compact(signature: bytes) -> bytes:
    """Convert a 65-byte signature to its EIP-2098 64-byte form."""
    sig = bytes(signature)
    if len(sig) == COMPACT_SIGNATURE_LENGTH:
        return sig
    if len(sig) != SIGNATURE_LENGTH:
        raise InvalidSignatureLength(len(sig))
    v = sig[64]
    if v not in (27, 28):
        raise ValueError(f"cannot compact signature with v={v}")
    s = int.from_bytes(sig[32:64], "big")
    if s >> 255:
        raise ValueError("high-s signatures have no compact form")
    vs = ((v - 27) << 255) | s
    return sig[0:32] + vs.to_bytes(32, "big")


def permit_digest(permit: Permit, *, spender: Address, domain: Domain) -> bytes:
    """The exact 32-byte value an owner signs for `permit` honored by `spender`."""
    return domain.hash_typed_data(hash_permit(permit, to_address(spender, name="spender")))


def sign_permit(
    permit: Permit,
    *,
    spender: Address,
    private_key: PrivateKey,
    domain: Domain,
) -> bytes:
    return sign_digest(permit_digest(permit, spender=spender, domain=domain), private_key)


__all__ = [
    "PrivateKey",
    "private_key_to_address",
    "sign_digest",
    "to_compact",
    "permit_digest",
    "sign_permit",
]
