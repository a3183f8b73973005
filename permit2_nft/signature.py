"""
permit2_nft.signature — signer recovery and verification.

verify(signature, digest, claimed_signer) succeeds only if `signature` over
`digest` was produced by the key controlling `claimed_signer`.

Accepted encodings (secp256k1 ECDSA):

    65 bytes : r (32) || s (32) || v (1)            v ∈ {27, 28}
    64 bytes : r (32) || vs (32)                    EIP-2098 compact form,
               s = vs & (2**255 - 1), v = 27 + (vs >> 255)

Failure reasons are distinct for diagnosability:

    InvalidSignatureLength : any other length
    InvalidSignature       : recovery impossible (bad v, r/s out of range,
                             r not an x coordinate on the curve, point at infinity)
    InvalidSigner          : recovery worked but yields a different address

Contract signers (EIP-1271): if the claimed signer is registered as a
contract signer, the signature is opaque to us and the contract decides; it
must answer with ERC1271_MAGIC_VALUE or the check fails with
InvalidContractSignature.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol, Tuple, runtime_checkable

from eth_utils import keccak
from py_ecc.secp256k1 import N as SECP256K1_N
from py_ecc.secp256k1 import ecdsa_raw_recover

from .errors import (InvalidContractSignature, InvalidSignature,
                     InvalidSignatureLength, InvalidSigner)
from .types import Address, to_address

log = logging.getLogger(__name__)

SIGNATURE_LENGTH = 65
COMPACT_SIGNATURE_LENGTH = 64
ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")

_UPPER_BIT_MASK = (1 << 255) - 1


@runtime_checkable
class ContractSigner(Protocol):
    """A smart-contract wallet that validates signatures itself (EIP-1271)."""

    def is_valid_signature(self, digest: bytes, signature: bytes) -> bytes: ...


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def split_signature(signature: bytes) -> Tuple[int, int, int]:
    """Return (v, r, s) from a 65-byte or 64-byte compact signature."""
    sig = bytes(signature)
    if len(sig) == SIGNATURE_LENGTH:
        r = int.from_bytes(sig[0:32], "big")
        s = int.from_bytes(sig[32:64], "big")
        v = sig[64]
        return v, r, s
    if len(sig) == COMPACT_SIGNATURE_LENGTH:
        r = int.from_bytes(sig[0:32], "big")
        vs = int.from_bytes(sig[32:64], "big")
        s = vs & _UPPER_BIT_MASK
        v = (vs >> 255) + 27
        return v, r, s
    raise InvalidSignatureLength(len(sig))


def public_key_to_address(x: int, y: int) -> Address:
    return keccak(x.to_bytes(32, "big") + y.to_bytes(32, "big"))[12:]


def recover_signer(digest: bytes, signature: bytes) -> Address:
    """
    Recover the signing address. Mirrors the ecrecover precompile: any input
    for which ecrecover would return the zero address raises InvalidSignature.
    """
    if len(digest) != 32:
        raise ValueError("digest must be 32 bytes")
    v, r, s = split_signature(signature)
    if v not in (27, 28):
        raise InvalidSignature(f"bad recovery id v={v}")
    if not (0 < r < SECP256K1_N) or not (0 < s < SECP256K1_N):
        raise InvalidSignature("r or s out of range")
    try:
        point = ecdsa_raw_recover(bytes(digest), (v, r, s))
    except ValueError as exc:
        raise InvalidSignature("recovery failed", cause=exc) from exc
    if not point:
        raise InvalidSignature("r is not on the curve")
    x, y = point
    if x == 0 and y == 0:
        raise InvalidSignature("recovered point at infinity")
    return public_key_to_address(x, y)


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------


class SignatureVerifier:
    """
    Stateless apart from the optional contract-signer registry.

    Parameters
    ----------
    contract_signers : Mapping[address, ContractSigner] | None
        Addresses that are contracts validating their own signatures.
    """

    def __init__(self, contract_signers: Optional[Mapping[Address, ContractSigner]] = None) -> None:
        self._contract_signers = {
            to_address(k, name="contract signer"): v for k, v in (contract_signers or {}).items()
        }

    def register_contract_signer(self, address: Address, signer: ContractSigner) -> None:
        self._contract_signers[to_address(address, name="contract signer")] = signer

    def verify(self, signature: bytes, digest: bytes, claimed_signer: Address) -> None:
        claimed = to_address(claimed_signer, name="claimed_signer")

        contract = self._contract_signers.get(claimed)
        if contract is not None:
            magic = contract.is_valid_signature(bytes(digest), bytes(signature))
            if bytes(magic) != ERC1271_MAGIC_VALUE:
                raise InvalidContractSignature(signer=claimed)
            return

        recovered = recover_signer(digest, signature)
        if recovered != claimed:
            log.debug(
                "signer mismatch",
                extra={"recovered": "0x" + recovered.hex(), "claimed": "0x" + claimed.hex()},
            )
            raise InvalidSigner(recovered=recovered, claimed=claimed)


__all__ = [
    "SIGNATURE_LENGTH",
    "COMPACT_SIGNATURE_LENGTH",
    "ERC1271_MAGIC_VALUE",
    "ContractSigner",
    "split_signature",
    "public_key_to_address",
    "recover_signer",
    "SignatureVerifier",
]
