"""
permit2_nft.domain — EIP-712 domain separation.

The value an owner signs is

    keccak(b"\\x19\\x01" || domain_separator || struct_hash)

where `struct_hash` comes from `permit2_nft.hashing`. The separator binds a
signature to one deployed instance (name, optional version, chain id and
verifying contract). Signing and verification must use the same domain or
every signature is rejected as coming from the wrong signer.

Two flavours:

- EIP712Domain: an immutable domain; the separator is computed once.
- DomainSeparatorCache: caches the separator for the chain id it was built
  for and recomputes it when the chain id source reports a different value,
  so signatures made for one side of a chain split do not verify on the other.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from eth_abi import encode
from eth_utils import keccak

from .types import Address, to_address

EIP712_DOMAIN_TYPE = "EIP712Domain(string name,uint256 chainId,address verifyingContract)"
EIP712_DOMAIN_TYPE_VERSIONED = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)

EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)
EIP712_DOMAIN_TYPEHASH_VERSIONED = keccak(text=EIP712_DOMAIN_TYPE_VERSIONED)

_PREFIX = b"\x19\x01"


def build_domain_separator(
    name: str,
    chain_id: int,
    verifying_contract: Address,
    version: Optional[str] = None,
) -> bytes:
    contract = to_address(verifying_contract, name="verifying_contract")
    if version is None:
        return keccak(
            encode(
                ["bytes32", "bytes32", "uint256", "address"],
                [EIP712_DOMAIN_TYPEHASH, keccak(text=name), int(chain_id), contract],
            )
        )
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                EIP712_DOMAIN_TYPEHASH_VERSIONED,
                keccak(text=name),
                keccak(text=version),
                int(chain_id),
                contract,
            ],
        )
    )


def wrap_typed_data(domain_separator: bytes, struct_hash: bytes) -> bytes:
    if len(domain_separator) != 32 or len(struct_hash) != 32:
        raise ValueError("domain separator and struct hash must be 32 bytes")
    return keccak(_PREFIX + domain_separator + struct_hash)


@dataclass(frozen=True)
class EIP712Domain:
    name: str
    chain_id: int
    verifying_contract: Address
    version: Optional[str] = None
    _separator: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.chain_id < 0:
            raise ValueError("chain_id must be non-negative")
        object.__setattr__(
            self, "verifying_contract", to_address(self.verifying_contract, name="verifying_contract")
        )
        object.__setattr__(
            self,
            "_separator",
            build_domain_separator(self.name, self.chain_id, self.verifying_contract, self.version),
        )

    @property
    def separator(self) -> bytes:
        return self._separator

    def hash_typed_data(self, struct_hash: bytes) -> bytes:
        return wrap_typed_data(self._separator, struct_hash)


class DomainSeparatorCache:
    """
    Domain whose chain id is read from `chain_id_source` on every use.

    The separator is recomputed only when the observed chain id differs from
    the cached one.
    """

    def __init__(
        self,
        name: str,
        verifying_contract: Address,
        chain_id_source: Callable[[], int],
        version: Optional[str] = None,
    ) -> None:
        self.name = name
        self.version = version
        self.verifying_contract = to_address(verifying_contract, name="verifying_contract")
        self._chain_id_source = chain_id_source
        self._lock = threading.Lock()
        self._cached_chain_id = int(chain_id_source())
        self._cached = build_domain_separator(
            name, self._cached_chain_id, self.verifying_contract, version
        )

    @property
    def chain_id(self) -> int:
        return int(self._chain_id_source())

    @property
    def separator(self) -> bytes:
        current = self.chain_id
        with self._lock:
            if current != self._cached_chain_id:
                self._cached = build_domain_separator(
                    self.name, current, self.verifying_contract, self.version
                )
                self._cached_chain_id = current
            return self._cached

    def hash_typed_data(self, struct_hash: bytes) -> bytes:
        return wrap_typed_data(self.separator, struct_hash)


Domain = Union[EIP712Domain, DomainSeparatorCache]


__all__ = [
    "EIP712_DOMAIN_TYPE",
    "EIP712_DOMAIN_TYPE_VERSIONED",
    "EIP712_DOMAIN_TYPEHASH",
    "EIP712_DOMAIN_TYPEHASH_VERSIONED",
    "build_domain_separator",
    "wrap_typed_data",
    "EIP712Domain",
    "DomainSeparatorCache",
    "Domain",
]
