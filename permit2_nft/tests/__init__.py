"""
permit2_nft.tests helpers

- Deterministic test defaults (RNG, Hypothesis profile).
- Well-known keys and addresses shared by the test modules.
- Small builders for permits and transfer details.
"""

from __future__ import annotations

import os
import random
from typing import Iterable, Optional

from hypothesis import settings

from permit2_nft.types import (PermitBatchTransferFrom, PermitTransferFrom,
                               SignatureTransferDetails, TokenPermission,
                               to_address)

# ----- Determinism knobs -----
os.environ.setdefault("PYTHONHASHSEED", "0")

DEFAULT_TEST_SEED = int(os.environ.get("PERMIT2_TEST_SEED", "1337"))
random.seed(DEFAULT_TEST_SEED)

# Local: fewer examples for snappy feedback; no global deadline to avoid flakiness on CI
settings.register_profile("local", settings(max_examples=60, deadline=None))
settings.register_profile("ci", settings(max_examples=200, deadline=None))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))

# ----- Keys & addresses -----
# Hardhat/anvil default accounts #0 and #1.
OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = to_address("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266")
OTHER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_ADDRESS = to_address("0x70997970C51812dc3A010C7d01b50e0d17dc79C8")

PERMIT2_ADDRESS = to_address("0x000000000022D473030F116dDEE9F6B43aC78BA3")
SPENDER = to_address("0x" + "5e" * 20)
RECIPIENT = to_address("0x" + "4e" * 20)
TOKEN_A = to_address("0x" + "aa" * 20)
TOKEN_B = to_address("0x" + "bb" * 20)

NOW = 1_700_000_000
CHAIN_ID = 1

# ----- Builders -----


def single(token: bytes = TOKEN_A, token_id: int = 1, *, nonce: int = 0, deadline: Optional[int] = None) -> PermitTransferFrom:
    return PermitTransferFrom(
        permitted=TokenPermission(token, token_id),
        nonce=nonce,
        deadline=NOW + 100 if deadline is None else deadline,
    )


def batch(items: Iterable[tuple], *, nonce: int = 0, deadline: Optional[int] = None) -> PermitBatchTransferFrom:
    return PermitBatchTransferFrom(
        permitted=tuple(TokenPermission(t, i) for t, i in items),
        nonce=nonce,
        deadline=NOW + 100 if deadline is None else deadline,
    )


def details(requested: int, to: bytes = RECIPIENT) -> SignatureTransferDetails:
    return SignatureTransferDetails(to=to, requested_amount=requested)
