from __future__ import annotations

import pytest

from permit2_nft.domain import EIP712Domain
from permit2_nft.events import EventLog
from permit2_nft.ledger import InMemoryNFTLedger
from permit2_nft.logging import clear_context
from permit2_nft.nonces import NonceRegistry
from permit2_nft.validator import PermitValidator

from . import (CHAIN_ID, NOW, OWNER_ADDRESS, PERMIT2_ADDRESS, TOKEN_A,
               TOKEN_B)


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _clean_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def domain() -> EIP712Domain:
    return EIP712Domain("Permit2", CHAIN_ID, PERMIT2_ADDRESS)


@pytest.fixture
def ledger() -> InMemoryNFTLedger:
    """Owner holds TOKEN_A #0..#3 and TOKEN_B #7, with the validator approved for all."""
    led = InMemoryNFTLedger(operator=PERMIT2_ADDRESS)
    for token_id in range(4):
        led.mint(TOKEN_A, OWNER_ADDRESS, token_id)
    led.mint(TOKEN_B, OWNER_ADDRESS, 7)
    led.set_approval_for_all(OWNER_ADDRESS, PERMIT2_ADDRESS, True)
    return led


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def nonces(events: EventLog) -> NonceRegistry:
    return NonceRegistry(events=events)


@pytest.fixture
def validator(ledger, domain, nonces, clock) -> PermitValidator:
    return PermitValidator(ledger=ledger, domain=domain, nonces=nonces, clock=clock)
