from __future__ import annotations

import pytest

from permit2_nft.errors import (ErrorCode, InvalidAmount,
                                InvalidContractSignature, InvalidNonce,
                                InvalidSignature, InvalidSignatureLength,
                                InvalidSigner, LedgerError, LengthMismatch,
                                PermitError, SignatureError, SignatureExpired)
from permit2_nft.version import __version__, version_info

from . import OTHER_ADDRESS, OWNER_ADDRESS, TOKEN_A


@pytest.mark.parametrize(
    "exc, code",
    [
        (SignatureExpired(10, now=11), ErrorCode.SIGNATURE_EXPIRED),
        (InvalidAmount(3, requested=4, index=1), ErrorCode.INVALID_AMOUNT),
        (LengthMismatch(permitted=2, requested=1), ErrorCode.LENGTH_MISMATCH),
        (InvalidNonce(owner=OWNER_ADDRESS, nonce=7), ErrorCode.INVALID_NONCE),
        (InvalidSignatureLength(66), ErrorCode.INVALID_SIGNATURE_LENGTH),
        (InvalidSigner(recovered=OTHER_ADDRESS, claimed=OWNER_ADDRESS), ErrorCode.INVALID_SIGNER),
        (InvalidSignature("bad v"), ErrorCode.INVALID_SIGNATURE),
        (InvalidContractSignature(signer=TOKEN_A), ErrorCode.INVALID_CONTRACT_SIGNATURE),
        (LedgerError.unknown_token(token=TOKEN_A, token_id=1), ErrorCode.LEDGER),
    ],
)
def test_codes_and_hierarchy(exc, code):
    assert isinstance(exc, PermitError)
    assert exc.code == code
    d = exc.to_dict()
    assert d["code"] == int(code)
    assert d["error"] == type(exc).__name__


def test_signature_errors_share_base():
    for exc in (InvalidSignatureLength(1), InvalidSigner(recovered=TOKEN_A, claimed=OWNER_ADDRESS), InvalidSignature()):
        assert isinstance(exc, SignatureError)


def test_context_is_json_friendly():
    assert InvalidNonce(owner=OWNER_ADDRESS, nonce=7).to_dict()["context"] == {
        "owner": "0x" + OWNER_ADDRESS.hex(),
        "nonce": 7,
    }
    assert SignatureExpired(10).to_dict()["context"] == {"deadline": 10}


def test_cause_is_chained():
    root = ValueError("off curve")
    assert InvalidSignature("recovery failed", cause=root).__cause__ is root


def test_version_override(monkeypatch):
    assert version_info()["version"] == __version__
    monkeypatch.setenv("PERMIT2_VERSION", "0.1.0+dev")
    assert version_info()["full"] == "0.1.0+dev"
