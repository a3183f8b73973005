from __future__ import annotations

import io
import json
import logging

import pytest

from permit2_nft import logging as plog
from permit2_nft.config import config_from_env
from permit2_nft.errors import ErrorCode, InvalidAmount
from permit2_nft.signing import sign_permit

from . import OWNER_ADDRESS, OWNER_KEY, SPENDER, TOKEN_A, details, single


@pytest.fixture
def stream():
    buf = io.StringIO()
    yield buf
    logger = logging.getLogger("permit2_nft")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def _lines(buf: io.StringIO):
    return [ln for ln in buf.getvalue().splitlines() if ln]


def test_bind_unbind_and_bound():
    plog.bind(owner=b"\x01\x02")
    assert plog.context() == {"owner": "0x0102"}
    with plog.bound(nonce=5):
        assert plog.context() == {"owner": "0x0102", "nonce": 5}
    assert plog.context() == {"owner": "0x0102"}
    plog.unbind("owner")
    assert plog.context() == {}


def test_json_formatter_includes_context_and_extras(stream):
    log = plog.configure(json=True, level="DEBUG", stream=stream, logger_name="permit2_nft")
    with plog.bound(spender="0xabc"):
        log.info("hello", extra={"word_pos": 3})
    rec = json.loads(_lines(stream)[-1])
    assert rec["msg"] == "hello"
    assert rec["level"] == "INFO"
    assert rec["spender"] == "0xabc"
    assert rec["word_pos"] == 3


def test_text_formatter_one_liner(stream):
    log = plog.configure(json=False, level="INFO", stream=stream, logger_name="permit2_nft")
    with plog.bound(owner="0xdead", nonce=9):
        log.info("permit accepted", extra={"code": 0})
    line = _lines(stream)[-1]
    assert "| INFO " in line
    assert "owner=0xdead nonce=9" in line
    assert "code=0" in line
    assert line.endswith("| permit accepted")


def test_configure_from_config_honors_level(stream):
    cfg = config_from_env({"PERMIT2_LOG_LEVEL": "WARNING", "PERMIT2_LOG_FORMAT": "json"})
    log = plog.configure_from_config(cfg, stream=stream)
    assert log.name == "permit2_nft"
    plog.get_logger("permit2_nft.validator").info("quiet")
    plog.get_logger("permit2_nft.validator").warning("loud")
    recs = [json.loads(ln) for ln in _lines(stream)]
    assert [r["msg"] for r in recs] == ["loud"]
    assert recs[0]["chain_id"] == 1


def test_rejection_is_logged_with_code(validator, domain, stream):
    plog.configure(json=True, level="INFO", stream=stream, logger_name="permit2_nft")
    permit = single(TOKEN_A, 1)
    sig = sign_permit(permit, spender=SPENDER, private_key=OWNER_KEY, domain=domain)
    with pytest.raises(InvalidAmount):
        validator.permit_transfer_from(permit, details(2), OWNER_ADDRESS, sig, spender=SPENDER)
    recs = [json.loads(ln) for ln in _lines(stream)]
    rejected = [r for r in recs if r["msg"] == "permit rejected"]
    assert len(rejected) == 1
    assert rejected[0]["code"] == int(ErrorCode.INVALID_AMOUNT)
    assert rejected[0]["error"] == "InvalidAmount"
    assert rejected[0]["owner"] == "0x" + OWNER_ADDRESS.hex()
    assert rejected[0]["nonce"] == 0
    # context is scoped to the call
    assert "owner" not in plog.context()


def test_exception_traceback_is_rendered(stream):
    log = plog.configure(json=True, level="INFO", stream=stream, logger_name="permit2_nft")
    try:
        raise RuntimeError("indexer down")
    except RuntimeError:
        log.exception("event subscriber failed", extra={"event": "UnorderedNonceInvalidation"})
    rec = json.loads(_lines(stream)[-1])
    assert rec["level"] == "ERROR"
    assert rec["event"] == "UnorderedNonceInvalidation"
    assert rec["err"].endswith("RuntimeError: indexer down")
