from __future__ import annotations

import pytest

from permit2_nft.events import EVT_UNORDERED_NONCE_INVALIDATION, Event, EventLog

from . import OWNER_ADDRESS


def test_emit_outside_checkpoint_is_immediate():
    log = EventLog()
    seen = []
    log.subscribe(seen.append)
    evt = log.emit("Ping", {"n": 1})
    assert log.events() == [evt]
    assert seen == [evt]
    assert len(log) == 1


def test_checkpointed_events_publish_on_commit_only():
    log = EventLog()
    seen = []
    log.subscribe(seen.append)
    log.begin()
    log.emit("A")
    assert log.events() == []
    assert seen == []
    log.commit()
    assert [e.name for e in log.events()] == ["A"]
    assert [e.name for e in seen] == ["A"]


def test_reverted_events_are_dropped():
    log = EventLog()
    seen = []
    log.subscribe(seen.append)
    log.begin()
    log.emit("kept")
    log.begin()
    log.emit("dropped")
    log.revert()
    log.commit()
    assert [e.name for e in log.events()] == ["kept"]
    assert [e.name for e in seen] == ["kept"]


def test_unsubscribe_and_clear():
    log = EventLog()
    seen = []
    unsubscribe = log.subscribe(seen.append)
    log.emit("one")
    unsubscribe()
    log.emit("two")
    assert [e.name for e in seen] == ["one"]
    log.clear()
    assert log.events() == []


def test_unbalanced_checkpoint_calls():
    log = EventLog()
    with pytest.raises(RuntimeError):
        log.commit()
    with pytest.raises(RuntimeError):
        log.revert()


def test_to_dict_renders_bytes_as_hex():
    evt = Event(EVT_UNORDERED_NONCE_INVALIDATION, {"owner": OWNER_ADDRESS, "word": 1, "mask": 3})
    assert evt.to_dict() == {
        "event": "UnorderedNonceInvalidation",
        "args": {"owner": "0x" + OWNER_ADDRESS.hex(), "word": 1, "mask": 3},
    }
