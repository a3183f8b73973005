"""
Storage layer: KV backends and the checkpoint journal.

Journal laws:
  - checkpoint → writes → revert  ⇒ state equals baseline
  - checkpoint → writes → commit  ⇒ state equals baseline ∪ writes (last-wins)
  - nested checkpoints behave as a stack (inner revert keeps outer writes)
"""

from __future__ import annotations

from typing import Dict

import pytest
from hypothesis import given
from hypothesis import strategies as st

from permit2_nft.state import (InMemoryKV, Journal, be_u256, from_be,
                               open_sqlite_kv)
from permit2_nft.state.sqlite import _prefix_hi

HKEY = st.binary(min_size=1, max_size=16)
HVAL = st.binary(min_size=1, max_size=32)
MAP_SMALL = st.dictionaries(keys=HKEY, values=HVAL, max_size=12)


def _dump(kv) -> Dict[bytes, bytes]:
    return dict(kv.iter_prefix(b""))


@pytest.fixture(params=["memory", "sqlite"])
def kv(request, tmp_path):
    if request.param == "memory":
        yield InMemoryKV()
    else:
        store = open_sqlite_kv(tmp_path / "nonces.db")
        yield store
        store.close()


# ------------------------------- helpers -------------------------------


def test_be_helpers():
    assert be_u256(1) == b"\x00" * 31 + b"\x01"
    assert from_be(None) == 0
    assert from_be(b"") == 0
    assert from_be(be_u256(2**200)) == 2**200
    with pytest.raises(ValueError):
        be_u256(2**256)


def test_prefix_hi():
    assert _prefix_hi(b"ab\x01") == b"ab\x02"
    assert _prefix_hi(b"a\xff") == b"b"
    assert _prefix_hi(b"\xff\xff") is None
    assert _prefix_hi(b"") is None


# ------------------------------- backends -------------------------------


def test_get_put_delete(kv):
    assert kv.get(b"k") is None
    kv.put(b"k", b"v1")
    kv.put(b"k", b"v2")
    assert kv.get(b"k") == b"v2"
    kv.delete(b"k")
    assert kv.get(b"k") is None


def test_iter_prefix_is_ordered_and_bounded(kv):
    for k in (b"n:\x02", b"n:\x01", b"m:\x00", b"n;", b"n:\xff"):
        kv.put(k, b"x")
    assert [k for k, _ in kv.iter_prefix(b"n:")] == [b"n:\x01", b"n:\x02", b"n:\xff"]


def test_batch_applies_on_success(kv):
    kv.put(b"gone", b"1")
    with kv.batch() as b:
        b.put(b"a", b"1")
        b.delete(b"gone")
    assert kv.get(b"a") == b"1"
    assert kv.get(b"gone") is None


def test_batch_discards_on_error(kv):
    with pytest.raises(RuntimeError):
        with kv.batch() as b:
            b.put(b"a", b"1")
            raise RuntimeError("boom")
    assert kv.get(b"a") is None


def test_sqlite_persists_across_reopen(tmp_path):
    path = tmp_path / "p.db"
    store = open_sqlite_kv(path)
    store.put(b"k", b"v")
    store.close()
    again = open_sqlite_kv(path, create=False)
    assert again.get(b"k") == b"v"
    again.close()


def test_sqlite_missing_file_without_create(tmp_path):
    with pytest.raises(FileNotFoundError):
        open_sqlite_kv(tmp_path / "absent.db", create=False)


# ------------------------------- journal -------------------------------


@given(base=MAP_SMALL, writes=MAP_SMALL)
def test_journal_revert_restores_baseline(base, writes):
    kv = InMemoryKV()
    for k, v in base.items():
        kv.put(k, v)
    j = Journal(kv)
    j.begin()
    for k, v in writes.items():
        j.put(k, v)
    for k in list(base)[:2]:
        j.delete(k)
    j.revert()
    assert _dump(kv) == base


@given(base=MAP_SMALL, writes=MAP_SMALL)
def test_journal_commit_is_last_wins_merge(base, writes):
    kv = InMemoryKV()
    for k, v in base.items():
        kv.put(k, v)
    j = Journal(kv)
    j.begin()
    for k, v in writes.items():
        j.put(k, v)
    j.commit()
    assert _dump(kv) == {**base, **writes}


def test_journal_nested_stack(kv):
    j = Journal(kv)
    j.begin()
    j.put(b"outer", b"1")
    j.begin()
    j.put(b"inner", b"2")
    j.delete(b"outer")
    assert j.get(b"outer") is None
    assert j.depth() == 2
    j.revert()
    assert j.get(b"outer") == b"1"
    assert j.get(b"inner") is None
    assert kv.get(b"outer") is None
    j.commit()
    assert j.depth() == 0
    assert kv.get(b"outer") == b"1"


def test_journal_inner_commit_then_outer_revert(kv):
    j = Journal(kv)
    j.begin()
    j.begin()
    j.put(b"k", b"v")
    j.commit()
    j.revert()
    assert kv.get(b"k") is None


def test_journal_writes_through_without_checkpoint(kv):
    j = Journal(kv)
    j.put(b"k", b"v")
    assert kv.get(b"k") == b"v"
    j.delete(b"k")
    assert kv.get(b"k") is None


def test_journal_unbalanced_calls():
    j = Journal(InMemoryKV())
    with pytest.raises(RuntimeError):
        j.commit()
    with pytest.raises(RuntimeError):
        j.revert()
    with pytest.raises(TypeError):
        j.put("k", b"v")  # type: ignore[arg-type]
