"""
permit2_nft.events — observable effects of owner actions.

The only event today is

    UnorderedNonceInvalidation(owner, word, mask)

emitted when an owner bulk-invalidates nonces. Events are recorded in an
`EventLog`. Inside a checkpoint (`begin()`), emitted events are buffered and
become visible, and reach subscribers, only on the outermost `commit()`; a
`revert()` drops them.

Subscribers are observers: an exception raised by one is logged and does not
reach the emitter, so a committed effect is never reported as a failure.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

EVT_UNORDERED_NONCE_INVALIDATION = "UnorderedNonceInvalidation"

log = logging.getLogger(__name__)


def _b2h(b: bytes) -> str:
    return "0x" + bytes(b).hex()


@dataclass(frozen=True)
class Event:
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view; bytes render as 0x-hex."""
        out: Dict[str, Any] = {}
        for k, v in self.args.items():
            out[k] = _b2h(v) if isinstance(v, (bytes, bytearray, memoryview)) else v
        return {"event": self.name, "args": out}


Subscriber = Callable[[Event], None]


def _publish(events: List[Event], subscribers: List[Subscriber]) -> None:
    for evt in events:
        for fn in subscribers:
            try:
                fn(evt)
            except Exception:
                log.exception("event subscriber failed", extra={"event": evt.name})


class EventLog:
    def __init__(self) -> None:
        self._events: List[Event] = []
        self._pending: List[List[Event]] = []
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    def emit(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Event:
        evt = Event(name, dict(args or {}))
        with self._lock:
            if self._pending:
                self._pending[-1].append(evt)
                return evt
            self._events.append(evt)
            subscribers = list(self._subscribers)
        _publish([evt], subscribers)
        return evt

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register `fn` for committed events. Returns an unsubscribe callable."""
        with self._lock:
            self._subscribers.append(fn)

        def _unsubscribe() -> None:
            with self._lock:
                if fn in self._subscribers:
                    self._subscribers.remove(fn)

        return _unsubscribe

    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    # --- checkpoints ---

    def begin(self) -> None:
        with self._lock:
            self._pending.append([])

    def commit(self) -> None:
        with self._lock:
            if not self._pending:
                raise RuntimeError("commit() without matching begin()")
            top = self._pending.pop()
            if self._pending:
                self._pending[-1].extend(top)
                return
            self._events.extend(top)
            subscribers = list(self._subscribers)
        _publish(top, subscribers)

    def revert(self) -> None:
        with self._lock:
            if not self._pending:
                raise RuntimeError("revert() without matching begin()")
            self._pending.pop()

    def __len__(self) -> int:
        return len(self._events)


__all__ = ["EVT_UNORDERED_NONCE_INVALIDATION", "Event", "EventLog", "Subscriber"]
