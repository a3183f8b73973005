"""
permit2_nft.logging
-------------------

Structured logs for permit decisions. Each call to the validator binds the
fields that identify it (owner, spender, nonce, op) into a context-local
scope, so every record emitted while the call runs carries them, in either
JSON lines or a one-line text form. Addresses and other byte values render
as 0x-hex.

    from permit2_nft import logging as plog

    plog.configure(json=True, level="INFO")
    with plog.bound(owner=owner, nonce=7):
        plog.get_logger(__name__).info("permit accepted")
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

ROOT_LOGGER = "permit2_nft"

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_PERMIT2_LOG_CONTEXT", default={})

# rendered first and in this order by the text formatter
DEFAULT_CONTEXT_KEYS = ("chain_id", "owner", "spender", "nonce", "op")

# attributes every LogRecord has; anything else came in through `extra=`
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def _coerce_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return "0x" + bytes(v).hex()
    return str(v)


def context() -> Dict[str, Any]:
    """Return a copy of the active logging context."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    cur = dict(_LOG_CONTEXT.get())
    cur.update({k: _coerce_value(v) for k, v in fields.items()})
    _LOG_CONTEXT.set(cur)


def unbind(*keys: str) -> None:
    cur = dict(_LOG_CONTEXT.get())
    for k in keys:
        cur.pop(k, None)
    _LOG_CONTEXT.set(cur)


def clear_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def bound(**fields: Any) -> Iterator[None]:
    """Bind fields for one scope; the previous context comes back on exit."""
    token = _LOG_CONTEXT.set(dict(_LOG_CONTEXT.get()))
    try:
        bind(**fields)
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _coerce_value(v)
        for k, v in record.__dict__.items()
        if not k.startswith("_") and k not in _RECORD_FIELDS
    }


def _timestamp(record: logging.LogRecord) -> str:
    ts = _dt.datetime.fromtimestamp(record.created, _dt.timezone.utc)
    return ts.isoformat(timespec="milliseconds")


def _traceback(record: logging.LogRecord) -> str:
    return "".join(traceback.format_exception(*record.exc_info)).rstrip()


class JSONFormatter(logging.Formatter):
    """One JSON object per line; context fields win over same-named extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(context())
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = _traceback(record)
        return json.dumps(payload, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    """
    ts | LEVEL | logger | owner=0x.. nonce=7 code=3004 | permit rejected
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        fields = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        fields += [f"{k}={v}" for k, v in _extras(record).items() if k not in ctx]

        line = f"{_timestamp(record)} | {record.levelname:<5} | {record.name}"
        if fields:
            line += " | " + " ".join(fields)
        line += f" | {record.getMessage()}"
        if record.exc_info:
            line += "\n" + _traceback(record)
        return line


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: io.TextIOBase = sys.stderr,
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Replace the handlers of `logger_name` (root when None) with one stream handler.

    `json=None` reads PERMIT2_LOG_FORMAT from the environment; anything other
    than "json" selects the text form.
    """
    if json is None:
        json = os.environ.get("PERMIT2_LOG_FORMAT", "").strip().lower() == "json"
    lvl = _coerce_level(level)

    target = logging.getLogger(logger_name)
    target.setLevel(lvl)
    for h in list(target.handlers):
        target.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setLevel(lvl)
    handler.setFormatter(JSONFormatter() if json else TextFormatter())
    target.addHandler(handler)
    return target


def configure_from_config(cfg: Any, *, stream: io.TextIOBase = sys.stderr) -> logging.Logger:
    """Configure the package logger from a PermitConfig and bind its chain id."""
    bind(chain_id=cfg.chain_id)
    return configure(
        json=cfg.log_format == "json",
        level=cfg.log_level,
        stream=stream,
        logger_name=ROOT_LOGGER,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or ROOT_LOGGER)


__all__ = [
    "ROOT_LOGGER",
    "context",
    "bind",
    "unbind",
    "clear_context",
    "bound",
    "JSONFormatter",
    "TextFormatter",
    "configure",
    "configure_from_config",
    "get_logger",
]
