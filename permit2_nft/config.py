"""
permit2_nft.config — deployment settings for the permit engine.

Configuration precedence:
  1) Environment variables (PERMIT2_*)
  2) Hardcoded defaults below

Env vars:
  - PERMIT2_CHAIN_ID            (int)    default: 1
  - PERMIT2_DOMAIN_NAME         (str)    default: "Permit2"
  - PERMIT2_DOMAIN_VERSION      (str)    default: unset (no version in the domain)
  - PERMIT2_VERIFYING_CONTRACT  (addr)   default: canonical Permit2 address
  - PERMIT2_NONCE_DB            (path)   default: unset (in-memory nonces)
  - PERMIT2_LOG_LEVEL           (str)    default: INFO
  - PERMIT2_LOG_FORMAT          (text|json) default: text

Usage:
    from permit2_nft.config import load_config
    CFG = load_config()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .types import Address, checksum, to_address

DEFAULT_CHAIN_ID = 1
DEFAULT_DOMAIN_NAME = "Permit2"
DEFAULT_VERIFYING_CONTRACT = "0x000000000022D473030F116dDEE9F6B43aC78BA3"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "text"


# ----------------------------- helpers ---------------------------------------


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = env.get(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _env_int(env: Mapping[str, str], name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = _env_str(env, name)
    if raw is None:
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    if v < min_v:
        return min_v
    if v > max_v:
        return max_v
    return v


def _env_path(env: Mapping[str, str], name: str) -> Optional[Path]:
    raw = _env_str(env, name)
    if raw is None:
        return None
    return Path(raw).expanduser()


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class PermitConfig:
    chain_id: int
    domain_name: str
    domain_version: Optional[str]
    verifying_contract: Address
    nonce_db_path: Optional[Path]
    log_level: str
    log_format: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "domain_name": self.domain_name,
            "domain_version": self.domain_version,
            "verifying_contract": checksum(self.verifying_contract),
            "nonce_db_path": str(self.nonce_db_path) if self.nonce_db_path else None,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


def config_from_env(env: Mapping[str, str]) -> PermitConfig:
    """Build a PermitConfig from an explicit environment mapping."""
    log_format = (_env_str(env, "PERMIT2_LOG_FORMAT") or DEFAULT_LOG_FORMAT).lower()
    if log_format not in ("text", "json"):
        log_format = DEFAULT_LOG_FORMAT
    return PermitConfig(
        chain_id=_env_int(env, "PERMIT2_CHAIN_ID", DEFAULT_CHAIN_ID, min_v=0, max_v=(1 << 256) - 1),
        domain_name=_env_str(env, "PERMIT2_DOMAIN_NAME") or DEFAULT_DOMAIN_NAME,
        domain_version=_env_str(env, "PERMIT2_DOMAIN_VERSION"),
        verifying_contract=to_address(
            _env_str(env, "PERMIT2_VERIFYING_CONTRACT") or DEFAULT_VERIFYING_CONTRACT,
            name="PERMIT2_VERIFYING_CONTRACT",
        ),
        nonce_db_path=_env_path(env, "PERMIT2_NONCE_DB"),
        log_level=(_env_str(env, "PERMIT2_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        log_format=log_format,
    )


@lru_cache(maxsize=1)
def load_config() -> PermitConfig:
    """Build and cache a PermitConfig from the process environment."""
    return config_from_env(os.environ)


__all__ = ["PermitConfig", "config_from_env", "load_config"]
