"""
permit2_nft versioning.

- __version__: semantic version of the permit engine
- version_info(): structured dict for logs and diagnostics
"""

from __future__ import annotations

import os

# Bump on any change to type strings, typehashes or the nonce storage layout:
# those invalidate outstanding signatures or persisted bitmaps.
__version__ = "0.1.0"


def version_info() -> dict:
    """
    {
      "module": "permit2_nft",
      "version": "0.1.0",
      "full": "0.1.0"            # PERMIT2_VERSION overrides verbatim
    }
    """
    override = os.getenv("PERMIT2_VERSION")
    return {
        "module": "permit2_nft",
        "version": __version__,
        "full": override.strip() if override else __version__,
    }


__all__ = ["__version__", "version_info"]
