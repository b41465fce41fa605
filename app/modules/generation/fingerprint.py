from __future__ import annotations

import hashlib


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 text; used for dedup and audit only."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
