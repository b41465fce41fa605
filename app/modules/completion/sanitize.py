from __future__ import annotations

import re

MAX_INPUT_LENGTH = 100_000

_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_input(text: str, max_length: int = MAX_INPUT_LENGTH) -> str:
    """Drop NUL bytes, cap the length and collapse whitespace runs."""
    cleaned = text.replace("\x00", "")
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]
    return _WHITESPACE_RUN.sub(" ", cleaned).strip()
