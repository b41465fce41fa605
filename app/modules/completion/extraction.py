"""Structured-output extraction for model responses.

Providers do not always honour the requested JSON schema. Extraction runs an
ordered chain of pure strategies over the raw message content and keeps the
first one that succeeds:

1. the whole content parsed as JSON;
2. the inside of the first fenced code block (```json ... ``` or ``` ... ```);
3. the greedy ``{...}`` span, then the greedy ``[...]`` span;
4. loosely formatted text, either ``Flashcard N`` headed blocks with
   ``Front:``/``Back:`` lines or sequential ``Front|Question|Q:`` /
   ``Back|Answer|A:`` lines, optionally bulleted or numbered.

When every strategy fails the caller gets a ``PARSE_ERROR`` carrying a short
excerpt of the content, never the full payload.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError

from app.core.logging import get_logger
from app.modules.completion.errors import CompletionError, CompletionErrorCode
from app.modules.completion.models import (
    CompletionResult,
    FlashcardBatch,
    GeneratedFlashcard,
)

logger = get_logger(__name__)

EXCERPT_LENGTH = 200

_FENCED_BLOCK = re.compile(r"```(?:[A-Za-z0-9_+-]+)?\s*([\s\S]*?)```")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")

# A heading line such as "**Flashcard 1**", "## Flashcard 2:" or "Flashcard 3"
_CARD_MARKER = re.compile(
    r"^[ \t]*(?:\*\*|#+[ \t]*)?Flashcard[ \t]+\d+[ \t]*:?(?:\*\*)?:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_BLOCK_FRONT = re.compile(
    r"(?:^|\n)\s*(?:[*-]\s*)?Front:\s*(.+?)(?=\n\s*(?:[*-]\s*)?Back:)",
    re.IGNORECASE | re.DOTALL,
)
_BLOCK_BACK = re.compile(
    r"(?:^|\n)[ \t]*(?:[*-][ \t]*)?Back:[ \t]*([^\n]+)", re.IGNORECASE
)
_LINE_FRONT = (
    re.compile(r"^(?:[*-]\s*)?(?:Front|Question|Q):\s*(.+)$", re.IGNORECASE),
    re.compile(r"^\d+[.)]\s*(?:Front|Question|Q):\s*(.+)$", re.IGNORECASE),
)
_LINE_BACK = (
    re.compile(r"^(?:[*-]\s*)?(?:Back|Answer|A):\s*(.+)$", re.IGNORECASE),
    re.compile(r"^\d+[.)]\s*(?:Back|Answer|A):\s*(.+)$", re.IGNORECASE),
)


@dataclass(frozen=True)
class ParseOutcome:
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


Strategy = Callable[[str], ParseOutcome]


def _loads(text: str) -> ParseOutcome:
    try:
        return ParseOutcome(value=json.loads(text))
    except (json.JSONDecodeError, TypeError) as e:
        return ParseOutcome(error=str(e))


def parse_direct(content: str) -> ParseOutcome:
    return _loads(content)


def parse_fenced_block(content: str) -> ParseOutcome:
    match = _FENCED_BLOCK.search(content)
    if not match:
        return ParseOutcome(error="no fenced code block")
    return _loads(match.group(1).strip())


def parse_embedded_json(content: str) -> ParseOutcome:
    last_error = "no JSON object or array found"
    for pattern in (_OBJECT_SPAN, _ARRAY_SPAN):
        match = pattern.search(content)
        if not match:
            continue
        outcome = _loads(match.group(0))
        if outcome.ok:
            return outcome
        last_error = outcome.error or last_error
    return ParseOutcome(error=last_error)


def _parse_marked_blocks(content: str) -> list[dict[str, str]]:
    cards: list[dict[str, str]] = []
    if not _CARD_MARKER.search(content):
        return cards
    for block in _CARD_MARKER.split(content):
        if not block.strip():
            continue
        front = _BLOCK_FRONT.search(block)
        back = _BLOCK_BACK.search(block)
        if front and back:
            cards.append(
                {"front": front.group(1).strip(), "back": back.group(1).strip()}
            )
    return cards


def _match_any(patterns: tuple[re.Pattern[str], ...], line: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.match(line)
        if match:
            return match.group(1).strip()
    return None


def _parse_labelled_lines(content: str) -> list[dict[str, str]]:
    cards: list[dict[str, str]] = []
    current_front: Optional[str] = None
    for raw_line in content.splitlines():
        line = raw_line.strip()
        front = _match_any(_LINE_FRONT, line)
        if front:
            current_front = front
            continue
        if current_front is None:
            continue
        back = _match_any(_LINE_BACK, line)
        if back:
            cards.append({"front": current_front, "back": back})
            current_front = None
    return cards


def parse_loose_text(content: str) -> ParseOutcome:
    cards = _parse_marked_blocks(content) or _parse_labelled_lines(content)
    if not cards:
        return ParseOutcome(error="no front/back pairs found")
    return ParseOutcome(value={"flashcards": cards})


STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("direct", parse_direct),
    ("fenced_block", parse_fenced_block),
    ("embedded_json", parse_embedded_json),
    ("loose_text", parse_loose_text),
)


def extract_structured(
    content: Optional[str],
    strategies: tuple[tuple[str, Strategy], ...] = STRATEGIES,
) -> CompletionResult[Any]:
    """Run the strategy chain and return the first parsed payload."""
    if not content or not content.strip():
        return CompletionResult.failure(
            CompletionError(
                CompletionErrorCode.PARSE_ERROR, "No content in API response", 500
            )
        )

    first_error: Optional[str] = None
    for name, strategy in strategies:
        outcome = strategy(content)
        if outcome.ok:
            logger.debug("Parsed model output with %s strategy", name)
            return CompletionResult.success(outcome.value)
        if first_error is None:
            first_error = outcome.error

    return CompletionResult.failure(
        CompletionError(
            CompletionErrorCode.PARSE_ERROR,
            "Failed to parse JSON from API response",
            500,
            details={
                "content": content[:EXCERPT_LENGTH],
                "parse_error": first_error,
            },
        )
    )


def coerce_flashcards(payload: Any) -> CompletionResult[list[GeneratedFlashcard]]:
    """Validate an extracted payload as a flashcard list.

    Accepts ``{"flashcards": [...]}`` or a bare list. Cards whose front or
    back is blank after trimming are dropped.
    """
    if isinstance(payload, list):
        payload = {"flashcards": payload}
    try:
        batch = FlashcardBatch.model_validate(payload)
    except ValidationError as e:
        return CompletionResult.failure(
            CompletionError(
                CompletionErrorCode.VALIDATION_ERROR,
                "Response did not match the flashcard schema",
                500,
                details={"errors": e.errors(include_url=False, include_input=False)},
            )
        )

    cards = [
        GeneratedFlashcard(front=c.front.strip(), back=c.back.strip())
        for c in batch.flashcards
        if c.front.strip() and c.back.strip()
    ]
    return CompletionResult.success(cards)


__all__ = [
    "ParseOutcome",
    "STRATEGIES",
    "parse_direct",
    "parse_fenced_block",
    "parse_embedded_json",
    "parse_loose_text",
    "extract_structured",
    "coerce_flashcards",
]
