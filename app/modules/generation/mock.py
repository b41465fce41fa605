"""Deterministic stand-in for the provider, enabled by GENERATION_MOCK_MODE.

Lets the review and save flow be exercised without spending AI credits. The
output shape matches what ``OpenRouterClient.generate_flashcards`` returns.
"""

from __future__ import annotations

from typing import Optional

from app.modules.completion.models import (
    CompletionResult,
    FlashcardGenerationOptions,
    GeneratedFlashcard,
)

MOCK_MODEL = "mock/flashcards"


class MockFlashcardClient:
    default_model = MOCK_MODEL

    async def generate_flashcards(
        self,
        source_text: str,
        options: Optional[FlashcardGenerationOptions] = None,
    ) -> CompletionResult[list[GeneratedFlashcard]]:
        opts = options or FlashcardGenerationOptions()
        words = source_text.split()
        unique_words = list(dict.fromkeys(words[:50]))
        count = min(max(opts.min_flashcards, len(words) // 100), opts.max_flashcards)

        cards = []
        for i in range(count):
            subset = " ".join(unique_words[i * 3 : i * 3 + 5]) or "this text"
            cards.append(
                GeneratedFlashcard(
                    front=f"Mock Question {i + 1}: What is {subset}?"[:200],
                    back=(
                        f"Mock Answer {i + 1}: A mock flashcard generated from your text "
                        f'about "{subset[:50]}".'
                    )[:500],
                )
            )
        return CompletionResult.success(cards, model=MOCK_MODEL)
