from __future__ import annotations

from typing import Any

FLASHCARD_SCHEMA_NAME = "flashcard_array"

FLASHCARD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "flashcards": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "front": {
                        "type": "string",
                        "description": "The question or prompt for the flashcard",
                    },
                    "back": {
                        "type": "string",
                        "description": "The answer or explanation for the flashcard",
                    },
                },
                "required": ["front", "back"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["flashcards"],
    "additionalProperties": False,
}


def build_system_prompt(min_flashcards: int, max_flashcards: int) -> str:
    return (
        "You are an expert flashcard generator. Your task is to create high-quality "
        "flashcard questions and answers based on provided source material.\n\n"
        "CRITICAL: You MUST respond with ONLY valid JSON in this exact format, with no "
        "additional text, markdown, or formatting:\n"
        '{\n  "flashcards": [\n    {\n      "front": "question text here",\n'
        '      "back": "answer text here"\n    }\n  ]\n}\n\n'
        "Requirements:\n"
        f"- Generate between {min_flashcards}-{max_flashcards} flashcard pairs\n"
        "- Each question (front) should be clear, concise, and testable\n"
        "- Each answer (back) should be accurate and comprehensive but concise\n"
        "- Keep each front under 200 characters and each back under 500 characters\n"
        "- Avoid trivial or obvious questions\n"
        "- Focus on key concepts, definitions, and relationships\n"
        "- Use varied question types (what, why, how, when, etc.)\n"
        "- Return ONLY the JSON object, no markdown code blocks, no additional text"
    )


def build_user_prompt(source_text: str) -> str:
    return (
        "Generate flashcards from the following text and return them in the "
        f"specified JSON format:\n\n{source_text}"
    )
