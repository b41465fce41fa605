import json

import pytest

from app.modules.completion import CompletionErrorCode
from app.modules.completion.extraction import (
    coerce_flashcards,
    extract_structured,
    parse_embedded_json,
    parse_fenced_block,
    parse_loose_text,
)


CARDS = {"flashcards": [{"front": "What is ATP?", "back": "The cell's energy currency"}]}


@pytest.mark.unit
def test_direct_json_is_parsed():
    result = extract_structured(json.dumps(CARDS))
    assert result.ok
    assert result.value == CARDS


@pytest.mark.unit
def test_fenced_block_wins_over_earlier_brace():
    content = (
        "Sure { here is what you asked for\n"
        "```json\n" + json.dumps(CARDS) + "\n```\n"
        "Let me know if you need more."
    )
    result = extract_structured(content)
    assert result.ok
    assert result.value == CARDS


@pytest.mark.unit
def test_fenced_block_without_language_tag():
    outcome = parse_fenced_block("```\n[1, 2]\n```")
    assert outcome.ok
    assert outcome.value == [1, 2]


@pytest.mark.unit
def test_embedded_object_in_prose():
    content = "Here you go: " + json.dumps(CARDS) + " hope it helps"
    result = extract_structured(content)
    assert result.ok
    assert result.value == CARDS


@pytest.mark.unit
def test_embedded_array_used_when_no_object():
    outcome = parse_embedded_json('cards: ["a", "b"] done')
    assert outcome.ok
    assert outcome.value == ["a", "b"]


@pytest.mark.unit
def test_marked_blocks_are_parsed():
    content = (
        "**Flashcard 1**\nFront: What is osmosis?\nBack: Diffusion of water.\n\n"
        "**Flashcard 2**\nFront: What is a cell?\nBack: The basic unit of life."
    )
    result = extract_structured(content)
    assert result.ok
    assert result.value == {
        "flashcards": [
            {"front": "What is osmosis?", "back": "Diffusion of water."},
            {"front": "What is a cell?", "back": "The basic unit of life."},
        ]
    }


TWO_CARDS = {
    "flashcards": [
        {"front": "What is osmosis?", "back": "Diffusion of water."},
        {"front": "What is a cell?", "back": "The basic unit of life."},
    ]
}


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "Here are your flashcards:\n"
        "Front: What is osmosis?\nBack: Diffusion of water.\n"
        "Front: What is a cell?\nBack: The basic unit of life.",
        "1. Front: What is osmosis?\n   Back: Diffusion of water.\n"
        "2. Front: What is a cell?\n   Back: The basic unit of life.",
        "1. Front: What is osmosis?\n1. Back: Diffusion of water.\n"
        "2) Front: What is a cell?\n2) Back: The basic unit of life.",
        "Flashcard 1\nFront: What is osmosis?\nBack: Diffusion of water.\n\n"
        "Flashcard 2\nFront: What is a cell?\nBack: The basic unit of life.",
        "## Flashcard 1:\n* Front: What is osmosis?\n* Back: Diffusion of water.\n"
        "## Flashcard 2:\n* Front: What is a cell?\n* Back: The basic unit of life.\n",
    ],
    ids=["plain", "numbered", "numbered-both", "bare-heading", "hash-heading"],
)
def test_loose_formats_keep_cards_apart(content):
    result = extract_structured(content)
    assert result.ok
    assert result.value == TWO_CARDS


@pytest.mark.unit
def test_back_stops_at_end_of_line_inside_a_block():
    content = (
        "**Flashcard 1**\n* Front: What is osmosis?\n* Back: Diffusion of water.\n"
        "Some closing remark from the model."
    )
    outcome = parse_loose_text(content)
    assert outcome.value["flashcards"] == [
        {"front": "What is osmosis?", "back": "Diffusion of water."}
    ]


@pytest.mark.unit
def test_labelled_lines_are_parsed():
    content = "Q: Capital of France?\nA: Paris\n\nQuestion: 2 + 2?\nAnswer: 4"
    outcome = parse_loose_text(content)
    assert outcome.ok
    assert outcome.value["flashcards"] == [
        {"front": "Capital of France?", "back": "Paris"},
        {"front": "2 + 2?", "back": "4"},
    ]


@pytest.mark.unit
def test_unparseable_content_reports_short_excerpt():
    content = "nothing structured here at all. " * 50
    result = extract_structured(content)
    assert not result.ok
    assert result.error.code is CompletionErrorCode.PARSE_ERROR
    assert len(result.error.details["content"]) <= 200
    assert result.error.details["parse_error"]


@pytest.mark.unit
@pytest.mark.parametrize("content", [None, "", "   \n"])
def test_empty_content(content):
    result = extract_structured(content)
    assert not result.ok
    assert result.error.message == "No content in API response"


@pytest.mark.unit
def test_coerce_accepts_bare_list_and_drops_blank_cards():
    result = coerce_flashcards(
        [{"front": "  Q1 ", "back": " A1 "}, {"front": "   ", "back": "A2"}]
    )
    assert result.ok
    assert [(c.front, c.back) for c in result.value] == [("Q1", "A1")]


@pytest.mark.unit
def test_coerce_rejects_wrong_shape():
    result = coerce_flashcards({"flashcards": [{"question": "Q"}]})
    assert not result.ok
    assert result.error.code is CompletionErrorCode.VALIDATION_ERROR
    assert not result.error.is_retryable()
