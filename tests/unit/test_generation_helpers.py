import json

import pytest

from app.modules.completion import FlashcardGenerationOptions
from app.modules.generation import fingerprint
from app.modules.generation.cli import main as cli_main
from app.modules.generation.mock import MOCK_MODEL, MockFlashcardClient


@pytest.mark.unit
def test_fingerprint_is_stable_sha256():
    digest = fingerprint("hello")
    assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"
    assert fingerprint("hello") == digest
    assert fingerprint("hello ") != digest


@pytest.mark.unit
async def test_mock_client_respects_bounds(sample_text):
    result = await MockFlashcardClient().generate_flashcards(
        sample_text, FlashcardGenerationOptions(min_flashcards=3, max_flashcards=4)
    )
    assert result.ok
    assert result.model == MOCK_MODEL
    assert 3 <= len(result.value) <= 4
    assert all(len(c.front) <= 200 and len(c.back) <= 500 for c in result.value)


@pytest.mark.unit
def test_cli_parse_command(tmp_path, capsys):
    raw = tmp_path / "output.txt"
    raw.write_text(
        'Sure!\n```json\n{"flashcards": [{"front": " Q ", "back": "A"}]}\n```',
        encoding="utf-8",
    )
    assert cli_main(["parse", "--file", str(raw)]) == 0
    assert json.loads(capsys.readouterr().out) == [{"front": "Q", "back": "A"}]


@pytest.mark.unit
def test_cli_parse_reports_errors(tmp_path, capsys):
    raw = tmp_path / "output.txt"
    raw.write_text("no cards here", encoding="utf-8")
    assert cli_main(["parse", "--file", str(raw)]) == 1
    error = json.loads(capsys.readouterr().err)["error"]
    assert error["code"] == "PARSE_ERROR"
