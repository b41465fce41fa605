from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from app.modules.completion import (
    CompletionError,
    FlashcardGenerationOptions,
    OpenRouterClient,
    coerce_flashcards,
    extract_structured,
)
from app.modules.generation.fingerprint import fingerprint


def _load_text(args: argparse.Namespace) -> str:
    if args.text and args.file:
        raise SystemExit("Provide either --text or --file, not both")
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    if args.text:
        return args.text
    raise SystemExit("--text or --file is required")


def _print_error(error: CompletionError) -> None:
    print(json.dumps({"error": error.to_dict()}, indent=2), file=sys.stderr)


async def _generate(args: argparse.Namespace) -> int:
    text = _load_text(args)
    client = OpenRouterClient(timeout=args.timeout)
    options = FlashcardGenerationOptions(
        model=args.model,
        min_flashcards=args.min,
        max_flashcards=args.max,
    )
    result = await client.generate_flashcards(text, options)
    if not result.ok:
        _print_error(result.error)  # type: ignore[arg-type]
        return 1
    print(
        json.dumps(
            {
                "model": result.model,
                "source_text_hash": fingerprint(text),
                "flashcards": [c.model_dump() for c in result.value or []],
            },
            indent=2,
            ensure_ascii=False,
        )
    )
    return 0


def _parse(args: argparse.Namespace) -> int:
    content = Path(args.file).read_text(encoding="utf-8")
    extracted = extract_structured(content)
    if not extracted.ok:
        _print_error(extracted.error)  # type: ignore[arg-type]
        return 1
    cards = coerce_flashcards(extracted.value)
    if not cards.ok:
        _print_error(cards.error)  # type: ignore[arg-type]
        return 1
    print(json.dumps([c.model_dump() for c in cards.value or []], indent=2, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="flashcards-gen", description="Flashcards generator CLI"
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("generate", help="Generate candidate flashcards from study text")
    g.add_argument("--text", "-t", help="Source text")
    g.add_argument("--file", "-f", help="Path to a file containing the source text")
    g.add_argument("--model", "-m", help="Override the provider model")
    g.add_argument("--min", type=int, default=5, help="Minimum flashcards hint")
    g.add_argument("--max", type=int, default=15, help="Maximum flashcards hint")
    g.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")

    p = sub.add_parser(
        "parse", help="Run only the extraction chain over saved model output"
    )
    p.add_argument("--file", "-f", required=True, help="File with raw model output")

    args = parser.parse_args(argv)
    if args.cmd == "generate":
        try:
            return asyncio.run(_generate(args))
        except CompletionError as e:
            _print_error(e)
            return 2
    if args.cmd == "parse":
        return _parse(args)

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
