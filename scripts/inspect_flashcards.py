"""Quick DB inspector for generations and flashcards.

Summarises generation records, acceptance rates, recent error codes and
flashcard provenance, to sanity check what the generation flow is storing.

Usage:
  uv run scripts/inspect_flashcards.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path so `app` package imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy import select, func

from app.core.db import get_session
from app.core.db.schemas.flashcards import Flashcard
from app.core.db.schemas.generations import Generation, GenerationErrorLog


async def main() -> int:
    async for session in get_session():  # get_session is an async generator
        total_generations = (
            await session.execute(select(func.count(Generation.id)))
        ).scalar() or 0
        total_cards = (
            await session.execute(select(func.count(Flashcard.id)))
        ).scalar() or 0
        total_errors = (
            await session.execute(select(func.count(GenerationErrorLog.id)))
        ).scalar() or 0

        print("Flashcards DB summary:")
        print(f"- Generations: {total_generations}")
        print(f"- Flashcards: {total_cards}")
        print(f"- Generation errors: {total_errors}")

        by_source = await session.execute(
            select(Flashcard.source, func.count(Flashcard.id)).group_by(Flashcard.source)
        )
        rows = by_source.all()
        if rows:
            print("\nFlashcards by source:")
            for source, count in rows:
                print(f"- {getattr(source, 'value', source)}: {count}")

        generated, unedited, edited = (
            await session.execute(
                select(
                    func.coalesce(func.sum(Generation.generated_count), 0),
                    func.coalesce(func.sum(Generation.accepted_unedited_count), 0),
                    func.coalesce(func.sum(Generation.accepted_edited_count), 0),
                )
            )
        ).one()
        if generated:
            rate = (unedited + edited) / generated * 100.0
            print(
                f"\nAcceptance: {unedited + edited}/{generated} ({rate:.1f}%),"
                f" edited {edited}"
            )

        recent_q = (
            select(Generation).order_by(Generation.created_at.desc()).limit(5)
        )
        recent = (await session.execute(recent_q)).scalars().all()
        if recent:
            print("\nRecent generations:")
            for g in recent:
                print(
                    f"- #{g.id} user={g.user_id} model={g.model} "
                    f"cards={g.generated_count} {g.generation_duration}ms "
                    f"hash={g.source_text_hash[:12]}"
                )

        errors_q = (
            select(GenerationErrorLog.error_code, func.count(GenerationErrorLog.id))
            .group_by(GenerationErrorLog.error_code)
            .order_by(func.count(GenerationErrorLog.id).desc())
        )
        error_rows = (await session.execute(errors_q)).all()
        if error_rows:
            print("\nError codes:")
            for code, count in error_rows:
                print(f"- {code}: {count}")

    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
