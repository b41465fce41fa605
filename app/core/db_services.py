"""Database service classes for generations, error logs and flashcards."""

from __future__ import annotations

import math
import random
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db.schemas.flashcards import Flashcard, FlashcardSource
from app.core.db.schemas.generations import Generation, GenerationErrorLog
from app.core.db.schemas.reviews import SpacedRepetitionState, utc_today
from app.core.logging import get_logger

logger = get_logger(__name__)


class RecordNotFoundError(LookupError):
    pass


class OwnershipViolationError(PermissionError):
    pass


class GenerationRecordService:
    """Service for generation records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_generation(
        self,
        *,
        user_id: int,
        model: str,
        source_text_hash: str,
        source_text_length: int,
        generated_count: int,
        generation_duration: int,
    ) -> Generation:
        record = Generation(
            user_id=user_id,
            model=model,
            source_text_hash=source_text_hash,
            source_text_length=source_text_length,
            generated_count=generated_count,
            generation_duration=generation_duration,
        )
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def get_generation(self, generation_id: int) -> Optional[Generation]:
        result = await self.session.execute(
            select(Generation).where(Generation.id == generation_id)
        )
        return result.scalar_one_or_none()

    async def get_owned_generation(
        self, generation_id: int, user_id: int
    ) -> Optional[Generation]:
        """Return the generation only if it belongs to ``user_id``."""
        result = await self.session.execute(
            select(Generation).where(
                Generation.id == generation_id, Generation.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def record_acceptance(
        self, generation: Generation, *, unedited: int, edited: int
    ) -> Generation:
        generation.accepted_unedited_count = (
            generation.accepted_unedited_count or 0
        ) + unedited
        generation.accepted_edited_count = (generation.accepted_edited_count or 0) + edited
        generation.accepted_at = datetime.utcnow()
        await self.session.flush()
        return generation


class GenerationErrorLogService:
    """Writes error logs in their own session.

    The request session is rolled back when the generation error propagates,
    so logs written there would be lost.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def log_error(
        self,
        *,
        user_id: int,
        model: str,
        source_text_hash: str,
        source_text_length: int,
        error_code: str,
        error_message: str,
    ) -> bool:
        """Persist one failure.

        Never raises: a failed write is logged and reported as False so it
        cannot replace the error being recorded.
        """
        try:
            async with self.session_factory() as session:
                session.add(
                    GenerationErrorLog(
                        user_id=user_id,
                        model=model,
                        source_text_hash=source_text_hash,
                        source_text_length=source_text_length,
                        error_code=error_code,
                        error_message=error_message[:2000],
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write generation error log",
                extra={"user_id": user_id},
            )
            return False
        return True

    async def list_for_user(
        self, user_id: int, *, limit: int = 20
    ) -> Sequence[GenerationErrorLog]:
        async with self.session_factory() as session:
            rows = await session.execute(
                select(GenerationErrorLog)
                .where(GenerationErrorLog.user_id == user_id)
                .order_by(GenerationErrorLog.created_at.desc())
                .limit(limit)
            )
            return rows.scalars().all()


class FlashcardService:
    """Service for stored flashcards, scoped to their owner."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_batch(
        self,
        *,
        user_id: int,
        generation_id: Optional[int],
        items: Iterable[dict[str, Any]],
    ) -> list[Flashcard]:
        cards = [
            Flashcard(
                user_id=user_id,
                generation_id=generation_id,
                front=item["front"],
                back=item["back"],
                source=FlashcardSource(item["source"]),
            )
            for item in items
        ]
        self.session.add_all(cards)
        self.session.add_all(
            SpacedRepetitionState(user_id=user_id, flashcard=card) for card in cards
        )
        await self.session.commit()
        for card in cards:
            await self.session.refresh(card)
        return cards

    async def create(
        self,
        *,
        user_id: int,
        front: str,
        back: str,
        source: FlashcardSource = FlashcardSource.MANUAL,
        generation_id: Optional[int] = None,
    ) -> Flashcard:
        created = await self.create_batch(
            user_id=user_id,
            generation_id=generation_id,
            items=[{"front": front, "back": back, "source": source}],
        )
        return created[0]

    async def list_paginated(
        self,
        *,
        user_id: int,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
    ) -> tuple[Sequence[Flashcard], int]:
        """Return one page of the user's flashcards (newest first) and the total."""
        filters = [Flashcard.user_id == user_id]
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(Flashcard.front.ilike(pattern), Flashcard.back.ilike(pattern)))

        total = (
            await self.session.execute(select(func.count(Flashcard.id)).where(*filters))
        ).scalar() or 0

        rows = await self.session.execute(
            select(Flashcard)
            .where(*filters)
            .order_by(Flashcard.created_at.desc(), Flashcard.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return rows.scalars().all(), total

    async def get_owned(self, flashcard_id: int, user_id: int) -> Flashcard:
        card = await self.session.get(Flashcard, flashcard_id)
        if card is None or card.user_id != user_id:
            raise RecordNotFoundError(f"Flashcard {flashcard_id} not found")
        return card

    async def update(
        self,
        flashcard_id: int,
        user_id: int,
        *,
        front: Optional[str] = None,
        back: Optional[str] = None,
    ) -> Flashcard:
        card = await self.session.get(Flashcard, flashcard_id)
        if card is None:
            raise RecordNotFoundError(f"Flashcard {flashcard_id} not found")
        if card.user_id != user_id:
            raise OwnershipViolationError(f"Flashcard {flashcard_id} is not owned by caller")

        changed = False
        if front is not None and front != card.front:
            card.front = front
            changed = True
        if back is not None and back != card.back:
            card.back = back
            changed = True
        if changed and card.source is FlashcardSource.AI_GENERATED:
            card.source = FlashcardSource.AI_EDITED

        await self.session.commit()
        await self.session.refresh(card)
        return card

    async def delete(self, flashcard_id: int, user_id: int) -> None:
        card = await self.get_owned(flashcard_id, user_id)
        await self.session.delete(card)
        await self.session.commit()


class ReviewScheduleService:
    """Spaced-repetition queries over the caller's flashcards."""

    def __init__(self, session: AsyncSession, rng: Optional[random.Random] = None):
        self.session = session
        self.rng = rng or random.Random()

    async def due_for_review(
        self, user_id: int, review_date: Optional[date] = None
    ) -> list[Flashcard]:
        """Cards whose next review date is ``review_date`` (UTC today) or earlier, shuffled."""
        review_date = review_date or utc_today()
        rows = await self.session.execute(
            select(Flashcard)
            .join(SpacedRepetitionState, SpacedRepetitionState.flashcard_id == Flashcard.id)
            .where(
                SpacedRepetitionState.user_id == user_id,
                Flashcard.user_id == user_id,
                SpacedRepetitionState.next_review_date <= review_date,
            )
            .order_by(Flashcard.id)
        )
        cards = list(rows.scalars().all())
        self.rng.shuffle(cards)
        return cards

    async def reschedule(
        self, flashcard_id: int, user_id: int, next_review_date: date
    ) -> SpacedRepetitionState:
        result = await self.session.execute(
            select(SpacedRepetitionState).where(
                SpacedRepetitionState.flashcard_id == flashcard_id,
                SpacedRepetitionState.user_id == user_id,
            )
        )
        state = result.scalar_one_or_none()
        if state is None:
            raise RecordNotFoundError(f"No review schedule for flashcard {flashcard_id}")
        state.next_review_date = next_review_date
        await self.session.commit()
        return state


def total_pages(total_items: int, page_size: int) -> int:
    return math.ceil(total_items / page_size) if total_items else 0


__all__ = [
    "RecordNotFoundError",
    "OwnershipViolationError",
    "GenerationRecordService",
    "GenerationErrorLogService",
    "FlashcardService",
    "ReviewScheduleService",
    "total_pages",
]
