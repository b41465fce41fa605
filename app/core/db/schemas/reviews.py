from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional
from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.base import Base

if TYPE_CHECKING:
    from .flashcards import Flashcard


DEFAULT_EASE_FACTOR = 2.5


def utc_today() -> date:
    return datetime.utcnow().date()


class SpacedRepetitionState(Base):
    """SM-2 scheduling state of one flashcard for its owner."""

    __tablename__ = "spaced_repetition_state"
    __table_args__ = (
        UniqueConstraint("user_id", "flashcard_id", name="uq_spaced_repetition_user_card"),
        Index("ix_spaced_repetition_user_review_date", "user_id", "next_review_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    flashcard_id: Mapped[int] = mapped_column(
        ForeignKey("flashcards.id", ondelete="CASCADE"), nullable=False
    )
    next_review_date: Mapped[date] = mapped_column(Date, nullable=False, default=utc_today)
    # Days between reviews
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ease_factor: Mapped[float] = mapped_column(
        Float, nullable=False, default=DEFAULT_EASE_FACTOR
    )
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    flashcard: Mapped["Flashcard"] = relationship(
        "Flashcard", back_populates="review_state"
    )


__all__ = ["DEFAULT_EASE_FACTOR", "SpacedRepetitionState", "utc_today"]
