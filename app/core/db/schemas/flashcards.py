from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    func,
    Enum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.db.base import Base

if TYPE_CHECKING:
    from .auth import User
    from .generations import Generation
    from .reviews import SpacedRepetitionState


FRONT_MAX_LENGTH = 200
BACK_MAX_LENGTH = 500


class FlashcardSource(str, enum.Enum):
    AI_GENERATED = "ai-generated"
    AI_EDITED = "ai-edited"
    MANUAL = "manual"


class Flashcard(Base):
    __tablename__ = "flashcards"
    __table_args__ = (
        CheckConstraint(
            f"length(front) <= {FRONT_MAX_LENGTH}", name="ck_flashcards_front_length"
        ),
        CheckConstraint(
            f"length(back) <= {BACK_MAX_LENGTH}", name="ck_flashcards_back_length"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    generation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("generations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    front: Mapped[str] = mapped_column(String(FRONT_MAX_LENGTH), nullable=False)
    back: Mapped[str] = mapped_column(String(BACK_MAX_LENGTH), nullable=False)
    source: Mapped[FlashcardSource] = mapped_column(
        Enum(
            FlashcardSource,
            name="flashcard_source",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user: Mapped["User"] = relationship("User", back_populates="flashcards")
    generation: Mapped[Optional["Generation"]] = relationship(
        "Generation", back_populates="flashcards"
    )
    review_state: Mapped[Optional["SpacedRepetitionState"]] = relationship(
        "SpacedRepetitionState",
        back_populates="flashcard",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


__all__ = [
    "FRONT_MAX_LENGTH",
    "BACK_MAX_LENGTH",
    "FlashcardSource",
    "Flashcard",
]
