from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings


class GenerationCreateRequest(BaseModel):
    source_text: str = Field(
        ...,
        min_length=settings.generation.min_source_length,
        max_length=settings.generation.max_source_length,
        description="Study text to turn into flashcards",
    )


class SuggestedFlashcard(BaseModel):
    front: str
    back: str
    source: Literal["ai-generated"] = "ai-generated"


class GenerationCreateResponse(BaseModel):
    generation_id: int
    suggested_flashcards: list[SuggestedFlashcard] = Field(default_factory=list)
    generated_count: int


class GenerationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    model: str
    source_text_hash: str
    source_text_length: int
    generated_count: int
    accepted_unedited_count: Optional[int] = None
    accepted_edited_count: Optional[int] = None
    generation_duration: int
    created_at: datetime
    accepted_at: Optional[datetime] = None
