from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

from app.core.db.schemas.flashcards import BACK_MAX_LENGTH, FRONT_MAX_LENGTH

FrontText = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=FRONT_MAX_LENGTH)
]
BackText = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=BACK_MAX_LENGTH)
]
SourceName = Literal["ai-generated", "ai-edited", "manual"]

MAX_BATCH_SIZE = 100


class FlashcardBatchItem(BaseModel):
    front: FrontText
    back: BackText
    source: SourceName


class FlashcardBatchCreate(BaseModel):
    generation_id: int = Field(..., gt=0)
    flashcards: list[FlashcardBatchItem] = Field(
        ..., min_length=1, max_length=MAX_BATCH_SIZE
    )


class FlashcardCreate(BaseModel):
    front: FrontText
    back: BackText


class FlashcardUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    front: Optional[FrontText] = None
    back: Optional[BackText] = None

    @model_validator(mode="after")
    def _require_a_field(self) -> "FlashcardUpdate":
        if self.front is None and self.back is None:
            raise ValueError("At least one of 'front' or 'back' must be provided")
        return self


class FlashcardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    front: str
    back: str
    source: str
    generation_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("source", mode="before")
    @classmethod
    def _source_value(cls, v):
        return v.value if isinstance(v, enum.Enum) else v


class FlashcardBatchResponse(BaseModel):
    flashcards: list[FlashcardRead] = Field(default_factory=list)
    created_count: int


class Pagination(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class FlashcardListResponse(BaseModel):
    data: list[FlashcardRead] = Field(default_factory=list)
    pagination: Pagination
