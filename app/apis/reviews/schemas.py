from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ReviewFlashcard(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    front: str
    back: str
