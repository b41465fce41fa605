from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import ReviewScheduleService
from app.core.logging import get_logger
from app.apis.deps import CurrentUser
from .schemas import ReviewFlashcard


router = APIRouter()
logger = get_logger(__name__)

REVIEWS_PATH = f"/{settings.app.version}/reviews"


@router.get(REVIEWS_PATH, response_model=list[ReviewFlashcard], tags=["reviews"])
async def list_due_flashcards(
    response: Response,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> list[ReviewFlashcard]:
    """Flashcards due for review today, in random order."""
    cards = await ReviewScheduleService(session).due_for_review(user.id)
    logger.debug("%d flashcards due", len(cards), extra={"user_id": user.id})
    response.headers["Cache-Control"] = "private, no-cache"
    return [ReviewFlashcard.model_validate(c) for c in cards]
