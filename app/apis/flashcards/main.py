from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.flashcards import FlashcardSource
from app.core.db_services import (
    FlashcardService,
    GenerationRecordService,
    OwnershipViolationError,
    RecordNotFoundError,
    total_pages,
)
from app.core.logging import get_logger
from app.apis.deps import CurrentUser
from app.apis.errors import ApiError
from .schemas import (
    FlashcardBatchCreate,
    FlashcardBatchResponse,
    FlashcardCreate,
    FlashcardListResponse,
    FlashcardRead,
    FlashcardUpdate,
    Pagination,
)


router = APIRouter()
logger = get_logger(__name__)

FLASHCARDS_PATH = f"/{settings.app.version}/flashcards"


def _not_found(flashcard_id: int) -> ApiError:
    return ApiError("FLASHCARD_NOT_FOUND", f"Flashcard {flashcard_id} not found", 404)


@router.post(
    f"{FLASHCARDS_PATH}/batch",
    response_model=FlashcardBatchResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["flashcards"],
)
async def create_flashcards_batch(
    req: FlashcardBatchCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> FlashcardBatchResponse:
    generations = GenerationRecordService(session)
    generation = await generations.get_owned_generation(req.generation_id, user.id)
    if generation is None:
        raise ApiError(
            "GENERATION_NOT_FOUND", "Generation not found or access denied", 403
        )

    items = [item.model_dump() for item in req.flashcards]
    await generations.record_acceptance(
        generation,
        unedited=sum(1 for i in items if i["source"] == FlashcardSource.AI_GENERATED.value),
        edited=sum(1 for i in items if i["source"] == FlashcardSource.AI_EDITED.value),
    )
    created = await FlashcardService(session).create_batch(
        user_id=user.id, generation_id=generation.id, items=items
    )
    logger.info(
        "Saved %d flashcards",
        len(created),
        extra={"user_id": user.id, "generation_id": generation.id},
    )
    return FlashcardBatchResponse(
        flashcards=[FlashcardRead.model_validate(c) for c in created],
        created_count=len(created),
    )


@router.get(
    FLASHCARDS_PATH,
    response_model=FlashcardListResponse,
    tags=["flashcards"],
)
async def list_flashcards(
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=200),
    session: AsyncSession = Depends(get_session),
) -> FlashcardListResponse:
    cards, total = await FlashcardService(session).list_paginated(
        user_id=user.id, page=page, page_size=page_size, search=search
    )
    return FlashcardListResponse(
        data=[FlashcardRead.model_validate(c) for c in cards],
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=total_pages(total, page_size),
        ),
    )


@router.post(
    FLASHCARDS_PATH,
    response_model=FlashcardRead,
    status_code=status.HTTP_201_CREATED,
    tags=["flashcards"],
)
async def create_flashcard(
    req: FlashcardCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> FlashcardRead:
    card = await FlashcardService(session).create(
        user_id=user.id, front=req.front, back=req.back
    )
    return FlashcardRead.model_validate(card)


@router.get(
    f"{FLASHCARDS_PATH}/{{flashcard_id:int}}",
    response_model=FlashcardRead,
    tags=["flashcards"],
)
async def get_flashcard(
    flashcard_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> FlashcardRead:
    try:
        card = await FlashcardService(session).get_owned(flashcard_id, user.id)
    except RecordNotFoundError:
        raise _not_found(flashcard_id)
    return FlashcardRead.model_validate(card)


@router.patch(
    f"{FLASHCARDS_PATH}/{{flashcard_id:int}}",
    response_model=FlashcardRead,
    tags=["flashcards"],
)
async def update_flashcard(
    flashcard_id: int,
    req: FlashcardUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> FlashcardRead:
    try:
        card = await FlashcardService(session).update(
            flashcard_id, user.id, front=req.front, back=req.back
        )
    except RecordNotFoundError:
        raise _not_found(flashcard_id)
    except OwnershipViolationError:
        raise ApiError(
            "FORBIDDEN", "You do not have permission to modify this flashcard", 403
        )
    return FlashcardRead.model_validate(card)


@router.delete(
    f"{FLASHCARDS_PATH}/{{flashcard_id:int}}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["flashcards"],
)
async def delete_flashcard(
    flashcard_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await FlashcardService(session).delete(flashcard_id, user.id)
    except RecordNotFoundError:
        raise _not_found(flashcard_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
