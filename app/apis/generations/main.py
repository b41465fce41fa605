from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import GenerationRecordService
from app.core.rate_limit import rate_limited
from app.apis.deps import CurrentUser, get_orchestrator
from app.apis.errors import ApiError
from app.modules.auth import current_active_user
from app.modules.generation.service import GenerationOrchestrator
from .schemas import (
    GenerationCreateRequest,
    GenerationCreateResponse,
    GenerationRead,
    SuggestedFlashcard,
)


router = APIRouter()

GENERATIONS_PATH = f"/{settings.app.version}/generations"


@router.post(
    GENERATIONS_PATH,
    response_model=GenerationCreateResponse,
    status_code=status.HTTP_200_OK,
    tags=["generations"],
    dependencies=[Depends(rate_limited(GENERATIONS_PATH, current_active_user))],
)
async def create_generation(
    req: GenerationCreateRequest,
    user: CurrentUser,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationCreateResponse:
    result = await orchestrator.generate(user.id, req.source_text)
    return GenerationCreateResponse(
        generation_id=result.generation_id,
        suggested_flashcards=[
            SuggestedFlashcard(front=c.front, back=c.back) for c in result.candidates
        ],
        generated_count=result.count,
    )


@router.get(
    f"{GENERATIONS_PATH}/{{generation_id:int}}",
    response_model=GenerationRead,
    tags=["generations"],
)
async def get_generation(
    generation_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> GenerationRead:
    record = await GenerationRecordService(session).get_owned_generation(
        generation_id, user.id
    )
    if record is None:
        raise ApiError("GENERATION_NOT_FOUND", "Generation not found", 404)
    return GenerationRead.model_validate(record)
