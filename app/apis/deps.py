from __future__ import annotations

from typing import Annotated, Union

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import async_session_maker, get_session
from app.core.db.schemas.auth import User
from app.core.db_services import GenerationErrorLogService
from app.modules.auth import current_active_user
from app.modules.completion import OpenRouterClient
from app.modules.generation.mock import MockFlashcardClient
from app.modules.generation.service import GenerationOrchestrator


CurrentUser = Annotated[User, Depends(current_active_user)]


def get_flashcard_client() -> Union[OpenRouterClient, MockFlashcardClient]:
    """Provider client for this request; raises MISSING_API_KEY when unconfigured."""
    if settings.generation.mock_mode:
        return MockFlashcardClient()
    return OpenRouterClient()


def get_error_log_service() -> GenerationErrorLogService:
    return GenerationErrorLogService(async_session_maker)


async def get_orchestrator(
    session: AsyncSession = Depends(get_session),
    client=Depends(get_flashcard_client),
    error_log: GenerationErrorLogService = Depends(get_error_log_service),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(session, client, error_log=error_log)
