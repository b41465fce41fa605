"""Server-side orchestration of one flashcard generation.

``GenerationOrchestrator.generate`` fingerprints the source text, asks the
completion client for candidates, writes a generation record and returns the
candidates tagged ``ai-generated``. Every failure leaves as a
``GenerationError`` with a stable code and an HTTP status; provider failures
and empty results are also written to ``generation_error_logs`` on a best
effort basis.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db_services import GenerationErrorLogService, GenerationRecordService
from app.core.logging import get_logger
from app.modules.completion.errors import CompletionErrorCode
from app.modules.completion.models import (
    CompletionResult,
    FlashcardGenerationOptions,
    GeneratedFlashcard,
)
from app.modules.generation.fingerprint import fingerprint

logger = get_logger(__name__)

NO_FLASHCARDS_GENERATED = "NO_FLASHCARDS_GENERATED"
DB_INSERT_FAILED = "DB_INSERT_FAILED"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"

STATUS_FOR_PROVIDER_CODE: dict[str, int] = {
    CompletionErrorCode.RATE_LIMIT_EXCEEDED.value: 429,
    CompletionErrorCode.AUTHENTICATION_ERROR.value: 401,
    CompletionErrorCode.INVALID_REQUEST.value: 400,
}

# A bad model sample usually parses on the next attempt
EXTRACTION_CODES = frozenset(
    {CompletionErrorCode.PARSE_ERROR, CompletionErrorCode.VALIDATION_ERROR}
)

# VALIDATION_ERROR is reserved for request validation (400) at the API surface
PUBLIC_CODE_FOR_PROVIDER_CODE: dict[str, str] = {
    CompletionErrorCode.VALIDATION_ERROR.value: CompletionErrorCode.PARSE_ERROR.value,
}


class FlashcardClient(Protocol):
    default_model: str

    async def generate_flashcards(
        self,
        source_text: str,
        options: Optional[FlashcardGenerationOptions] = None,
    ) -> CompletionResult[list[GeneratedFlashcard]]: ...


class GenerationError(Exception):
    """Classified orchestration failure with the status to send to the caller."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        *,
        retryable: Optional[bool] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        self.details = details or {}


class CandidateFlashcard(BaseModel):
    front: str
    back: str
    source: Literal["ai-generated"] = "ai-generated"


@dataclass(frozen=True)
class GenerationResult:
    generation_id: int
    candidates: list[CandidateFlashcard]
    model: str
    duration_ms: int
    source_text_hash: str = ""
    usage: dict[str, Any] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.candidates)


class GenerationOrchestrator:
    def __init__(
        self,
        session: AsyncSession,
        client: FlashcardClient,
        *,
        error_log: Optional[GenerationErrorLogService] = None,
        min_flashcards: Optional[int] = None,
        max_flashcards: Optional[int] = None,
        min_source_length: Optional[int] = None,
        max_source_length: Optional[int] = None,
    ) -> None:
        cfg = settings.generation
        self.session = session
        self.client = client
        self.records = GenerationRecordService(session)
        self.error_log = error_log
        self.min_flashcards = min_flashcards or cfg.min_flashcards
        self.max_flashcards = max_flashcards or cfg.max_flashcards
        self.min_source_length = min_source_length or cfg.min_source_length
        self.max_source_length = max_source_length or cfg.max_source_length

    async def generate(self, user_id: int, source_text: str) -> GenerationResult:
        source_length = len(source_text)
        if not self.min_source_length <= source_length <= self.max_source_length:
            raise GenerationError(
                VALIDATION_ERROR,
                f"source_text must be between {self.min_source_length} and "
                f"{self.max_source_length} characters",
                400,
                retryable=False,
            )

        source_hash = fingerprint(source_text)
        model = self.client.default_model
        log_extra = {"user_id": user_id}
        started = time.monotonic()

        options = FlashcardGenerationOptions(
            min_flashcards=self.min_flashcards,
            max_flashcards=self.max_flashcards,
        )
        try:
            result = await self.client.generate_flashcards(source_text, options)
        except Exception as e:
            logger.exception("Unexpected failure calling the provider", extra=log_extra)
            await self._log_failure(
                user_id, model, source_hash, source_length, UNKNOWN_ERROR, str(e)
            )
            raise GenerationError(
                UNKNOWN_ERROR,
                "An unexpected error occurred during generation",
                500,
            ) from e

        if not result.ok:
            error = result.error
            logger.warning(
                "Generation failed: %s %s", error.code.value, error.message, extra=log_extra
            )
            await self._log_failure(
                user_id,
                result.model or model,
                source_hash,
                source_length,
                error.code.value,
                error.message,
            )
            details = dict(error.details)
            code = PUBLIC_CODE_FOR_PROVIDER_CODE.get(error.code.value, error.code.value)
            if code != error.code.value:
                details["provider_code"] = error.code.value
            raise GenerationError(
                code,
                f"Failed to generate flashcards: {error.message}",
                STATUS_FOR_PROVIDER_CODE.get(code, 500),
                retryable=error.is_retryable() or error.code in EXTRACTION_CODES,
                details=details,
            )

        flashcards = result.value or []
        if not flashcards:
            await self._log_failure(
                user_id,
                result.model or model,
                source_hash,
                source_length,
                NO_FLASHCARDS_GENERATED,
                "AI did not generate any flashcards",
            )
            raise GenerationError(
                NO_FLASHCARDS_GENERATED, "AI did not generate any flashcards", 500
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        used_model = result.model or model
        try:
            record = await self.records.create_generation(
                user_id=user_id,
                model=used_model,
                source_text_hash=source_hash,
                source_text_length=source_length,
                generated_count=len(flashcards),
                generation_duration=duration_ms,
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Failed to record generation", extra=log_extra)
            raise GenerationError(
                DB_INSERT_FAILED, "Failed to record generation", 500
            ) from e

        logger.info(
            "Generated %d flashcards in %dms",
            len(flashcards),
            duration_ms,
            extra={**log_extra, "generation_id": record.id},
        )
        return GenerationResult(
            generation_id=record.id,
            candidates=[CandidateFlashcard(front=c.front, back=c.back) for c in flashcards],
            model=used_model,
            duration_ms=duration_ms,
            source_text_hash=source_hash,
            usage=result.usage,
        )

    async def _log_failure(
        self,
        user_id: int,
        model: str,
        source_hash: str,
        source_length: int,
        code: str,
        message: str,
    ) -> None:
        if self.error_log is None:
            return
        await self.error_log.log_error(
            user_id=user_id,
            model=model,
            source_text_hash=source_hash,
            source_text_length=source_length,
            error_code=code,
            error_message=message,
        )


__all__ = [
    "GenerationError",
    "GenerationOrchestrator",
    "GenerationResult",
    "CandidateFlashcard",
    "FlashcardClient",
    "NO_FLASHCARDS_GENERATED",
    "DB_INSERT_FAILED",
    "UNKNOWN_ERROR",
]
