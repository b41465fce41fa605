"""Pydantic models for chat completion requests and flashcard payloads.

Request models are deliberately loose (``Any`` for content, no numeric
bounds). Range and shape checks live in ``client.validate_request`` so that a
bad request comes back as a classified ``INVALID_REQUEST`` result instead of a
pydantic ``ValidationError`` at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from app.modules.completion.errors import CompletionError


class ChatMessage(BaseModel):
    role: str
    content: Any


class JsonSchemaSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    strict: bool = True
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")


class ResponseFormat(BaseModel):
    type: str = "json_schema"
    json_schema: Optional[JsonSchemaSpec] = None


class ChatCompletionRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop: Optional[list[str]] = None
    response_format: Optional[ResponseFormat] = None


class GeneratedFlashcard(BaseModel):
    """Candidate question/answer pair produced by the model."""

    front: str
    back: str


class FlashcardBatch(BaseModel):
    flashcards: list[GeneratedFlashcard] = Field(default_factory=list)


class FlashcardGenerationOptions(BaseModel):
    model: Optional[str] = None
    min_flashcards: int = 5
    max_flashcards: int = 15
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


T = TypeVar("T")


@dataclass(frozen=True)
class CompletionResult(Generic[T]):
    """Outcome of one provider call: either ``value`` or ``error`` is set."""

    value: Optional[T] = None
    error: Optional[CompletionError] = None
    model: Optional[str] = None
    usage: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, **kwargs: Any) -> "CompletionResult[T]":
        return cls(value=value, **kwargs)

    @classmethod
    def failure(cls, error: CompletionError, **kwargs: Any) -> "CompletionResult[T]":
        return cls(error=error, **kwargs)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


__all__ = [
    "ChatMessage",
    "JsonSchemaSpec",
    "ResponseFormat",
    "ChatCompletionRequest",
    "GeneratedFlashcard",
    "FlashcardBatch",
    "FlashcardGenerationOptions",
    "CompletionResult",
]
