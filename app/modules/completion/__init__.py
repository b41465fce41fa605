from .errors import CompletionError, CompletionErrorCode
from .models import (
    ChatCompletionRequest,
    ChatMessage,
    CompletionResult,
    FlashcardGenerationOptions,
    GeneratedFlashcard,
    JsonSchemaSpec,
    ResponseFormat,
)
from .client import OpenRouterClient, validate_request
from .extraction import extract_structured, coerce_flashcards
from .sanitize import sanitize_input

__all__ = [
    "CompletionError",
    "CompletionErrorCode",
    "ChatCompletionRequest",
    "ChatMessage",
    "CompletionResult",
    "FlashcardGenerationOptions",
    "GeneratedFlashcard",
    "JsonSchemaSpec",
    "ResponseFormat",
    "OpenRouterClient",
    "validate_request",
    "extract_structured",
    "coerce_flashcards",
    "sanitize_input",
]
