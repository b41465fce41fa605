"""Async client for the OpenRouter chat completions API.

The client is stateless between calls: each request opens its own
``httpx.AsyncClient`` with a bounded timeout and closes it on exit, so
cancelling the awaiting task also tears down the in-flight HTTP request.

Failures never escape as exceptions. ``create_chat_completion`` and
``generate_flashcards`` return a ``CompletionResult`` whose ``error`` carries
the classified ``CompletionError``. The one exception is a missing API key,
which is a deployment problem and is raised from the constructor.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger, preview
from app.modules.completion.errors import (
    CompletionError,
    CompletionErrorCode,
    code_for_status,
)
from app.modules.completion.extraction import coerce_flashcards, extract_structured
from app.modules.completion.models import (
    ChatCompletionRequest,
    ChatMessage,
    CompletionResult,
    FlashcardGenerationOptions,
    GeneratedFlashcard,
    JsonSchemaSpec,
    ResponseFormat,
)
from app.modules.completion.prompts import (
    FLASHCARD_SCHEMA,
    FLASHCARD_SCHEMA_NAME,
    build_system_prompt,
    build_user_prompt,
)
from app.modules.completion.sanitize import sanitize_input

logger = get_logger(__name__)

VALID_ROLES = frozenset({"system", "user", "assistant"})
CHAT_COMPLETIONS_PATH = "/chat/completions"


def _invalid(message: str) -> CompletionError:
    return CompletionError(CompletionErrorCode.INVALID_REQUEST, message, 400)


def _out_of_range(value: Optional[float], low: float, high: float) -> bool:
    return value is not None and not (low <= value <= high)


def validate_request(request: ChatCompletionRequest) -> Optional[CompletionError]:
    """Return an ``INVALID_REQUEST`` error for the first bad parameter, else None."""
    if not request.messages:
        return _invalid("Messages array cannot be empty")

    for index, message in enumerate(request.messages):
        if message.role not in VALID_ROLES:
            return _invalid(
                f"Invalid role '{message.role}' at index {index}. "
                "Must be 'system', 'user', or 'assistant'"
            )
        if not isinstance(message.content, str):
            return _invalid(f"Message content at index {index} must be a string")

    if _out_of_range(request.temperature, 0, 2):
        return _invalid("Temperature must be between 0 and 2")
    if request.max_tokens is not None and request.max_tokens <= 0:
        return _invalid("max_tokens must be a positive number")
    if _out_of_range(request.top_p, 0, 1):
        return _invalid("top_p must be between 0 and 1")
    if _out_of_range(request.frequency_penalty, -2, 2):
        return _invalid("frequency_penalty must be between -2 and 2")
    if _out_of_range(request.presence_penalty, -2, 2):
        return _invalid("presence_penalty must be between -2 and 2")

    response_format = request.response_format
    if response_format is not None:
        if response_format.type != "json_schema":
            return _invalid("response_format.type must be 'json_schema'")
        schema_spec = response_format.json_schema
        if schema_spec is None or not schema_spec.name or not schema_spec.schema_:
            return _invalid("response_format.json_schema must have name and schema")

    return None


class OpenRouterClient:
    """Chat completion client with request validation and error classification."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        default_temperature: Optional[float] = None,
        default_max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        http_referer: Optional[str] = None,
        app_title: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cfg = settings.openrouter
        self.api_key = api_key if api_key is not None else cfg.api_key
        if not self.api_key:
            raise CompletionError(
                CompletionErrorCode.MISSING_API_KEY,
                "OpenRouter API key is required. Set OPENROUTER_API_KEY.",
                500,
            )
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self.default_model = default_model or cfg.model
        self.default_temperature = (
            default_temperature if default_temperature is not None else cfg.temperature
        )
        self.default_max_tokens = default_max_tokens or cfg.max_tokens
        self.timeout = timeout if timeout is not None else cfg.timeout
        self.http_referer = http_referer if http_referer is not None else cfg.http_referer
        self.app_title = app_title if app_title is not None else cfg.app_title
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.http_referer:
            headers["HTTP-Referer"] = self.http_referer
        if self.app_title:
            headers["X-Title"] = self.app_title
        return headers

    def build_request_body(self, request: ChatCompletionRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model or self.default_model,
            "messages": [m.model_dump() for m in request.messages],
            "temperature": (
                request.temperature
                if request.temperature is not None
                else self.default_temperature
            ),
            "max_tokens": request.max_tokens or self.default_max_tokens,
        }
        for key in ("top_p", "frequency_penalty", "presence_penalty", "stop"):
            value = getattr(request, key)
            if value is not None:
                body[key] = value
        if request.response_format is not None:
            body["response_format"] = request.response_format.model_dump(
                by_alias=True, exclude_none=True
            )
        return body

    async def create_chat_completion(
        self, request: ChatCompletionRequest
    ) -> CompletionResult[Any]:
        """Validate, send and parse one completion; the payload is the extracted JSON."""
        error = validate_request(request)
        if error is not None:
            return CompletionResult.failure(error)

        body = self.build_request_body(request)
        sent = await self._post(CHAT_COMPLETIONS_PATH, body)
        if not sent.ok:
            return CompletionResult.failure(sent.error, model=body["model"])  # type: ignore[arg-type]

        data: dict[str, Any] = sent.value or {}
        content = _first_message_content(data)
        logger.debug("Completion content preview: %s", preview(content))

        extracted = extract_structured(content)
        return CompletionResult(
            value=extracted.value,
            error=extracted.error,
            model=data.get("model") or body["model"],
            usage=data.get("usage") or {},
        )

    async def generate_flashcards(
        self,
        source_text: str,
        options: Optional[FlashcardGenerationOptions] = None,
    ) -> CompletionResult[list[GeneratedFlashcard]]:
        opts = options or FlashcardGenerationOptions()
        sanitized = sanitize_input(source_text)

        request = ChatCompletionRequest(
            model=opts.model or self.default_model,
            messages=[
                ChatMessage(
                    role="system",
                    content=build_system_prompt(opts.min_flashcards, opts.max_flashcards),
                ),
                ChatMessage(role="user", content=build_user_prompt(sanitized)),
            ],
            temperature=opts.temperature,
            max_tokens=opts.max_tokens,
            response_format=ResponseFormat(
                type="json_schema",
                json_schema=JsonSchemaSpec(
                    name=FLASHCARD_SCHEMA_NAME, strict=True, schema=FLASHCARD_SCHEMA
                ),
            ),
        )

        result = await self.create_chat_completion(request)
        if not result.ok:
            return result
        coerced = coerce_flashcards(result.value)
        return CompletionResult(
            value=coerced.value,
            error=coerced.error,
            model=result.model,
            usage=result.usage,
        )

    async def _post(self, path: str, body: dict[str, Any]) -> CompletionResult[dict]:
        logger.info("POST %s model=%s", path, body.get("model"))
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=body, headers=self._headers())
        except httpx.TimeoutException:
            return CompletionResult.failure(
                CompletionError(
                    CompletionErrorCode.TIMEOUT_ERROR,
                    f"Request timed out after {self.timeout}s",
                    408,
                )
            )
        except httpx.TransportError as e:
            return CompletionResult.failure(
                CompletionError(
                    CompletionErrorCode.NETWORK_ERROR,
                    f"Network error: {e}",
                    500,
                    details={"original_error": str(e)},
                )
            )

        if response.is_error:
            error = error_from_response(response)
            logger.warning(
                "Provider returned %s (%s): %s",
                response.status_code,
                error.code.value,
                error.message,
            )
            return CompletionResult.failure(error)

        try:
            payload = response.json()
        except ValueError:
            return CompletionResult.failure(
                CompletionError(
                    CompletionErrorCode.PARSE_ERROR,
                    "Provider returned a non-JSON body",
                    500,
                    details={"content": response.text[:200]},
                )
            )
        if not isinstance(payload, dict):
            return CompletionResult.failure(
                CompletionError(
                    CompletionErrorCode.PARSE_ERROR, "Unexpected response envelope", 500
                )
            )
        return CompletionResult.success(payload)


def error_from_response(response: httpx.Response) -> CompletionError:
    """Classify a non-2xx provider response."""
    message: Optional[str] = None
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        nested = payload.get("error")
        if isinstance(nested, dict):
            message = nested.get("message")
        elif isinstance(nested, str):
            message = nested

    if not message:
        message = response.reason_phrase or "Unknown error"

    details: dict[str, Any] = {}
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        details["retry_after"] = retry_after

    return CompletionError(
        code_for_status(response.status_code),
        str(message),
        response.status_code,
        details=details,
    )


def _first_message_content(data: dict[str, Any]) -> Optional[str]:
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    return content if isinstance(content, str) else None


__all__ = ["OpenRouterClient", "validate_request", "error_from_response"]
