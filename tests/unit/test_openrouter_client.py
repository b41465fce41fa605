import json

import httpx
import pytest

from app.modules.completion import (
    ChatCompletionRequest,
    ChatMessage,
    CompletionError,
    CompletionErrorCode,
    FlashcardGenerationOptions,
    OpenRouterClient,
)
from app.modules.completion.models import JsonSchemaSpec, ResponseFormat


def _request(**kwargs) -> ChatCompletionRequest:
    kwargs.setdefault("messages", [ChatMessage(role="user", content="hi")])
    return ChatCompletionRequest(**kwargs)


@pytest.mark.unit
def test_missing_api_key_raises(monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings.openrouter, "api_key", "")
    with pytest.raises(CompletionError) as exc:
        OpenRouterClient()
    assert exc.value.code is CompletionErrorCode.MISSING_API_KEY


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"messages": []}, "Messages array cannot be empty"),
        (
            {"messages": [ChatMessage(role="tool", content="x")]},
            "Invalid role 'tool' at index 0",
        ),
        (
            {"messages": [ChatMessage(role="user", content=42)]},
            "Message content at index 0 must be a string",
        ),
        ({"temperature": 2.5}, "Temperature must be between 0 and 2"),
        ({"max_tokens": 0}, "max_tokens must be a positive number"),
        ({"top_p": 1.5}, "top_p must be between 0 and 1"),
        ({"frequency_penalty": -3}, "frequency_penalty must be between -2 and 2"),
        ({"presence_penalty": 3}, "presence_penalty must be between -2 and 2"),
        (
            {"response_format": ResponseFormat(type="json_object")},
            "response_format.type must be 'json_schema'",
        ),
        (
            {"response_format": ResponseFormat(json_schema=JsonSchemaSpec(name="x"))},
            "response_format.json_schema must have name and schema",
        ),
    ],
)
async def test_invalid_requests_never_hit_the_network(
    make_client, provider_calls, kwargs, message
):
    result = await make_client().create_chat_completion(_request(**kwargs))
    assert not result.ok
    assert result.error.code is CompletionErrorCode.INVALID_REQUEST
    assert result.error.status_code == 400
    assert message in result.error.message
    assert provider_calls == []


@pytest.mark.unit
async def test_request_headers_and_body(make_client, provider_calls):
    client = make_client(http_referer="https://app.example", app_title="Flashcards")
    result = await client.create_chat_completion(_request(temperature=0.2))
    assert result.ok

    sent = provider_calls[0]
    assert sent.url.path.endswith("/chat/completions")
    assert sent.headers["Authorization"] == "Bearer test-key"
    assert sent.headers["HTTP-Referer"] == "https://app.example"
    assert sent.headers["X-Title"] == "Flashcards"
    body = json.loads(sent.content)
    assert body["temperature"] == 0.2
    assert body["model"] == client.default_model
    assert body["max_tokens"] == client.default_max_tokens


@pytest.mark.unit
async def test_generate_flashcards_success(make_client, provider_calls):
    result = await make_client().generate_flashcards(
        "Mitochondria   produce\x00 ATP.",
        FlashcardGenerationOptions(min_flashcards=2, max_flashcards=4),
    )
    assert result.ok
    assert len(result.value) == 3
    assert result.usage["total_tokens"] == 30

    body = json.loads(provider_calls[0].content)
    assert body["response_format"]["type"] == "json_schema"
    assert body["response_format"]["json_schema"]["name"] == "flashcard_array"
    assert "schema" in body["response_format"]["json_schema"]
    system, user = body["messages"]
    assert "between 2-4 flashcard pairs" in system["content"]
    assert "Mitochondria produce ATP." in user["content"]


@pytest.mark.unit
async def test_rate_limit_carries_retry_after(make_client, provider_response):
    provider_response.update(status=429, headers={"Retry-After": "12"})
    result = await make_client().generate_flashcards("text")
    assert not result.ok
    assert result.error.code is CompletionErrorCode.RATE_LIMIT_EXCEEDED
    assert result.error.details["retry_after"] == "12"
    assert result.error.message == "upstream failure"
    assert result.error.is_retryable()


@pytest.mark.unit
async def test_auth_failure_is_not_retryable(make_client, provider_response):
    provider_response.update(status=401)
    result = await make_client().generate_flashcards("text")
    assert result.error.code is CompletionErrorCode.AUTHENTICATION_ERROR
    assert not result.error.is_retryable()


@pytest.mark.unit
async def test_timeout_is_classified(make_client, provider_response):
    provider_response["raise"] = httpx.ReadTimeout("slow")
    result = await make_client(timeout=5).generate_flashcards("text")
    assert result.error.code is CompletionErrorCode.TIMEOUT_ERROR
    assert result.error.status_code == 408


@pytest.mark.unit
async def test_network_error_is_classified(make_client, provider_response):
    provider_response["raise"] = httpx.ConnectError("refused")
    result = await make_client().generate_flashcards("text")
    assert result.error.code is CompletionErrorCode.NETWORK_ERROR
    assert result.error.is_retryable()


@pytest.mark.unit
async def test_fenced_model_output_is_recovered(make_client, provider_response):
    provider_response["content"] = (
        'Here are the cards:\n```json\n{"flashcards": [{"front": "Q", "back": "A"}]}\n```'
    )
    result = await make_client().generate_flashcards("text")
    assert result.ok
    assert result.value[0].front == "Q"


@pytest.mark.unit
async def test_prose_output_is_parse_error(make_client, provider_response):
    provider_response["content"] = "I cannot help with that."
    result = await make_client().generate_flashcards("text")
    assert result.error.code is CompletionErrorCode.PARSE_ERROR
