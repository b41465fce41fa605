import asyncio
import json

import httpx
import pytest

from app.modules.review import Phase, ReviewSession
from app.modules.review.session import error_info_from_response

TEXT = "Enzymes speed up chemical reactions in living things. " * 25


class FakeApi:
    """Scripted stand-in for the generations and flashcards endpoints."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.generation_responses: list[httpx.Response] = []
        self.save_responses: list[httpx.Response] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/generations":
            return self.generation_responses.pop(0)
        if request.url.path == "/v1/flashcards/batch":
            return self.save_responses.pop(0)
        return httpx.Response(404)


def generated(count=2, generation_id=11):
    return httpx.Response(
        200,
        json={
            "generation_id": generation_id,
            "suggested_flashcards": [
                {"front": f"Q{i}", "back": f"A{i}", "source": "ai-generated"}
                for i in range(count)
            ],
            "generated_count": count,
        },
    )


def failed(status, code="SERVER_ERROR", message="boom"):
    return httpx.Response(status, json={"error": {"code": code, "message": message}})


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
async def http(fake_api):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(fake_api.handler), base_url="http://api"
    ) as client:
        yield client


@pytest.fixture
def session(http, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return ReviewSession(http, sleep=fake_sleep)


@pytest.mark.unit
async def test_generate_review_and_save(session, fake_api):
    fake_api.generation_responses.append(generated(3))
    fake_api.save_responses.append(httpx.Response(201, json={"created_count": 2}))

    result = await session.generate(TEXT)
    assert result.applied
    assert session.state.phase is Phase.REVIEWING
    assert len(session.state.items) == 3
    assert session.navigation.before_unload()

    session.accept(0)
    session.edit(1, "Edited Q", "Edited A")
    session.reject(2)

    result = await session.save()
    assert result.applied
    assert session.state.phase is Phase.IDLE
    assert not session.navigation.before_unload()

    payload = json.loads(fake_api.requests[-1].content)
    assert payload == {
        "generation_id": 11,
        "flashcards": [
            {"front": "Q0", "back": "A0", "source": "ai-generated"},
            {"front": "Edited Q", "back": "Edited A", "source": "ai-edited"},
        ],
    }


@pytest.mark.unit
async def test_short_text_is_refused_without_a_request(session, fake_api):
    result = await session.generate("too short")
    assert not result.applied
    assert session.state.phase is Phase.IDLE
    assert fake_api.requests == []


@pytest.mark.unit
async def test_retry_waits_with_backoff(session, fake_api, sleeps):
    fake_api.generation_responses.extend(
        [failed(503), failed(503), failed(503), generated(1)]
    )

    await session.generate(TEXT)
    assert session.state.phase is Phase.ERROR
    assert session.retry_offered

    await session.retry()
    await session.retry()
    await session.retry()
    assert sleeps == [2.0, 4.0, 8.0]
    assert session.state.phase is Phase.REVIEWING
    assert session.state.retry_count == 0


@pytest.mark.unit
async def test_retry_not_offered_after_three_attempts(session, fake_api):
    fake_api.generation_responses.extend([failed(500)] * 4)
    await session.generate(TEXT)
    for _ in range(3):
        await session.retry()
    assert session.state.phase is Phase.ERROR
    assert session.state.retry_count == 3
    assert not session.retry_offered


@pytest.mark.unit
async def test_unauthorized_triggers_callback(http, fake_api):
    calls = []
    session = ReviewSession(http, on_auth_required=lambda: calls.append(True))
    fake_api.generation_responses.append(failed(401, "UNAUTHORIZED", "no"))

    await session.generate(TEXT)
    assert calls == [True]
    assert session.state.error.code == "UNAUTHORIZED"
    assert not session.retry_offered


@pytest.mark.unit
async def test_failed_save_keeps_accepted_items(session, fake_api, sleeps):
    fake_api.generation_responses.append(generated(2))
    fake_api.save_responses.extend(
        [failed(500, "INTERNAL_SERVER_ERROR"), httpx.Response(201, json={})]
    )
    await session.generate(TEXT)
    session.accept_all()

    await session.save()
    assert session.state.phase is Phase.ERROR
    assert len(session.state.accepted_items) == 2
    assert session.navigation.before_unload()

    await session.retry()
    assert sleeps == [2.0]
    assert session.state.phase is Phase.IDLE
    assert len(fake_api.requests) == 3


@pytest.mark.unit
async def test_network_failure_is_retryable():
    def refuse(request):
        raise httpx.ConnectError("refused")

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(refuse), base_url="http://api"
    ) as client:
        session = ReviewSession(client)
        await session.generate(TEXT)
    assert session.state.error.code == "NETWORK_ERROR"
    assert session.retry_offered


@pytest.mark.unit
@pytest.mark.parametrize(
    "response,code,retryable",
    [
        (failed(429, "RATE_LIMIT_EXCEEDED"), "RATE_LIMIT_EXCEEDED", True),
        (failed(500, "NO_FLASHCARDS_GENERATED"), "NO_FLASHCARDS_GENERATED", False),
        (failed(500, "DB_INSERT_FAILED"), "DB_INSERT_FAILED", False),
        (failed(502, "SERVER_ERROR"), "SERVER_ERROR", True),
        (failed(400, "VALIDATION_ERROR"), "VALIDATION_ERROR", False),
        (httpx.Response(503, text="down"), "HTTP_503", True),
    ],
)
def test_error_classification(response, code, retryable):
    info = error_info_from_response(response)
    assert info.code == code
    assert info.retryable is retryable


@pytest.mark.unit
async def test_abandoned_generation_response_is_ignored():
    release_old = asyncio.Event()
    new_text = "Mitochondria produce most of the cell's chemical energy. " * 25

    async def handler(request):
        body = json.loads(request.content)
        if body["source_text"] == TEXT:
            await release_old.wait()
            return generated(1, generation_id=1)
        return generated(2, generation_id=2)

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://api"
    ) as client:
        session = ReviewSession(client)
        old = asyncio.ensure_future(session.generate(TEXT))
        await asyncio.sleep(0)
        assert session.state.phase is Phase.GENERATING

        assert session.abandon().applied
        assert session.state.phase is Phase.IDLE

        await session.generate(new_text)
        release_old.set()
        stale = await old

    assert not stale.applied
    assert session.state.phase is Phase.REVIEWING
    assert session.state.source_text == new_text
    assert session.state.generation_id == 2
    assert [i.front for i in session.state.items] == ["Q0", "Q1"]
