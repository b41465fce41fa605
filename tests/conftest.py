import os
import tempfile

os.environ.setdefault("MODE", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("GENERATION_MOCK_MODE", "false")
os.environ.setdefault(
    "JWT_KEY_PATH", os.path.join(tempfile.gettempdir(), "flashcards-ai-test-key.pem")
)

import json
from typing import Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db.base import Base, get_session
import app.core.db.schemas  # noqa: F401
from app.core.db.schemas.auth import User
from app.core.db_services import GenerationErrorLogService
from app.core.rate_limit import InMemoryRateLimitStore, RateLimiter
from app.apis.deps import get_error_log_service, get_flashcard_client
from app.modules.auth import current_active_user
from app.modules.completion import OpenRouterClient


SAMPLE_TEXT = (
    "Photosynthesis is the process by which green plants and some other organisms "
    "use sunlight to synthesize foods from carbon dioxide and water. "
) * 12


def completion_body(content: str, model: str = "openai/gpt-3.5-turbo") -> dict:
    return {
        "id": "gen-1",
        "model": model,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


def cards_json(count: int) -> str:
    return json.dumps(
        {
            "flashcards": [
                {"front": f"Question {i}?", "back": f"Answer {i}"} for i in range(count)
            ]
        }
    )


@pytest.fixture
def sample_text() -> str:
    assert 1000 <= len(SAMPLE_TEXT) <= 10000
    return SAMPLE_TEXT


@pytest.fixture
def provider_calls() -> list:
    return []


@pytest.fixture
def provider_response(provider_calls) -> dict:
    """Mutable spec for the fake provider: status, content, headers, raise."""
    return {"status": 200, "content": cards_json(3), "headers": {}, "raise": None}


@pytest.fixture
def provider_transport(provider_calls, provider_response) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        provider_calls.append(request)
        if provider_response["raise"] is not None:
            raise provider_response["raise"]
        status = provider_response["status"]
        if status >= 400:
            return httpx.Response(
                status,
                json={"error": {"message": "upstream failure"}},
                headers=provider_response["headers"],
            )
        return httpx.Response(status, json=completion_body(provider_response["content"]))

    return httpx.MockTransport(handler)


@pytest.fixture
def make_client(provider_transport) -> Callable[..., OpenRouterClient]:
    def factory(**kwargs) -> OpenRouterClient:
        kwargs.setdefault("api_key", "test-key")
        kwargs.setdefault("base_url", "https://openrouter.test/api/v1")
        return OpenRouterClient(transport=provider_transport, **kwargs)

    return factory


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


async def _make_user(session_maker, email: str) -> User:
    async with session_maker() as s:
        user = User(
            email=email,
            hashed_password="not-a-real-hash",
            is_active=True,
            is_superuser=False,
            is_verified=True,
        )
        s.add(user)
        await s.commit()
        await s.refresh(user)
        return user


@pytest.fixture
async def user(session_maker) -> User:
    return await _make_user(session_maker, "alex@example.com")


@pytest.fixture
async def other_user(session_maker) -> User:
    return await _make_user(session_maker, "sam@example.com")


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(InMemoryRateLimitStore(), limit=5, window_seconds=60)


@pytest.fixture
def app(session_maker, user, make_client, rate_limiter):
    from main import create_app

    application = create_app(rate_limiter=rate_limiter)

    async def override_session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    application.dependency_overrides[get_session] = override_session
    application.dependency_overrides[current_active_user] = lambda: user
    application.dependency_overrides[get_flashcard_client] = lambda: make_client()
    application.dependency_overrides[get_error_log_service] = (
        lambda: GenerationErrorLogService(session_maker)
    )
    return application


@pytest.fixture
async def api(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
