import jwt
import pytest

from app.modules.auth import current_active_user


@pytest.fixture
def real_auth(app):
    app.dependency_overrides.pop(current_active_user, None)
    return app


async def register_and_login(api, email="kai@example.com", password="correct-horse-42"):
    r = await api.post("/v1/auth/register", json={"email": email, "password": password})
    assert r.status_code == 201, r.text
    r = await api.post("/v1/auth/login", data={"username": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


@pytest.mark.integration
async def test_register_login_and_use_token(real_auth, api):
    token = await register_and_login(api)

    r = await api.get("/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "kai@example.com"

    r = await api.post(
        "/v1/flashcards",
        json={"front": "Q", "back": "A"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert r.status_code == 201


@pytest.mark.integration
async def test_token_carries_kid_matching_jwks(real_auth, api):
    token = await register_and_login(api)
    r = await api.get("/.well-known/jwks.json")
    assert r.status_code == 200
    keys = r.json()["keys"]
    assert jwt.get_unverified_header(token)["kid"] == keys[0]["kid"]
    assert keys[0]["kty"] == "RSA"


@pytest.mark.integration
async def test_bad_token_is_rejected(real_auth, api):
    r = await api.get("/v1/flashcards", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.integration
async def test_short_password_is_refused(real_auth, api):
    r = await api.post(
        "/v1/auth/register", json={"email": "lee@example.com", "password": "short"}
    )
    assert r.status_code == 400
