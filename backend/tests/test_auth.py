"""FastAPI auth endpoint tests using pytest + httpx AsyncClient."""

import pytest

pytestmark = pytest.mark.asyncio


# ── Helpers ──────────────────────────────────────────────────────────────────

async def _signup(client, email="test@example.com", password="Password123!", name="Test User", **extra):
    return await client.post(
        "/auth/signup", json={"name": name, "email": email, "password": password, **extra}
    )


async def _login(client, email="test@example.com", password="Password123!"):
    return await client.post("/auth/login", json={"email": email, "password": password})


# ── /health ───────────────────────────────────────────────────────────────────

async def test_health_returns_ok(client):
    res = await client.get("/health")
    assert res.status_code == 200
    data = res.json()
    assert data["status"] == "ok"
    assert "version" in data


# ── POST /auth/signup ─────────────────────────────────────────────────────────

async def test_signup_success(client):
    res = await _signup(client, username="tester", bio="Loves algebra")
    assert res.status_code == 201
    data = res.json()
    assert "access_token" in data
    assert data["user"]["email"] == "test@example.com"
    assert data["user"]["username"] == "tester"
    assert data["user"]["bio"] == "Loves algebra"
    assert "password_hash" not in data["user"]


async def test_signup_duplicate_email(client):
    await _signup(client)
    res = await _signup(client)  # same email
    assert res.status_code == 409


async def test_signup_duplicate_username(client):
    await _signup(client, username="dup")
    res = await _signup(client, email="other@example.com", username="dup")
    assert res.status_code == 409


async def test_signup_weak_password_is_400(client):
    res = await _signup(client, password="password")
    assert res.status_code == 400
    assert "errors" in res.json()


async def test_signup_invalid_email_is_400(client):
    res = await _signup(client, email="not-an-email")
    assert res.status_code == 400


# ── POST /auth/login ──────────────────────────────────────────────────────────

async def test_login_success(client):
    await _signup(client)
    res = await _login(client)
    assert res.status_code == 200
    data = res.json()
    assert "access_token" in data
    assert data["user"]["email"] == "test@example.com"


async def test_login_is_case_insensitive_on_email(client):
    await _signup(client)
    res = await _login(client, email="TEST@example.com")
    assert res.status_code == 200


async def test_login_wrong_password(client):
    await _signup(client)
    res = await _login(client, password="WrongPassword!")
    assert res.status_code == 401


async def test_login_unknown_email(client):
    res = await _login(client, email="nobody@example.com")
    assert res.status_code == 401


# ── GET /auth/me and auth guard ───────────────────────────────────────────────

async def test_me_returns_profile(client):
    token = (await _signup(client)).json()["access_token"]
    res = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["user"]["name"] == "Test User"


async def test_me_requires_auth(client):
    res = await client.get("/auth/me")
    assert res.status_code == 401


async def test_garbage_token_is_401(client):
    res = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


async def test_notes_require_auth(client):
    res = await client.get("/notes")
    assert res.status_code == 401


# ── Rate limiting ─────────────────────────────────────────────────────────────

async def test_limiters_are_off_when_switched_off(client):
    from main import limiter as app_limiter
    from routers import ai, auth, quizzes, spaces

    for limiter in (app_limiter, ai.limiter, auth.limiter, quizzes.limiter, spaces.limiter):
        assert limiter.enabled is False


async def test_signup_is_not_throttled_when_limiter_off(client):
    for i in range(7):
        res = await _signup(client, email=f"user{i}@example.com")
        assert res.status_code == 201, res.text
