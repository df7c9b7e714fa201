"""pytest configuration: env vars are set before any app module is imported."""

import os
import tempfile

# Must be set before importing main/dependencies (raises SystemExit if missing)
os.environ.setdefault("JWT_SECRET", "test-only-secret-do-not-use-in-prod")
# In-memory SQLite per test run
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPLOAD_FOLDER"] = tempfile.mkdtemp(prefix="studyhub-uploads-")
os.environ["STUDYHUB_RATELIMIT_ENABLED"] = "false"
# slowapi reads this name directly and a string value would re-enable it
os.environ.pop("RATELIMIT_ENABLED", None)
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from httpx import AsyncClient, ASGITransport


@pytest.fixture
async def client():
    """Return an AsyncClient wired to the FastAPI app with a fresh in-memory DB."""
    # Import here so env vars are already set
    from main import app
    from database import engine
    from models_async import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def emitted(monkeypatch):
    """Capture Socket.IO emissions as (event, payload, room) tuples."""
    from socket_manager import sio

    calls = []

    async def fake_emit(event, data=None, room=None, **kwargs):
        calls.append((event, data, room))

    monkeypatch.setattr(sio, "emit", fake_emit)
    return calls


@pytest.fixture
def make_user(client):
    """Factory: sign up a user and return ``(user_dict, auth_headers)``."""
    counter = {"n": 0}

    async def _make(name="Alice", email=None, password="Password123!", username=None):
        counter["n"] += 1
        email = email or f"{name.lower()}{counter['n']}@example.com"
        payload = {"name": name, "email": email, "password": password}
        if username:
            payload["username"] = username
        res = await client.post("/auth/signup", json=payload)
        assert res.status_code == 201, res.text
        data = res.json()
        return data["user"], {"Authorization": f"Bearer {data['access_token']}"}

    return _make
