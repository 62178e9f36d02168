"""Shared pytest fixtures for the API tests."""

import asyncio
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="watchlist-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import select  # noqa: E402

from watchlist.database import AsyncSessionLocal, Base, engine  # noqa: E402
from watchlist.main import app  # noqa: E402
from watchlist.models.movie_model import Movie  # noqa: E402
from watchlist.models.user_model import User  # noqa: E402
from watchlist.routes import auth as auth_routes  # noqa: E402

DEFAULT_PASSWORD = "password1"


class Outbox:
    """Collects one-time codes instead of mailing them."""

    def __init__(self):
        self.messages = []

    def send(self, to_email: str, code: str, purpose: str) -> bool:
        self.messages.append({"to": to_email, "code": code, "purpose": purpose})
        return True

    def last_code(self, email: str, purpose: str) -> str:
        for message in reversed(self.messages):
            if message["to"] == email and message["purpose"] == purpose:
                return message["code"]
        raise AssertionError(f"no {purpose} code was sent to {email}")


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_db():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> Outbox:
    box = Outbox()
    monkeypatch.setattr(auth_routes, "send_code_email", box.send)
    return box


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def get_user():
    def _get(email: str):
        async def _fetch():
            async with AsyncSessionLocal() as session:
                result = await session.execute(select(User).where(User.email == email))
                return result.scalar_one_or_none()

        return asyncio.run(_fetch())

    return _get


@pytest.fixture()
def count_movies():
    def _count(user_id: int) -> int:
        async def _fetch():
            async with AsyncSessionLocal() as session:
                result = await session.execute(select(Movie.id).where(Movie.user_id == user_id))
                return len(result.scalars().all())

        return asyncio.run(_fetch())

    return _count


@pytest.fixture()
def register_user(client, outbox):
    """Register (and by default verify) a user; returns the new user id."""

    def _register(email: str, password: str = DEFAULT_PASSWORD, verify: bool = True) -> int:
        response = client.post("/auth/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        if verify:
            code = outbox.last_code(email, "registration")
            verified = client.post("/auth/verify-email", json={"email": email, "code": code})
            assert verified.status_code == 200, verified.text
        return response.json()["user_id"]

    return _register


@pytest.fixture()
def login(client, outbox):
    """Run both login steps and return Authorization headers."""

    def _login(email: str, password: str = DEFAULT_PASSWORD) -> dict:
        step_one = client.post("/auth/login", json={"email": email, "password": password})
        assert step_one.status_code == 200, step_one.text
        code = outbox.last_code(email, "login")
        step_two = client.post("/auth/verify-login", json={"email": email, "code": code})
        assert step_two.status_code == 200, step_two.text
        return {"Authorization": f"Bearer {step_two.json()['access_token']}"}

    return _login


@pytest.fixture()
def admin_headers(client, login) -> dict:
    response = client.post(
        "/auth/create-admin",
        json={"email": "admin@example.com", "password": "adminpass1"},
    )
    assert response.status_code == 201, response.text
    return login("admin@example.com", "adminpass1")


@pytest.fixture()
def user_headers(register_user, login) -> dict:
    register_user("alice@example.com")
    return login("alice@example.com")
