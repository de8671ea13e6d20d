"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; pin them before echo_api is imported
os.environ["ENVIRONMENT"] = "development"
os.environ["AUTH_PROVIDER"] = "jwt"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["OPENAI_API_KEY"] = ""
os.environ["DATABASE_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["FRONTEND_URL"] = "http://localhost:5173"

import pytest
from collections.abc import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from echo_api.config import get_settings
from echo_api.errors import ModelUnavailable
from echo_api.main import app, init_app_state
from echo_api.storage import Storage, build_memory_storage, build_sql_storage
from echo_api.storage.factory import create_tables


class FakeGateway:
    """
    Stand-in for ModelGateway.

    Replies with `reply` (or raises `error`) and records every prompt it was sent.
    """

    def __init__(self, reply: str = "2 + 2 = 4", title: str = "Simple Arithmetic Question"):
        self.reply = reply
        self.title = title
        self.error: Exception | None = None
        self.title_error: Exception | None = None
        self.calls: list[dict] = []
        self.title_calls: list[str] = []
        self.model = "fake-model"
        self.configured = True

    async def complete(self, prompt, temperature, max_tokens=None):
        self.calls.append({"prompt": prompt, "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.reply

    async def generate_title(self, message):
        self.title_calls.append(message)
        if self.title_error is not None:
            raise self.title_error
        return self.title

    def fail_with(self, detail: str = "provider down") -> None:
        self.error = ModelUnavailable(detail=detail)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def storage() -> Storage:
    return build_memory_storage()


async def _sql_storage() -> Storage:
    # StaticPool: every session shares the one in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    return build_sql_storage(engine)


@pytest.fixture
async def sql_storage() -> AsyncGenerator[Storage, None]:
    storage = await _sql_storage()
    yield storage
    await storage.aclose()


@pytest.fixture(params=["memory", "sql"])
async def any_storage(request) -> AsyncGenerator[Storage, None]:
    """Runs the test once per backend; both must satisfy the same contract."""
    storage = build_memory_storage() if request.param == "memory" else await _sql_storage()
    yield storage
    await storage.aclose()


@pytest.fixture
def test_app(storage, gateway, settings):
    init_app_state(app, storage, settings, gateway=gateway)
    return app


@pytest.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
    await test_app.state.orchestrator.drain()


@pytest.fixture
def login(client):
    """Log a user in; returns (user_json, auth_headers)."""

    async def _login(name: str = "Ada Lovelace", email: str = "ada@example.com"):
        response = await client.post("/api/auth/login", json={"name": name, "email": email})
        assert response.status_code == 200, response.text
        body = response.json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _login
