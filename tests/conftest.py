# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from resource_api.core.settings import Settings
from resource_api.db.session import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
)
from resource_api.main import create_app
from resource_api.schemas.user import USER_SCHEMA
from resource_api.services.store import ResourceStore

TEST_SECRET_KEY = "test-secret-key"
TEST_DB_URL = "sqlite+aiosqlite://"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "SECRET_KEY": TEST_SECRET_KEY,
        "DATABASE_URL": TEST_DB_URL,
        "BCRYPT_ROUNDS": 4,
        "LOG_LEVEL": "WARNING",
        "REDIS_URL": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def test_settings() -> Settings:
    """Settings for an isolated in-memory database with cheap hashing."""
    return make_settings()


@pytest.fixture()
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def user_payload() -> dict[str, Any]:
    return {"name": "John", "email": "john@example.com", "password": "secret1"}


@pytest.fixture()
def register(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Create a user over HTTP and return its record plus auth headers."""

    def _register(name: str, email: str, password: str = "secret1", **extra: Any) -> dict[str, Any]:
        response = client.post(
            "/resources",
            json={"name": name, "email": email, "password": password, **extra},
        )
        assert response.status_code == 201, response.text
        record = response.json()
        login = client.post("/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        record["headers"] = {"Authorization": f"Bearer {login.json()['token']}"}
        return record

    return _register


@pytest.fixture()
def alice(register: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return register("Alice", "alice@example.com", age=31)


@pytest.fixture()
def bob(register: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return register("Bob", "bob@example.com", age=27)


@pytest_asyncio.fixture()
async def engine(test_settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = build_engine(test_settings)
    await create_tables(engine)
    try:
        yield engine
    finally:
        await drop_tables(engine)
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        yield session


@pytest.fixture()
def store(db_session: AsyncSession) -> ResourceStore:
    """A users store over the per-test in-memory database."""
    return ResourceStore(db_session, USER_SCHEMA, bcrypt_rounds=4, timeout_seconds=5.0)


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    """Build test settings with selected overrides."""
    return make_settings
