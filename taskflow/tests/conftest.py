"""Shared fixtures: an app per test over either storage backend."""

import pytest
from fastapi.testclient import TestClient

from taskflow.config import Settings
from taskflow.database import build_engine, create_db_and_tables
from taskflow.main import create_app
from taskflow.storage import MemoryStorage, SqlStorage


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(
        storage="memory",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        reminders_enabled=False,
    )


@pytest.fixture(name="sql_storage")
def sql_storage_fixture() -> SqlStorage:
    """A fresh in-memory SQLite database for each test."""
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    return SqlStorage(engine)


@pytest.fixture(name="storage", params=["memory", "sql"])
def storage_fixture(request):
    if request.param == "memory":
        return MemoryStorage()
    return request.getfixturevalue("sql_storage")


@pytest.fixture(name="app")
def app_fixture(settings, storage):
    return create_app(settings, storage=storage)


@pytest.fixture(name="client")
def client_fixture(app):
    with TestClient(app) as client:
        yield client


def signup_headers(client: TestClient, email: str = "ann@example.com", password: str = "pw-123") -> dict:
    """Register ``email`` and return an Authorization header for it."""
    response = client.post("/auth/signup", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(client: TestClient) -> dict:
    return signup_headers(client)
