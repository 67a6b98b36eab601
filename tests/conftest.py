"""Pytest configuration shared across the API tests."""

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time, so pin them before the package loads.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient  # noqa: E402

from taskplanner import database, models  # noqa: E402
from taskplanner.main import app  # noqa: E402

PASSWORD = "Secret123"


@pytest.fixture(autouse=True)
def _fresh_schema():
    models.Base.metadata.drop_all(bind=database.engine)
    models.Base.metadata.create_all(bind=database.engine)
    yield
    models.Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def register(client):
    """Register a user and return ``(user, auth_headers)``."""

    def _register(name="Alice", email=None, role="user", password=PASSWORD):
        email = email or f"{name.lower()}@example.com"
        resp = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password, "role": role},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register


@pytest.fixture
def make_task(client):
    def _make_task(headers, date="20250615", **fields):
        body = {"title": "Write report", "description": "Quarterly numbers"}
        body.update(fields)
        resp = client.post(f"/api/tasks/create/{date}", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["task"]

    return _make_task
