from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from sales_kpi.deps import get_today
from sales_kpi.main import create_app
from sales_kpi.memory_repository import InMemoryKpiRepository
from sales_kpi.settings import Settings

TODAY = date(2024, 1, 3)
PASSWORD = "kpi-Test-2024"


@pytest.fixture
def settings():
    return Settings(_env_file=None, JWT_SECRET="test-secret", DATABASE_URL="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def repository():
    return InMemoryKpiRepository()


@pytest.fixture
def app(settings, repository):
    application = create_app(settings, repository)
    application.dependency_overrides[get_today] = lambda: TODAY
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def _register(client, email="rep@example.com", name="Rep"):
    response = client.post("/api/auth/register", json={"email": email, "password": PASSWORD, "name": name})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def register_user(client):
    def _factory(email="rep@example.com", name="Rep"):
        return _register(client, email, name)

    return _factory


@pytest.fixture
def auth_headers(client):
    return _register(client)
