"""
Tests for the database ping, health check and the app-level error mapping
"""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from stockdesk.core.config import Settings
from stockdesk.database.database import DatabaseManager, get_database
from stockdesk.main import app


class StubManager(DatabaseManager):
    def __init__(self, row):
        super().__init__(Settings(_env_file=None, DATABASE_URL="postgresql://localhost/stock"))
        self.row = row

    async def fetch_one(self, stmt):
        return self.row


class FailingDatabase:
    settings = Settings(_env_file=None)

    async def fetch_all(self, stmt):
        raise SQLAlchemyError("connection refused")

    async def fetch_one(self, stmt):
        raise SQLAlchemyError("connection refused")

    async def fetch_scalar(self, stmt):
        raise SQLAlchemyError("connection refused")


@pytest.fixture
def override():
    def install(db):
        app.dependency_overrides[get_database] = lambda: db
        return TestClient(app)

    yield install
    app.dependency_overrides.clear()


class TestPing:

    def test_ping_route(self, client):
        response = client.get("/database/ping")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "now": "2026-03-15T10:00:00+00:00", "database": "stockdesk"}

    def test_ping_shapes_server_row(self):
        manager = StubManager({"now": datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc), "database": "stock"})
        assert asyncio.run(manager.ping()) == {
            "ok": True,
            "now": "2026-03-15T10:00:00+00:00",
            "database": "stock",
        }

    def test_ping_without_database_name(self):
        result = asyncio.run(StubManager(None).ping())
        assert result["ok"] is True
        assert result["database"] is None
        assert datetime.fromisoformat(result["now"])


class TestErrorMapping:

    def test_missing_configuration_is_503(self, override, monkeypatch):
        for name in ("DATABASE_URL", "POSTGRES_URL", "POSTGRES_CONNECTION_STRING"):
            monkeypatch.delenv(name, raising=False)
        client = override(DatabaseManager(Settings(_env_file=None)))

        for path in ("/database/ping", "/customers", "/products/1", "/suppliers/overview"):
            response = client.get(path)
            assert response.status_code == 503
            assert response.json()["detail"].startswith("DATABASE_URL is not set")

    def test_engine_errors_are_500(self, override):
        client = override(FailingDatabase())
        response = client.get("/customers/overview")
        assert response.status_code == 500
        assert response.json() == {"detail": "Database error: connection refused"}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
