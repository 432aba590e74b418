"""
Shared fixtures: an in-memory stand-in for the database manager and a test
client wired to it.

The fake answers each statement by matching fragments of its compiled
PostgreSQL SQL; the first registered fragment found in the statement wins.
"""
from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.dialects import postgresql

from stockdesk.core.config import Settings
from stockdesk.database.database import get_database


def compile_sql(stmt):
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


class FakeDatabase:
    def __init__(self, settings=None):
        self.settings = settings or Settings(_env_file=None)
        self.answers = []
        self.statements = []

    def answer(self, fragment, result):
        self.answers.append((fragment, result))
        return self

    def _lookup(self, stmt, default):
        sql, params = compile_sql(stmt)
        self.statements.append((sql, params))
        for fragment, result in self.answers:
            if fragment in sql:
                return result
        return default

    def find(self, fragment):
        """Compiled statements containing ``fragment``."""
        return [(sql, params) for sql, params in self.statements if fragment in sql]

    async def fetch_all(self, stmt):
        return list(self._lookup(stmt, []))

    async def fetch_one(self, stmt):
        return self._lookup(stmt, None)

    async def fetch_scalar(self, stmt):
        return self._lookup(stmt, 0)

    async def ping(self):
        return {"ok": True, "now": "2026-03-15T10:00:00+00:00", "database": "stockdesk"}


# ===== FIXTURES =====

@pytest.fixture
def today():
    return date(2026, 3, 15)


@pytest.fixture
def stamp():
    return datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(name="compile_sql")
def compile_sql_fixture():
    return compile_sql


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def client(fake_db):
    from stockdesk.main import app

    app.dependency_overrides[get_database] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()
