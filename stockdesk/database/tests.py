"""
Tests for configuration and the connection manager
"""

import asyncio

import pytest

from stockdesk.core.config import Settings
from stockdesk.database.database import DatabaseConfigurationError, DatabaseManager, gather

URL_VARS = ("DATABASE_URL", "POSTGRES_URL", "POSTGRES_CONNECTION_STRING")


@pytest.fixture
def clean_env(monkeypatch):
    for name in URL_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:

    def test_database_url_takes_priority(self, clean_env):
        clean_env.setenv("DATABASE_URL", "postgresql://a/one")
        clean_env.setenv("POSTGRES_URL", "postgresql://b/two")
        clean_env.setenv("POSTGRES_CONNECTION_STRING", "postgresql://c/three")
        assert Settings(_env_file=None).DATABASE_URL == "postgresql://a/one"

    def test_falls_back_through_aliases(self, clean_env):
        clean_env.setenv("POSTGRES_CONNECTION_STRING", "postgresql://c/three")
        assert Settings(_env_file=None).DATABASE_URL == "postgresql://c/three"
        clean_env.setenv("POSTGRES_URL", "postgresql://b/two")
        assert Settings(_env_file=None).DATABASE_URL == "postgresql://b/two"

    def test_blank_url_is_unset(self, clean_env):
        clean_env.setenv("DATABASE_URL", "  ")
        settings = Settings(_env_file=None)
        assert settings.DATABASE_URL is None
        assert settings.async_database_url is None

    @pytest.mark.parametrize("url,expected", [
        ("postgres://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
        ("postgresql://u:p@host:5433/db", "postgresql+asyncpg://u:p@host:5433/db"),
        ("postgresql+psycopg2://host/db", "postgresql+asyncpg://host/db"),
        ("postgresql+asyncpg://host/db", "postgresql+asyncpg://host/db"),
    ])
    def test_async_driver_url(self, clean_env, url, expected):
        assert Settings(_env_file=None, DATABASE_URL=url).async_database_url == expected

    def test_pool_defaults(self, clean_env):
        settings = Settings(_env_file=None)
        assert settings.DB_POOL_MAX == 5
        assert settings.DB_POOL_IDLE_TIMEOUT == 30

    def test_stock_ledger_sizes(self, clean_env):
        clean_env.setenv("STOCK_LEDGER_DEFAULT_LIMIT", "75")
        settings = Settings(_env_file=None)
        assert settings.STOCK_LEDGER_DEFAULT_LIMIT == 75
        assert settings.STOCK_LEDGER_LIMIT == 50
        assert settings.STOCK_LEDGER_MAX_LIMIT == 1000

    @pytest.mark.parametrize("raw,expected", [("true", True), ('"1"', True), ("off", False), ("no", False)])
    def test_debug_flag_strings(self, clean_env, raw, expected):
        clean_env.setenv("DEBUG", raw)
        assert Settings(_env_file=None).DEBUG is expected


class TestDatabaseManager:

    def test_missing_url_fails_on_first_use(self, clean_env):
        manager = DatabaseManager(Settings(_env_file=None))
        assert not manager.is_initialized

        with pytest.raises(DatabaseConfigurationError, match="DATABASE_URL is not set"):
            asyncio.run(manager.get_engine())
        assert not manager.is_initialized

    def test_engine_is_created_once_and_reset_on_close(self, clean_env):
        manager = DatabaseManager(Settings(_env_file=None, DATABASE_URL="postgresql://user:pw@localhost/stock"))

        async def scenario():
            first, second = await asyncio.gather(manager.get_engine(), manager.get_engine())
            assert first is second
            assert first.url.drivername == "postgresql+asyncpg"
            assert first.pool.size() == 5
            await manager.close()
            assert not manager.is_initialized
            third = await manager.get_engine()
            assert third is not first
            await manager.close()

        asyncio.run(scenario())

    def test_injected_settings_survive_close(self, clean_env):
        settings = Settings(_env_file=None, DATABASE_URL="postgresql://localhost/stock")
        manager = DatabaseManager(settings)
        asyncio.run(manager.close())
        assert manager.settings is settings

    def test_gather_propagates_first_failure(self):
        async def ok():
            return 1

        async def boom():
            raise RuntimeError("query failed")

        with pytest.raises(RuntimeError, match="query failed"):
            asyncio.run(gather(ok(), boom()))

        assert asyncio.run(gather(ok(), ok())) == [1, 1]
