import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from stockdesk.common.normalize import normalize_row
from stockdesk.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Read-only mappings of the external store; never used to create tables at runtime
Base = declarative_base()


class DatabaseConfigurationError(RuntimeError):
    """Raised when no Postgres connection string is configured."""


class DatabaseManager:
    """
    Owns the process-wide async engine (and therefore the connection pool).

    The engine is created lazily on first use and can be closed and
    re-created. All query helpers check out one pooled connection per call
    and return it on both success and failure.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings
        self._settings_injected = settings is not None
        self._engine: Optional[AsyncEngine] = None
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def _create_engine(self) -> AsyncEngine:
        url = self.settings.async_database_url
        if not url:
            raise DatabaseConfigurationError(
                "DATABASE_URL is not set. Provide a Postgres connection string to enable database access."
            )
        engine = create_async_engine(
            url,
            pool_size=self.settings.DB_POOL_MAX,
            max_overflow=0,
            pool_recycle=self.settings.DB_POOL_IDLE_TIMEOUT,
            pool_pre_ping=True,
            echo=self.settings.DEBUG,
        )
        logger.info(f"Database engine created (pool size {self.settings.DB_POOL_MAX})")
        return engine

    async def get_engine(self) -> AsyncEngine:
        if self._engine is not None:
            return self._engine
        async with self._lock:
            if self._engine is None:
                self._engine = self._create_engine()
        return self._engine

    async def close(self) -> None:
        """Dispose of the pool; the next call re-initialises it."""
        async with self._lock:
            engine, self._engine = self._engine, None
            # Re-read the environment on the next init unless settings were passed in
            if not self._settings_injected:
                self._settings = None
        if engine is not None:
            await engine.dispose()
            logger.info("Database engine disposed")

    async def _execute(self, stmt, read):
        engine = await self.get_engine()
        try:
            async with engine.connect() as conn:
                result = await conn.execute(stmt)
                return read(result)
        except (SQLAlchemyError, OSError):
            logger.exception("Database query failed")
            raise

    async def fetch_all(self, stmt) -> List[Dict[str, Any]]:
        return await self._execute(stmt, lambda result: [dict(row) for row in result.mappings().all()])

    async def fetch_one(self, stmt) -> Optional[Dict[str, Any]]:
        def first(result):
            row = result.mappings().first()
            return dict(row) if row is not None else None

        return await self._execute(stmt, first)

    async def fetch_scalar(self, stmt) -> Any:
        return await self._execute(stmt, lambda result: result.scalar())

    async def ping(self) -> Dict[str, Any]:
        """Round-trip health probe: server time and database name."""
        row = await self.fetch_one(
            select(
                func.now().label("now"),
                func.current_database().label("database"),
            )
        )
        row = normalize_row(row or {})
        return {
            "ok": True,
            "now": row.get("now") or datetime.now(timezone.utc).isoformat(),
            "database": row.get("database"),
        }


async def gather(*aws):
    """Run independent queries concurrently; the first failure fails the call."""
    return await asyncio.gather(*aws)


db_manager = DatabaseManager()


def get_database() -> DatabaseManager:
    """FastAPI dependency returning the shared database manager."""
    return db_manager
