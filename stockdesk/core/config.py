from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import AliasChoices, Field, field_validator


class Settings(BaseSettings):
    # Database settings
    # First match wins: DATABASE_URL, POSTGRES_URL, POSTGRES_CONNECTION_STRING
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "DATABASE_URL",
            "POSTGRES_URL",
            "POSTGRES_CONNECTION_STRING",
        ),
    )
    DB_POOL_MAX: int = 5
    DB_POOL_IDLE_TIMEOUT: int = 30  # seconds

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Analytics
    TREND_MONTHS: int = 6
    TREND_WEEKS: int = 26
    STOCK_LEDGER_LIMIT: int = 50
    STOCK_LEDGER_DEFAULT_LIMIT: int = 200
    STOCK_LEDGER_MAX_LIMIT: int = 1000

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    @property
    def async_database_url(self) -> Optional[str]:
        if not self.DATABASE_URL:
            return None
        url = self.DATABASE_URL.strip()
        for prefix in ("postgres://", "postgresql://", "postgresql+psycopg2://"):
            if url.startswith(prefix):
                return "postgresql+asyncpg://" + url[len(prefix):]
        return url

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
    )

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def blank_url_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)


def get_settings() -> Settings:
    """Read settings fresh from the environment."""
    return Settings()


settings = Settings()
