from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Database settings for the slug and membership lookups.

    Reads from environment variables (or .env via pydantic-settings):
      - DATABASE_URL: any async SQLAlchemy URL, used as-is when set
      - POSTGRES_URL, or POSTGRES_USER / POSTGRES_PASSWORD / POSTGRES_DB /
        POSTGRES_HOST / POSTGRES_PORT for the directory PostgreSQL database
    """

    DATABASE_URL: Optional[str] = Field(
        default=None, description="Async SQLAlchemy URL, e.g. sqlite+aiosqlite:///./directory.db"
    )

    # Directory PostgreSQL database
    POSTGRES_URL: Optional[str] = Field(
        default=None, description="If provided, full PostgreSQL connection URL."
    )
    POSTGRES_USER: Optional[str] = Field(default=None, description="DB username")
    POSTGRES_PASSWORD: Optional[str] = Field(default=None, description="DB password")
    POSTGRES_DB: Optional[str] = Field(default=None, description="Database name")
    POSTGRES_PORT: Optional[int] = Field(default=5432, description="Database port (default 5432)")
    POSTGRES_HOST: Optional[str] = Field(default="localhost", description="Database host (default localhost)")

    SQL_ECHO: bool = Field(default=False, description="Echo SQL statements for debugging (default False)")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def postgres_url(self) -> str:
        """
        PostgreSQL URL from POSTGRES_URL, or built from the individual POSTGRES_* variables.
        """
        if self.POSTGRES_URL:
            return self.POSTGRES_URL

        if not all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            raise ValueError(
                "Database configuration missing. Set DATABASE_URL, POSTGRES_URL, or "
                "POSTGRES_USER, POSTGRES_PASSWORD and POSTGRES_DB."
            )
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT or 5432
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"

    @property
    def async_database_url(self) -> str:
        """
        URL for the AsyncEngine. PostgreSQL URLs are normalized to the asyncpg driver.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return re.sub(r"^postgresql(\+\w+)?://", "postgresql+asyncpg://", self.postgres_url)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return the database settings read from the environment."""
    return Settings()
