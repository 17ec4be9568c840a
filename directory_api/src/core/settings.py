from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from src.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Directory API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Identity and routing service for a multi-site local business and events "
            "directory. Resolves public slugs to canonical entities and evaluates "
            "site- and place-scoped permissions."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Auth
    JWT_SECRET_KEY: str = Field(default="change-me", description="Secret used to sign JWTs")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # Slug resolution cache
    RESOLUTION_CACHE_TTL_SECONDS: float = Field(
        default=30.0,
        ge=0,
        le=60,
        description="Seconds a successful slug resolution may be reused. 0 disables caching.",
    )
    RESOLUTION_CACHE_MAXSIZE: int = Field(default=4096, ge=1)

    # Startup behavior
    CREATE_TABLES_ON_STARTUP: bool = Field(
        default=False,
        description="If true, create the lookup tables (slug bindings, users, memberships) at startup.",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name, e.g. DEBUG or WARNING")

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    # Automatically load from .env at runtime. The orchestrator will provide these.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            # Try comma-separated
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. Long-lived objects
      such as the resolution cache read it once when they are built.
    """
    return AppSettings()
