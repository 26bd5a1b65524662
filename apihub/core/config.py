"""
Application configuration settings.

Central configuration module using Pydantic BaseSettings with environment variable support.
Loads from .env file and environment variables.
"""
import json
import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists (python-dotenv)
env_path = Path(".env")
if env_path.exists():
    load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App settings
    APP_NAME: str = "APIHub"
    APP_ENV: str = Field(default="local")
    DEBUG: bool = Field(default=False)

    # Database settings - generic connection string (highest priority)
    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Database connection URL (full URL)",
    )

    # Hosted Postgres raw vars (PG*)
    PGUSER: Optional[str] = Field(default=None)
    PGPASSWORD: Optional[str] = Field(default=None)
    PGHOST: Optional[str] = Field(default=None)
    PGPORT: Optional[str] = Field(default=None)
    PGDATABASE: Optional[str] = Field(default=None)

    # Local docker-compose Postgres settings (fallback for local dev)
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_HOST: Optional[str] = Field(default=None)
    POSTGRES_PORT: str = Field(default="5432")
    POSTGRES_DB: str = Field(default="apihub")

    @property
    def sqlalchemy_database_uri(self) -> str:
        """
        Build SQLAlchemy database URI with priority:
        1. DATABASE_URL (full URL)
        2. PG* vars (hosted Postgres raw env vars)
        3. Local docker-compose Postgres (POSTGRES_*)
        4. SQLite (local development without Docker)
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if self.PGUSER and self.PGHOST and self.PGDATABASE:
            password = quote_plus(self.PGPASSWORD or "")
            port = self.PGPORT or "5432"
            return f"postgresql+psycopg2://{self.PGUSER}:{password}@{self.PGHOST}:{port}/{self.PGDATABASE}"

        # Only used if POSTGRES_HOST is explicitly set AND credentials are present
        if os.getenv("POSTGRES_HOST") and self.POSTGRES_USER and self.POSTGRES_PASSWORD:
            password = quote_plus(self.POSTGRES_PASSWORD)
            return (
                f"postgresql+psycopg2://"
                f"{self.POSTGRES_USER}:{password}@"
                f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        return "sqlite:///./apihub.db"

    # Server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=5000, description="Listening port for the bundled uvicorn runner")

    # CORS settings
    CORS_ORIGINS: Union[str, List[str]] = Field(
        default='["http://localhost:5173"]',
    )
    CLIENT_URL: Optional[str] = Field(
        default=None,
        description="Browser origin of the dashboard; appended to CORS_ORIGINS when set",
    )

    @field_validator("CORS_ORIGINS")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(self.CORS_ORIGINS)
        if self.CLIENT_URL and self.CLIENT_URL not in origins:
            origins.append(self.CLIENT_URL)
        return origins

    # Local token signing
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Shared secret used to sign locally issued access tokens",
    )
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=7 * 24 * 60,
        description="Access token lifetime in minutes (7 days default)",
    )

    # External identity provider (ID token verification) - Optional
    EXTERNAL_AUTH_PUBLIC_KEY: Optional[str] = Field(
        default=None,
        description="PEM public key of the external identity provider. Leave empty to disable external sign-in.",
    )
    EXTERNAL_AUTH_ALGORITHM: str = Field(default="RS256")
    EXTERNAL_AUTH_AUDIENCE: Optional[str] = Field(default=None)
    EXTERNAL_AUTH_ISSUER: Optional[str] = Field(default=None)

    # Dataset upload settings
    MAX_UPLOAD_SIZE: int = Field(
        default=10 * 1024 * 1024, description="Max dataset upload size in bytes (10MB default)"
    )

    # Gateway settings
    API_VERSION_PREFIX: str = Field(default="/api/v1")
    DEFAULT_PAGE_SIZE: int = Field(default=10)
    MAX_PAGE_SIZE: int = Field(default=100)
    DEFAULT_RATE_LIMIT: int = Field(
        default=1000,
        description="Requests per hour recorded on new keys and endpoints (not enforced)",
    )

    # API keys
    STORE_KEY_SECRETS: bool = Field(
        default=True,
        description="Keep the cleartext key secret so developers can copy shared keys later",
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    def is_external_auth_available(self) -> bool:
        """Check if the external identity provider key is configured and not empty."""
        return (
            self.EXTERNAL_AUTH_PUBLIC_KEY is not None
            and isinstance(self.EXTERNAL_AUTH_PUBLIC_KEY, str)
            and self.EXTERNAL_AUTH_PUBLIC_KEY.strip() != ""
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
