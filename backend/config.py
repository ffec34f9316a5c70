"""
Application configuration.

Settings are loaded once by pydantic-settings (environment variables with the
TRACKER_ prefix, optionally a .env file) and handed to create_app() explicitly.
Route handlers and dependencies read them from app.state via get_settings().
"""

import logging
import secrets
from typing import List, Literal, Optional

from fastapi import Request
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]


class Settings(BaseSettings):
    """
    Runtime settings for the tracker API.

    Environment variables use the TRACKER_ prefix:
    - TRACKER_DATABASE_URL
    - TRACKER_JWT_SECRET_KEY
    - TRACKER_ENVIRONMENT
    etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development", description="development, staging or production")
    database_url: str = Field(default="sqlite:///./tracker.db", description="SQLAlchemy database URL")
    create_tables: bool = Field(default=True, description="Create missing tables on startup")

    jwt_secret_key: Optional[SecretStr] = Field(default=None, description="HMAC key used to sign access tokens")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=1440, ge=1, le=1440)

    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3001",
        ]
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = Field(default=3333, ge=1, le=65535)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("jwt_algorithm")
    @classmethod
    def check_algorithm(cls, value: str) -> str:
        if value not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported JWT algorithm {value}. Supported: {', '.join(SUPPORTED_ALGORITHMS)}")
        return value

    @model_validator(mode="after")
    def ensure_secret_key(self) -> "Settings":
        secret = self.jwt_secret_key.get_secret_value().strip() if self.jwt_secret_key else ""
        if secret:
            return self

        if self.is_production_like:
            raise ValueError(
                "TRACKER_JWT_SECRET_KEY is required in production. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )

        # Tokens signed with this key do not survive a restart
        self.jwt_secret_key = SecretStr("dev-insecure-key-" + secrets.token_urlsafe(32))
        logger.warning(
            "⚠️  TRACKER_JWT_SECRET_KEY not set! Using temporary development key. "
            "This is INSECURE for production."
        )
        return self

    @property
    def is_production_like(self) -> bool:
        return self.environment.lower() in ("production", "staging")

    @property
    def secret_key(self) -> str:
        return self.jwt_secret_key.get_secret_value()


def get_settings(request: Request) -> Settings:
    """FastAPI dependency returning the settings the running app was built with."""
    return request.app.state.settings
