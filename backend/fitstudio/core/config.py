# backend/fitstudio/core/config.py
import logging
from functools import lru_cache
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)

_DEFAULT_JWT_SECRET = "fitstudio-dev-secret-change-me"


class Settings(BaseSettings):
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment environment; production suppresses internal error messages",
    )
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    database_url: str = Field(
        default="sqlite:///./fitstudio.db",
        description="SQLAlchemy database URL (PostgreSQL in deployed environments)",
    )

    # Tokens are issued elsewhere; this service only verifies them.
    jwt_secret: SecretStr = Field(
        default=SecretStr(_DEFAULT_JWT_SECRET),
        description="Shared secret used to verify bearer tokens",
    )
    jwt_algorithm: str = "HS256"

    check_in_grace_minutes: int = Field(
        default=30,
        ge=0,
        description="How long before session start check-in opens",
    )

    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for cross-process session locks (process-local locks when unset)",
    )
    session_lock_timeout_seconds: float = Field(default=5.0, gt=0)
    session_lock_ttl_seconds: int = Field(default=30, ge=1)

    notifications_enabled: bool = True
    notification_workers: int = Field(default=2, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
