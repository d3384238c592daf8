"""
Application configuration loaded from environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "CHANGE_ME_IN_PRODUCTION_0123456789abcdef"


class Settings(BaseSettings):
    """Org membership service configuration."""

    model_config = SettingsConfigDict(env_prefix="ORGAUTH_", env_file=".env", extra="ignore")

    # Runtime environment (controls error detail in 500 responses)
    environment: Literal["development", "production", "test"] = "development"

    # Database
    database_url: str = "sqlite+aiosqlite:///./orgauth.db"
    create_tables_on_startup: bool = True

    # Security
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7
    bcrypt_rounds: int = 10

    # Rate limiting (fixed window, keyed by client address)
    rate_limit_enabled: bool = True
    rate_limit_default: str = "100/15 minutes"
    rate_limit_auth: str = "5/15 minutes"
    rate_limit_create_org: str = "10/hour"

    # Routing
    api_prefix: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # Logging
    log_level: str = "info"
    log_format: Literal["json", "text"] = "json"

    # CORS
    cors_origins: list[str] = ["*"]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
