"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with STRATDASH_ prefix
(a local .env file is read too). No YAML files: just env vars
(12-factor app style).

Learn: The database URL has no default on purpose. If it is missing,
Settings() raises at import time and the process never starts. The two
signing secrets DO have defaults, but only development may use them.
The validator refuses to boot anywhere else.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ACCESS_SECRET = "your-secret-key"
DEFAULT_REFRESH_SECRET = "your-refresh-secret"


class Settings(BaseSettings):
    """All app configuration. Set via STRATDASH_* env vars."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (only needed when rate_limit_backend == "redis")
    redis_url: str = "redis://localhost:6379/0"

    # Auth: access and refresh tokens are signed with different secrets
    jwt_access_secret: str = DEFAULT_ACCESS_SECRET
    jwt_refresh_secret: str = DEFAULT_REFRESH_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    registration_open: bool = True

    # Login rate limiting (per source address, sliding window)
    login_rate_limit_attempts: int = 5
    login_rate_limit_window_seconds: int = 15 * 60
    rate_limit_backend: Literal["memory", "redis"] = "memory"

    # Server
    environment: str = "development"
    debug: bool = False
    log_json: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = SettingsConfigDict(
        env_prefix="STRATDASH_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure signing secrets are changed in non-development environments."""
        if self.environment == "development":
            return self
        if self.jwt_access_secret == DEFAULT_ACCESS_SECRET:
            raise ValueError(
                "STRATDASH_JWT_ACCESS_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        if self.jwt_refresh_secret == DEFAULT_REFRESH_SECRET:
            raise ValueError(
                "STRATDASH_JWT_REFRESH_SECRET must be set to a secure value in "
                "non-development environments."
            )
        if self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError(
                "Access and refresh tokens must be signed with different secrets."
            )
        return self


# Singleton: import this everywhere
settings = Settings()
