"""Settings validation tests: the startup failures that are meant to be fatal."""

import pytest
from pydantic import ValidationError

from stratdash.config import Settings


def test_database_url_required(monkeypatch):
    monkeypatch.delenv("STRATDASH_DATABASE_URL", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_development_tolerates_default_secrets():
    s = Settings(_env_file=None, database_url="sqlite+aiosqlite://", environment="development")
    assert s.jwt_access_secret != s.jwt_refresh_secret
    assert s.access_token_expire_minutes == 15
    assert s.refresh_token_expire_days == 7


def test_production_rejects_default_access_secret():
    with pytest.raises(ValidationError, match="JWT_ACCESS_SECRET"):
        Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://db/app",
            environment="production",
            jwt_refresh_secret="r" * 40,
        )


def test_production_rejects_default_refresh_secret():
    with pytest.raises(ValidationError, match="JWT_REFRESH_SECRET"):
        Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://db/app",
            environment="production",
            jwt_access_secret="a" * 40,
        )


def test_production_rejects_shared_secret():
    with pytest.raises(ValidationError, match="different secrets"):
        Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://db/app",
            environment="production",
            jwt_access_secret="s" * 40,
            jwt_refresh_secret="s" * 40,
        )


def test_production_with_real_secrets():
    s = Settings(
        _env_file=None,
        database_url="postgresql+asyncpg://db/app",
        environment="production",
        jwt_access_secret="a" * 40,
        jwt_refresh_secret="r" * 40,
    )
    assert s.environment == "production"
