"""
Unit tests for settings and API configuration loading.
They check required variables, defaults and the derived cookie and version helpers.
"""

import pytest

from marketplace.api import api_config as api_config_module
from marketplace.common import settings as settings_module


def test_load_settings_success() -> None:
    settings_module.get_settings.cache_clear()
    settings = settings_module.get_settings()
    assert settings.PROJECT_NAME
    assert settings.API_PORT > 0


def test_load_settings_missing_required(monkeypatch: pytest.MonkeyPatch) -> None:
    settings_module.get_settings.cache_clear()
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError, match="Missing required environment variables: JWT_SECRET"):
        settings_module.load_settings(load_env=False)


def test_load_api_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "unit-secret")
    monkeypatch.delenv("API_VERSION_PATH", raising=False)
    monkeypatch.delenv("JWT_EXPIRES_DAYS", raising=False)
    monkeypatch.delenv("AUTH_COOKIE_NAME", raising=False)
    monkeypatch.setenv("ENV", "local")

    config = api_config_module.load_api_config(load_env=False)

    assert config.api_version_path == "/api/v1"
    assert config.api_version_label() == "v1"
    assert config.jwt_expires_days == 30
    assert config.auth_cookie_name == "token"
    assert config.auth_cookie_max_age_seconds == 7 * 24 * 60 * 60
    assert config.secure_cookies is False


def test_load_api_config_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "unit-secret")
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("API_ALLOWED_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("API_ENABLE_REQUEST_LOGGING", "yes")

    config = api_config_module.load_api_config(load_env=False)

    assert config.allowed_origins == ["http://a.test", "http://b.test"]
    assert config.enable_request_logging is True
    assert config.secure_cookies is True


def test_load_api_config_requires_jwt_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "")
    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        api_config_module.load_api_config(load_env=False)


@pytest.mark.parametrize("rounds", [3, 32])
def test_password_hash_rounds_are_bounded(rounds: int) -> None:
    with pytest.raises(ValueError):
        api_config_module.ApiConfig(database_url="sqlite://", jwt_secret="s", password_hash_rounds=rounds)


def test_bad_boolean_env_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "unit-secret")
    monkeypatch.setenv("API_ENABLE_REQUEST_LOGGING", "maybe")
    with pytest.raises(ValueError, match="API_ENABLE_REQUEST_LOGGING"):
        api_config_module.load_api_config(load_env=False)
