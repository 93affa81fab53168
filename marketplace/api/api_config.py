# This file defines runtime settings for the API layer in one place.
# The loader reads environment variables and applies defaults suitable for local development.
# Token lifetime, cookie flags, pagination limits and password hashing cost are all configured here.

from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_SEVEN_DAYS_SECONDS = 7 * 24 * 60 * 60


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Marketplace API"
    api_version_path: str = "/api/v1"
    schema_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 5000
    environment: str = "local"
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expires_days: int = 30
    auth_cookie_name: str = "token"
    auth_cookie_max_age_seconds: int = _SEVEN_DAYS_SECONDS
    password_hash_rounds: int = 10
    default_page_size: int = 20
    max_page_size: int = 100
    default_product_sort: str = "bar_code:desc"
    enable_request_logging: bool = False
    allowed_origins: list[str] = Field(default_factory=list)
    app_version: str = "0.1.0"

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("api_version_path must start with '/'.")
        parts = [part for part in value.split("/") if part]
        if len(parts) < 2 or parts[-1].startswith("v") is False:
            raise ValueError("api_version_path must look like '/api/v1'.")
        return value.rstrip("/")

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("jwt_secret cannot be empty.")
        return value

    @field_validator(
        "jwt_expires_days",
        "auth_cookie_max_age_seconds",
        "default_page_size",
        "max_page_size",
    )
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than 0.")
        return value

    @field_validator("password_hash_rounds")
    @classmethod
    def validate_password_hash_rounds(cls, value: int) -> int:
        # bcrypt accepts log2 rounds between 4 and 31
        if not 4 <= value <= 31:
            raise ValueError("password_hash_rounds must be between 4 and 31.")
        return value

    @property
    def secure_cookies(self) -> bool:
        return self.environment == "production"

    def api_version_label(self) -> str:
        return self.api_version_path.rstrip("/").split("/")[-1]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be boolean-like, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment."""

    if load_env:
        load_dotenv()

    config_values: dict[str, object] = {
        "api_name": os.getenv("API_NAME", "Marketplace API"),
        "api_version_path": os.getenv("API_VERSION_PATH", "/api/v1"),
        "schema_version": os.getenv("API_SCHEMA_VERSION", "1.0.0"),
        "host": os.getenv("API_HOST", "0.0.0.0"),
        "port": _env_int("API_PORT", 5000),
        "environment": os.getenv("ENV", "local"),
        "database_url": os.getenv("DATABASE_URL", ""),
        "jwt_secret": os.getenv("JWT_SECRET", ""),
        "jwt_algorithm": os.getenv("JWT_ALGORITHM", "HS256"),
        "jwt_expires_days": _env_int("JWT_EXPIRES_DAYS", 30),
        "auth_cookie_name": os.getenv("AUTH_COOKIE_NAME", "token"),
        "auth_cookie_max_age_seconds": _env_int("AUTH_COOKIE_MAX_AGE_SECONDS", _SEVEN_DAYS_SECONDS),
        "password_hash_rounds": _env_int("PASSWORD_HASH_ROUNDS", 10),
        "default_page_size": _env_int("API_DEFAULT_PAGE_SIZE", 20),
        "max_page_size": _env_int("API_MAX_PAGE_SIZE", 100),
        "default_product_sort": os.getenv("API_DEFAULT_PRODUCT_SORT", "bar_code:desc"),
        "enable_request_logging": _env_bool("API_ENABLE_REQUEST_LOGGING", False),
        "allowed_origins": _env_list("API_ALLOWED_ORIGINS", []),
        "app_version": os.getenv("APP_VERSION", "0.1.0"),
    }
    if not config_values["database_url"]:
        raise RuntimeError("DATABASE_URL is required for API startup.")
    if not config_values["jwt_secret"]:
        raise RuntimeError("JWT_SECRET is required for API startup.")

    return ApiConfig.model_validate(config_values)


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
