# This file provides shared helpers for API endpoint tests.
# Tests override service and current-user dependencies without touching real databases.
# The helpers build consistent config objects and scoped TestClient contexts.

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi.testclient import TestClient

from marketplace.api.api_config import ApiConfig
from marketplace.api.app import app
from marketplace.api.auth import get_current_user
from marketplace.api.dependencies import (
    get_config,
    get_database_client,
    get_order_service,
    get_product_service,
    get_review_service,
    get_user_service,
)


def build_test_config(**overrides: Any) -> ApiConfig:
    """Create deterministic API config for tests."""

    values: dict[str, Any] = {
        "api_name": "Test Marketplace API",
        "api_version_path": "/api/v1",
        "schema_version": "1.0.0",
        "host": "0.0.0.0",
        "port": 5000,
        "environment": "test",
        "database_url": "sqlite://",
        "jwt_secret": "test-secret-key-for-signing-tokens-0001",
        "password_hash_rounds": 4,
        "default_page_size": 2,
        "max_page_size": 5,
        "default_product_sort": "bar_code:desc",
        "enable_request_logging": False,
        "allowed_origins": [],
        "app_version": "0.1.0",
    }
    values.update(overrides)
    return ApiConfig(**values)


def make_user(role: str = "buyer", user_id: str | None = None) -> dict[str, Any]:
    resolved_id = user_id or f"{role}-1"
    return {
        "id": resolved_id,
        "username": f"{resolved_id}-name",
        "email": f"{resolved_id}@example.com",
        "full_name": None,
        "role": role,
        "created_at": None,
    }


class FakeDBClient:
    """Simple fake DB dependency for health/readiness endpoint tests."""

    def __init__(self, *, connected: bool = True, existing_tables: set[str] | None = None) -> None:
        self._connected = connected
        self._tables = existing_tables if existing_tables is not None else {
            "orders",
            "order_items",
            "product_skus",
            "variations",
        }

    def can_connect(self) -> bool:
        return self._connected

    def table_exists(self, table_name: str) -> bool:
        return self._connected and table_name in self._tables


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    db_client: Any | None = None,
    user: dict[str, Any] | None = None,
    order_service: Any | None = None,
    product_service: Any | None = None,
    review_service: Any | None = None,
    user_service: Any | None = None,
) -> Iterator[TestClient]:
    """Yield a TestClient with scoped dependency overrides; `user` stands in for the token holder."""

    resolved_config = config or build_test_config()

    app.dependency_overrides[get_config] = lambda: resolved_config
    app.dependency_overrides[get_database_client] = lambda: db_client or FakeDBClient()
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
    if order_service is not None:
        app.dependency_overrides[get_order_service] = lambda: order_service
    if product_service is not None:
        app.dependency_overrides[get_product_service] = lambda: product_service
    if review_service is not None:
        app.dependency_overrides[get_review_service] = lambda: review_service
    if user_service is not None:
        app.dependency_overrides[get_user_service] = lambda: user_service

    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
