"""
Shared test configuration.
Environment defaults are set before any application import because the app is built at import time.
The `db` fixture gives each test a fresh SQLite database with the full marketplace schema applied.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

TEST_ENV_DEFAULTS = {
    "PROJECT_NAME": "test-project",
    "ENV": "test",
    "LOG_LEVEL": "INFO",
    "DATABASE_URL": "sqlite://",
    "JWT_SECRET": "test-secret-key-for-signing-tokens-0001",
    "API_HOST": "0.0.0.0",
    "API_PORT": "5000",
}

for _key, _value in TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)

from marketplace.api.db_access import DatabaseClient  # noqa: E402
from marketplace.common.ddl import apply_schema_ddl  # noqa: E402


@pytest.fixture(autouse=True)
def base_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure required environment variables are present during tests."""

    for key, value in TEST_ENV_DEFAULTS.items():
        if os.getenv(key) is None:
            monkeypatch.setenv(key, value)


@pytest.fixture
def db(tmp_path: Path) -> Iterator[DatabaseClient]:
    """File-backed SQLite database with every marketplace table created."""

    client = DatabaseClient(database_url=f"sqlite:///{tmp_path / 'marketplace.db'}")
    apply_schema_ddl(client.engine)
    try:
        yield client
    finally:
        client.engine.dispose()
