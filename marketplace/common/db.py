"""
Database connection utilities for scripts that run outside the API process.
The API builds its own client through dependency injection; this module serves the CLI tools.
"""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from marketplace.common.settings import get_settings

_SETTINGS = get_settings()

engine: Engine = create_engine(_SETTINGS.DATABASE_URL, pool_pre_ping=True, future=True)


def test_connection() -> bool:
    """Return True if the database can be reached and queried."""

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
