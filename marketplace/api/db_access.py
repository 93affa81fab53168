# This file wraps database access so API services can run parameterized SQL safely.
# Single statements run on short-lived connections; multi-row writes borrow one transaction.
# Reporting helpers call a stored procedure first and re-run equivalent inline SQL when it fails.

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

LOGGER = logging.getLogger("db")


def _error_text(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc).strip()


class DatabaseClient:
    """Minimal SQLAlchemy wrapper for API read/write access."""

    def __init__(self, *, database_url: str) -> None:
        self._engine: Engine = create_engine(database_url, pool_pre_ping=True, future=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def can_connect(self) -> bool:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def table_exists(self, table_name: str) -> bool:
        return inspect(self._engine).has_table(table_name)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection whose statements commit together or roll back together."""

        with self._engine.begin() as connection:
            yield connection

    def fetch_all(self, query: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        with self._engine.connect() as connection:
            rows = connection.execute(text(query), dict(params or {})).mappings().all()
        return [dict(row) for row in rows]

    def fetch_one(self, query: str, params: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        with self._engine.connect() as connection:
            row = connection.execute(text(query), dict(params or {})).mappings().first()
        return dict(row) if row is not None else None

    def fetch_scalar(self, query: str, params: Mapping[str, Any] | None = None) -> Any:
        with self._engine.connect() as connection:
            return connection.execute(text(query), dict(params or {})).scalar_one()

    def execute(self, query: str, params: Mapping[str, Any] | None = None) -> int:
        with self._engine.begin() as connection:
            result = connection.execute(text(query), dict(params or {}))
        return result.rowcount

    def fetch_all_with_fallback(
        self,
        *,
        procedure_name: str,
        procedure_query: str,
        fallback_query: str,
        params: Mapping[str, Any] | None = None,
        fallback_params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a stored-procedure query, falling back to inline SQL on execution errors."""

        try:
            return self.fetch_all(procedure_query, params)
        except SQLAlchemyError as exc:
            LOGGER.warning(
                "Failed to execute %s. Falling back to inline query. Error: %s",
                procedure_name,
                _error_text(exc),
            )

        try:
            return self.fetch_all(fallback_query, fallback_params if fallback_params is not None else params)
        except SQLAlchemyError as exc:
            LOGGER.error("Fallback query for %s failed: %s", procedure_name, _error_text(exc))
            raise

    def execute_with_fallback(
        self,
        *,
        procedure_name: str,
        procedure_statement: str,
        fallback_statement: str,
        params: Mapping[str, Any] | None = None,
        fallback_params: Mapping[str, Any] | None = None,
    ) -> None:
        """Write through a stored procedure, falling back to an inline statement."""

        try:
            self.execute(procedure_statement, params)
            return
        except SQLAlchemyError as exc:
            LOGGER.warning(
                "Failed to execute %s. Falling back to inline statement. Error: %s",
                procedure_name,
                _error_text(exc),
            )

        try:
            self.execute(fallback_statement, fallback_params if fallback_params is not None else params)
        except SQLAlchemyError as exc:
            LOGGER.error("Fallback statement for %s failed: %s", procedure_name, _error_text(exc))
            raise
