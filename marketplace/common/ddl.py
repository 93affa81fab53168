"""DDL helpers for marketplace tables and stored procedures."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine

SQL_ROOT = Path(__file__).resolve().parents[2] / "sql"

DDL_ORDER = [
    "users.sql",
    "categories.sql",
    "product_skus.sql",
    "variations.sql",
    "images.sql",
    "belongs_to.sql",
    "orders.sql",
    "order_items.sql",
    "deliveries.sql",
    "reviews.sql",
    "write_reviews.sql",
    "replies.sql",
    "reactions.sql",
]

PROCEDURE_ORDER = [
    "usp_get_order_details.sql",
    "usp_get_top_selling_products.sql",
    "usp_get_all_products_simple.sql",
    "usp_get_product_reviews.sql",
    "usp_get_purchased_items_for_review.sql",
    "usp_reactions_upsert.sql",
    "usp_insert_reply.sql",
]


def _split_statements(sql_text: str) -> list[str]:
    return [statement.strip() for statement in sql_text.split(";") if statement.strip()]


def apply_schema_ddl(engine: Engine, ddl_dir: Path | None = None) -> None:
    """Apply table DDL files in deterministic order, one statement at a time."""

    ddl_path = ddl_dir or SQL_ROOT / "ddl"
    with engine.begin() as connection:
        for ddl_file in DDL_ORDER:
            sql_text = (ddl_path / ddl_file).read_text(encoding="utf-8")
            for statement in _split_statements(sql_text):
                connection.exec_driver_sql(statement)


def apply_procedures(engine: Engine, procedure_dir: Path | None = None) -> bool:
    """Install stored procedures; only PostgreSQL is supported. Returns True when applied."""

    if engine.dialect.name != "postgresql":
        return False

    procedure_path = procedure_dir or SQL_ROOT / "procedures"
    with engine.begin() as connection:
        for procedure_file in PROCEDURE_ORDER:
            connection.exec_driver_sql(
                (procedure_path / procedure_file).read_text(encoding="utf-8")
            )
    return True
