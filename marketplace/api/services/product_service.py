# This file implements catalog reads and seller-side product management.
# Product writes touch product_skus, variations and belongs_to together inside one transaction.

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from marketplace.api.api_config import ApiConfig
from marketplace.api.db_access import DatabaseClient
from marketplace.api.error_handlers import APIError
from marketplace.api.pagination import SortSpec
from marketplace.api.schemas.product_schemas import ImageFilter, StockFilter
from marketplace.common.identifiers import generate_id

LOGGER = logging.getLogger("products")

PRODUCT_SORT_FIELD_MAP: dict[str, str] = {
    "bar_code": "p.bar_code",
    "name": "p.name",
    "manufacturing_date": "p.manufacturing_date",
    "expired_date": "p.expired_date",
}

_SUMMARY_COLUMNS = """
    p.bar_code,
    p.name,
    p.description,
    p.manufacturing_date,
    p.expired_date,
    p.seller_id,
    (SELECT MIN(im.image_url) FROM images im WHERE im.bar_code = p.bar_code) AS image_url
"""

_UPDATABLE_COLUMNS = ("name", "manufacturing_date", "expired_date", "description")


class ProductService:
    """Catalog queries and seller product writes."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db

    def get_categories(self) -> list[dict[str, Any]]:
        return self.db.fetch_all("SELECT name, description FROM categories ORDER BY name")

    def get_products_by_category(self, *, category: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"""
            SELECT {_SUMMARY_COLUMNS}
            FROM product_skus p
            INNER JOIN belongs_to b ON b.bar_code = p.bar_code
            WHERE b.category_name = :category
            ORDER BY p.name
            """,
            {"category": category},
        )

    def search_products_by_name(self, *, name: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"""
            SELECT {_SUMMARY_COLUMNS}
            FROM product_skus p
            WHERE LOWER(p.name) LIKE :pattern
            ORDER BY p.name
            """,
            {"pattern": f"%{name.strip().lower()}%"},
        )

    def get_products_by_seller(self, *, seller_id: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"SELECT {_SUMMARY_COLUMNS} FROM product_skus p WHERE p.seller_id = :seller_id ORDER BY p.name",
            {"seller_id": seller_id},
        )

    def get_all_products(self, *, page: int, page_size: int, sort: SortSpec) -> dict[str, Any]:
        total_count = int(self.db.fetch_scalar("SELECT COUNT(*) FROM product_skus"))
        rows = self.db.fetch_all(
            f"""
            SELECT {_SUMMARY_COLUMNS}
            FROM product_skus p
            ORDER BY {sort.order_by_clause}, p.bar_code ASC
            LIMIT :limit OFFSET :offset
            """,
            {"limit": page_size, "offset": (page - 1) * page_size},
        )
        return {"rows": rows, "total_count": total_count}

    def get_product_list_simple(self) -> list[dict[str, Any]]:
        return self.db.fetch_all_with_fallback(
            procedure_name="usp_get_all_products_simple",
            procedure_query="SELECT * FROM usp_get_all_products_simple()",
            fallback_query="SELECT p.bar_code, p.name FROM product_skus p ORDER BY p.name",
        )

    def get_product_details(self, *, bar_code: str, seller_id: str | None = None) -> dict[str, Any] | None:
        """Product with images, variations and categories; `seller_id` restricts to one seller."""

        where_clauses = ["bar_code = :bar_code"]
        params: dict[str, Any] = {"bar_code": bar_code}
        if seller_id is not None:
            where_clauses.append("seller_id = :seller_id")
            params["seller_id"] = seller_id

        product = self.db.fetch_one(
            f"""
            SELECT bar_code, name, description, manufacturing_date, expired_date, seller_id
            FROM product_skus
            WHERE {' AND '.join(where_clauses)}
            """,
            params,
        )
        if product is None:
            return None

        bar_code_param = {"bar_code": bar_code}
        product["images"] = [
            row["image_url"]
            for row in self.db.fetch_all(
                "SELECT image_url FROM images WHERE bar_code = :bar_code ORDER BY image_url",
                bar_code_param,
            )
        ]
        product["variations"] = [
            {**row, "price": float(row["price"] or 0)}
            for row in self.db.fetch_all(
                "SELECT name, price, stock FROM variations WHERE bar_code = :bar_code ORDER BY name",
                bar_code_param,
            )
        ]
        product["categories"] = [
            row["category_name"]
            for row in self.db.fetch_all(
                "SELECT category_name FROM belongs_to WHERE bar_code = :bar_code ORDER BY category_name",
                bar_code_param,
            )
        ]
        return product

    def list_seller_products(
        self,
        *,
        seller_id: str,
        page: int,
        page_size: int,
        sort: SortSpec,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        category: str | None = None,
        stock: StockFilter | None = None,
        has_images: ImageFilter | None = None,
    ) -> dict[str, Any]:
        where_clauses: list[str] = ["p.seller_id = :seller_id"]
        params: dict[str, Any] = {"seller_id": seller_id}

        if search:
            where_clauses.append("(LOWER(p.name) LIKE :search OR LOWER(p.bar_code) LIKE :search)")
            params["search"] = f"%{search.strip().lower()}%"
        if min_price is not None:
            where_clauses.append(
                "EXISTS (SELECT 1 FROM variations v WHERE v.bar_code = p.bar_code AND v.price >= :min_price)"
            )
            params["min_price"] = min_price
        if max_price is not None:
            where_clauses.append(
                "EXISTS (SELECT 1 FROM variations v WHERE v.bar_code = p.bar_code AND v.price <= :max_price)"
            )
            params["max_price"] = max_price
        if category:
            where_clauses.append(
                "EXISTS (SELECT 1 FROM belongs_to b WHERE b.bar_code = p.bar_code AND b.category_name = :category)"
            )
            params["category"] = category
        if stock == StockFilter.IN_STOCK:
            where_clauses.append(
                "EXISTS (SELECT 1 FROM variations v WHERE v.bar_code = p.bar_code AND v.stock > 0)"
            )
        elif stock == StockFilter.OUT_OF_STOCK:
            # a single sold-out variation is enough to flag the product
            where_clauses.append(
                "(EXISTS (SELECT 1 FROM variations v WHERE v.bar_code = p.bar_code AND v.stock = 0)"
                " OR NOT EXISTS (SELECT 1 FROM variations v WHERE v.bar_code = p.bar_code AND v.stock > 0))"
            )
        if has_images == ImageFilter.WITH:
            where_clauses.append("EXISTS (SELECT 1 FROM images im WHERE im.bar_code = p.bar_code)")
        elif has_images == ImageFilter.WITHOUT:
            where_clauses.append("NOT EXISTS (SELECT 1 FROM images im WHERE im.bar_code = p.bar_code)")

        where_sql = " AND ".join(where_clauses)
        total_count = int(
            self.db.fetch_scalar(f"SELECT COUNT(*) FROM product_skus p WHERE {where_sql}", params)
        )
        rows = self.db.fetch_all(
            f"""
            SELECT {_SUMMARY_COLUMNS}
            FROM product_skus p
            WHERE {where_sql}
            ORDER BY {sort.order_by_clause}, p.bar_code ASC
            LIMIT :limit OFFSET :offset
            """,
            {**params, "limit": page_size, "offset": (page - 1) * page_size},
        )
        return {"rows": rows, "total_count": total_count}

    def create_product(self, *, seller_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        bar_code = data.get("bar_code") or generate_id()
        try:
            with self.db.transaction() as connection:
                connection.execute(
                    text(
                        """
                        INSERT INTO product_skus
                            (bar_code, name, manufacturing_date, expired_date, description, seller_id)
                        VALUES
                            (:bar_code, :name, :manufacturing_date, :expired_date, :description, :seller_id)
                        """
                    ),
                    {
                        "bar_code": bar_code,
                        "name": data.get("name") or "",
                        "manufacturing_date": data.get("manufacturing_date"),
                        "expired_date": data.get("expired_date"),
                        "description": data.get("description"),
                        "seller_id": seller_id,
                    },
                )
                if data.get("variations"):
                    self._replace_variations(connection, bar_code=bar_code, variations=data["variations"])
                if data.get("category"):
                    self._assign_category(connection, bar_code=bar_code, category=data["category"])
        except IntegrityError as exc:
            raise APIError(
                status_code=409,
                error_code="PRODUCT_CONFLICT",
                message=f"Product could not be created: bar code {bar_code} already exists.",
            ) from exc

        LOGGER.info("product created bar_code=%s seller_id=%s", bar_code, seller_id)
        return self._require_product(bar_code=bar_code, seller_id=seller_id)

    def update_product(self, *, seller_id: str, bar_code: str, data: Mapping[str, Any]) -> dict[str, Any] | None:
        """Apply only the keys present in `data`; returns None when the seller does not own the product."""

        with self.db.transaction() as connection:
            owned = connection.execute(
                text("SELECT 1 FROM product_skus WHERE bar_code = :bar_code AND seller_id = :seller_id"),
                {"bar_code": bar_code, "seller_id": seller_id},
            ).first()
            if owned is None:
                return None

            assignments = [f"{column} = :{column}" for column in _UPDATABLE_COLUMNS if column in data]
            if assignments:
                connection.execute(
                    text(
                        f"""
                        UPDATE product_skus
                        SET {', '.join(assignments)}
                        WHERE bar_code = :bar_code AND seller_id = :seller_id
                        """
                    ),
                    {
                        **{column: data[column] for column in _UPDATABLE_COLUMNS if column in data},
                        "bar_code": bar_code,
                        "seller_id": seller_id,
                    },
                )

            if data.get("variations") is not None:
                self._replace_variations(connection, bar_code=bar_code, variations=data["variations"])

            if "category" in data:
                if data["category"] is None:
                    connection.execute(
                        text("DELETE FROM belongs_to WHERE bar_code = :bar_code"),
                        {"bar_code": bar_code},
                    )
                else:
                    self._assign_category(connection, bar_code=bar_code, category=data["category"])

        return self._require_product(bar_code=bar_code, seller_id=seller_id)

    def add_variations(
        self,
        *,
        seller_id: str,
        bar_code: str,
        variations: Sequence[Mapping[str, Any]],
    ) -> dict[str, Any] | None:
        with self.db.transaction() as connection:
            owned = connection.execute(
                text("SELECT 1 FROM product_skus WHERE bar_code = :bar_code AND seller_id = :seller_id"),
                {"bar_code": bar_code, "seller_id": seller_id},
            ).first()
            if owned is None:
                return None

            for variation in variations:
                connection.execute(
                    text(
                        """
                        INSERT INTO variations (bar_code, name, price, stock)
                        VALUES (:bar_code, :name, :price, :stock)
                        ON CONFLICT (bar_code, name) DO UPDATE SET
                            price = EXCLUDED.price,
                            stock = EXCLUDED.stock
                        """
                    ),
                    self._variation_params(bar_code, variation),
                )

        return self._require_product(bar_code=bar_code, seller_id=seller_id)

    def delete_product(self, *, seller_id: str, bar_code: str) -> bool:
        with self.db.transaction() as connection:
            params = {"bar_code": bar_code, "seller_id": seller_id}
            owned = connection.execute(
                text("SELECT 1 FROM product_skus WHERE bar_code = :bar_code AND seller_id = :seller_id"),
                params,
            ).first()
            if owned is None:
                return False

            for table_name in ("variations", "images", "belongs_to"):
                connection.execute(
                    text(f"DELETE FROM {table_name} WHERE bar_code = :bar_code"),
                    {"bar_code": bar_code},
                )
            connection.execute(
                text("DELETE FROM product_skus WHERE bar_code = :bar_code AND seller_id = :seller_id"),
                params,
            )

        LOGGER.info("product deleted bar_code=%s seller_id=%s", bar_code, seller_id)
        return True

    def assign_category(self, *, bar_code: str, category: str, seller_id: str | None) -> dict[str, Any]:
        """Replace the product's category mapping; `seller_id=None` skips the ownership check."""

        with self.db.transaction() as connection:
            where_clauses = ["bar_code = :bar_code"]
            params: dict[str, Any] = {"bar_code": bar_code}
            if seller_id is not None:
                where_clauses.append("seller_id = :seller_id")
                params["seller_id"] = seller_id
            product = connection.execute(
                text(f"SELECT seller_id FROM product_skus WHERE {' AND '.join(where_clauses)}"),
                params,
            ).first()
            if product is None:
                raise APIError(status_code=404, error_code="PRODUCT_NOT_FOUND", message="Product not found.")
            self._assign_category(connection, bar_code=bar_code, category=category)

        return self._require_product(bar_code=bar_code, seller_id=None)

    def _require_product(self, *, bar_code: str, seller_id: str | None) -> dict[str, Any]:
        product = self.get_product_details(bar_code=bar_code, seller_id=seller_id)
        if product is None:
            raise APIError(status_code=404, error_code="PRODUCT_NOT_FOUND", message="Product not found.")
        return product

    def _replace_variations(
        self,
        connection: Connection,
        *,
        bar_code: str,
        variations: Sequence[Mapping[str, Any]],
    ) -> None:
        connection.execute(text("DELETE FROM variations WHERE bar_code = :bar_code"), {"bar_code": bar_code})
        for variation in variations:
            connection.execute(
                text(
                    """
                    INSERT INTO variations (bar_code, name, price, stock)
                    VALUES (:bar_code, :name, :price, :stock)
                    """
                ),
                self._variation_params(bar_code, variation),
            )

    def _assign_category(self, connection: Connection, *, bar_code: str, category: str) -> None:
        exists = connection.execute(
            text("SELECT 1 FROM categories WHERE name = :category"),
            {"category": category},
        ).first()
        if exists is None:
            raise APIError(
                status_code=404,
                error_code="CATEGORY_NOT_FOUND",
                message=f"Category not found: {category}",
            )

        params = {"bar_code": bar_code, "category": category}
        connection.execute(text("DELETE FROM belongs_to WHERE bar_code = :bar_code"), params)
        connection.execute(
            text("INSERT INTO belongs_to (category_name, bar_code) VALUES (:category, :bar_code)"),
            params,
        )

    @staticmethod
    def _variation_params(bar_code: str, variation: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "bar_code": bar_code,
            "name": variation.get("name") or "",
            "price": variation.get("price", 0),
            "stock": variation.get("stock", 0),
        }
