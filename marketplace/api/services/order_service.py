# This file implements the order lifecycle: creation, patching, cancellation and shipper transitions.
# Every multi-row write runs inside one database transaction and rolls back completely on any error.
# Status changes are guarded UPDATEs (`... WHERE status = :from_status`); a miss is diagnosed afterwards.
# The two reports call a stored procedure first and fall back to equivalent inline SQL.

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from marketplace.api.api_config import ApiConfig
from marketplace.api.db_access import DatabaseClient
from marketplace.api.error_handlers import APIError
from marketplace.api.schemas.order_schemas import OrderStatus
from marketplace.common.identifiers import generate_id

LOGGER = logging.getLogger("orders")

CANCELLABLE_STATUSES: frozenset[str] = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})

_ORDER_COLUMNS = "o.id, o.buyer_id, o.address, o.status, o.created_at, o.total"
_ITEM_COLUMNS = "oi.id, oi.order_id, oi.bar_code, oi.variation_name, oi.quantity, oi.price"


def _order_not_found() -> APIError:
    return APIError(status_code=404, error_code="ORDER_NOT_FOUND", message="Order not found.")


class OrderService:
    """Order lifecycle and order reporting."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db

    def get_total(self, *, order_id: str) -> float:
        row = self.db.fetch_one("SELECT total FROM orders WHERE id = :order_id", {"order_id": order_id})
        if row is None or row["total"] is None:
            return 0.0
        return float(row["total"])

    def get_order(self, *, order_id: str, buyer_id: str | None) -> dict[str, Any] | None:
        """Return the order with its items; `buyer_id=None` skips the ownership filter."""

        where_clauses = ["o.id = :order_id"]
        params: dict[str, Any] = {"order_id": order_id}
        if buyer_id is not None:
            where_clauses.append("o.buyer_id = :buyer_id")
            params["buyer_id"] = buyer_id

        order = self.db.fetch_one(
            f"SELECT {_ORDER_COLUMNS} FROM orders o WHERE {' AND '.join(where_clauses)}",
            params,
        )
        if order is None:
            return None

        order["items"] = self.db.fetch_all(
            f"SELECT {_ITEM_COLUMNS} FROM order_items oi WHERE oi.order_id = :order_id ORDER BY oi.id",
            {"order_id": order_id},
        )
        return order

    def create_order(
        self,
        *,
        buyer_id: str,
        address: str,
        items: Sequence[Mapping[str, Any]],
        status: str = OrderStatus.PENDING,
        order_id: str | None = None,
    ) -> dict[str, Any]:
        if not items:
            raise APIError(
                status_code=400,
                error_code="ORDER_ITEMS_REQUIRED",
                message="An order needs at least one item.",
            )

        resolved_order_id = order_id or generate_id()
        with self._transaction("create", resolved_order_id) as connection:
            connection.execute(
                text(
                    """
                    INSERT INTO orders (id, buyer_id, address, status, created_at, total)
                    VALUES (:id, :buyer_id, :address, :status, CURRENT_TIMESTAMP, 0)
                    """
                ),
                {
                    "id": resolved_order_id,
                    "buyer_id": buyer_id,
                    "address": address,
                    "status": str(status),
                },
            )

            for item in items:
                if not item.get("bar_code") or not item.get("variation_name"):
                    raise APIError(
                        status_code=400,
                        error_code="ORDER_ITEM_INVALID",
                        message="bar_code and variation_name are required to link an order item.",
                    )
                connection.execute(
                    text(
                        """
                        INSERT INTO order_items (id, order_id, bar_code, variation_name, quantity, price)
                        VALUES (:id, :order_id, :bar_code, :variation_name, :quantity, :price)
                        """
                    ),
                    {
                        "id": item.get("id") or generate_id(),
                        "order_id": resolved_order_id,
                        "bar_code": item["bar_code"],
                        "variation_name": item["variation_name"],
                        "quantity": int(item["quantity"]),
                        "price": item["price"],
                    },
                )

            connection.execute(
                text(
                    """
                    UPDATE orders
                    SET total = (
                        SELECT COALESCE(SUM(oi.price * oi.quantity), 0)
                        FROM order_items oi
                        WHERE oi.order_id = :order_id
                    )
                    WHERE id = :order_id
                    """
                ),
                {"order_id": resolved_order_id},
            )

        LOGGER.info("order created order_id=%s buyer_id=%s items=%d", resolved_order_id, buyer_id, len(items))
        created = self.get_order(order_id=resolved_order_id, buyer_id=None)
        if created is None:
            raise _order_not_found()
        return created

    def update_order(
        self,
        *,
        order_id: str,
        user_id: str,
        is_admin: bool,
        new_status: str | None = None,
        new_address: str | None = None,
    ) -> dict[str, Any]:
        """Patch status and/or address; the status is taken as given, without transition checks."""

        if new_status is None and new_address is None:
            raise APIError(
                status_code=400,
                error_code="MISSING_UPDATE_FIELDS",
                message="Missing fields: must provide new_status or new_address.",
            )

        where_clauses = ["id = :order_id"]
        params: dict[str, Any] = {
            "order_id": order_id,
            "new_status": str(new_status) if new_status is not None else None,
            "new_address": new_address,
        }
        if not is_admin:
            where_clauses.append("buyer_id = :user_id")
            params["user_id"] = user_id

        with self._transaction("update", order_id) as connection:
            result = connection.execute(
                text(
                    f"""
                    UPDATE orders
                    SET
                        status = COALESCE(:new_status, status),
                        address = COALESCE(:new_address, address)
                    WHERE {' AND '.join(where_clauses)}
                    """
                ),
                params,
            )
            if result.rowcount == 0:
                raise _order_not_found()

        return {
            "order_id": order_id,
            "updated_status": new_status,
            "updated_address": new_address,
        }

    def delete_order(self, *, order_id: str, user_id: str, is_admin: bool) -> dict[str, Any]:
        with self._transaction("delete", order_id) as connection:
            order = (
                connection.execute(
                    text("SELECT status, buyer_id FROM orders WHERE id = :order_id"),
                    {"order_id": order_id},
                )
                .mappings()
                .first()
            )
            if order is None or (not is_admin and order["buyer_id"] != user_id):
                raise _order_not_found()

            if order["status"] not in CANCELLABLE_STATUSES:
                raise APIError(
                    status_code=400,
                    error_code="ORDER_NOT_CANCELLABLE",
                    message="Cannot delete/cancel an order that is in transit or delivered.",
                    details={"current_status": order["status"]},
                )

            params = {"order_id": order_id}
            connection.execute(text("DELETE FROM order_items WHERE order_id = :order_id"), params)
            connection.execute(text("DELETE FROM deliveries WHERE order_id = :order_id"), params)
            connection.execute(text("DELETE FROM orders WHERE id = :order_id"), params)

        LOGGER.info("order deleted order_id=%s by user_id=%s", order_id, user_id)
        return {"order_id": order_id, "deleted": True}

    def claim_order(self, *, order_id: str, shipper_id: str) -> dict[str, Any]:
        """Processing -> Dispatched; records the shipper on a new delivery row."""

        with self._transaction("claim", order_id) as connection:
            self._transition(
                connection,
                order_id=order_id,
                from_status=OrderStatus.PROCESSING,
                to_status=OrderStatus.DISPATCHED,
                message='Order status must be "Processing" to be claimed.',
            )
            connection.execute(
                text(
                    """
                    INSERT INTO deliveries (shipper_id, order_id, departure_time, finish_time, shipping_fee)
                    VALUES (:shipper_id, :order_id, NULL, NULL, NULL)
                    """
                ),
                {"shipper_id": shipper_id, "order_id": order_id},
            )

        LOGGER.info("order claimed order_id=%s shipper_id=%s", order_id, shipper_id)
        return {"order_id": order_id, "new_status": OrderStatus.DISPATCHED}

    def start_delivery(self, *, order_id: str, shipper_id: str, is_admin: bool = False) -> dict[str, Any]:
        """Dispatched -> Delivering; stamps the departure time on the shipper's delivery row."""

        with self._transaction("start_delivery", order_id) as connection:
            self._transition(
                connection,
                order_id=order_id,
                from_status=OrderStatus.DISPATCHED,
                to_status=OrderStatus.DELIVERING,
                message='Order must be in "Dispatched" status to start delivery.',
            )
            self._stamp_delivery(
                connection,
                order_id=order_id,
                shipper_id=shipper_id,
                column="departure_time",
                any_shipper=is_admin,
            )

        LOGGER.info("delivery started order_id=%s shipper_id=%s", order_id, shipper_id)
        return {"order_id": order_id, "new_status": OrderStatus.DELIVERING}

    def confirm_delivery(self, *, order_id: str, shipper_id: str, is_admin: bool = False) -> dict[str, Any]:
        """Delivering -> Delivered; stamps the finish time on the shipper's delivery row."""

        with self._transaction("confirm", order_id) as connection:
            self._transition(
                connection,
                order_id=order_id,
                from_status=OrderStatus.DELIVERING,
                to_status=OrderStatus.DELIVERED,
                message='Order must be in "Delivering" status to be confirmed as delivered.',
            )
            self._stamp_delivery(
                connection,
                order_id=order_id,
                shipper_id=shipper_id,
                column="finish_time",
                any_shipper=is_admin,
            )

        LOGGER.info("delivery confirmed order_id=%s shipper_id=%s", order_id, shipper_id)
        return {"order_id": order_id, "new_status": OrderStatus.DELIVERED}

    def get_order_details(self, *, status_filter: str | None, min_items: int) -> list[dict[str, Any]]:
        where_sql = ""
        fallback_params: dict[str, Any] = {"min_items": min_items}
        if status_filter is not None:
            where_sql = "WHERE o.status = :status_filter"
            fallback_params["status_filter"] = status_filter

        rows = self.db.fetch_all_with_fallback(
            procedure_name="usp_get_order_details",
            procedure_query="SELECT * FROM usp_get_order_details(:status_filter, :min_items)",
            params={"status_filter": status_filter, "min_items": min_items},
            fallback_query=f"""
                SELECT
                    o.id,
                    o.status,
                    o.total,
                    o.created_at,
                    u.full_name AS buyer,
                    COUNT(oi.id) AS item_count
                FROM orders o
                INNER JOIN users u ON u.id = o.buyer_id
                LEFT JOIN order_items oi ON oi.order_id = o.id
                {where_sql}
                GROUP BY o.id, o.status, o.total, o.created_at, u.full_name
                HAVING COUNT(oi.id) >= :min_items
                ORDER BY o.created_at DESC
            """,
            fallback_params=fallback_params,
        )
        return [
            {**row, "total": float(row["total"] or 0), "item_count": int(row["item_count"] or 0)}
            for row in rows
        ]

    def get_top_selling_products(self, *, min_quantity: int, seller_id: str | None) -> list[dict[str, Any]]:
        seller_sql = ""
        fallback_params: dict[str, Any] = {
            "min_quantity": min_quantity,
            "delivered_status": str(OrderStatus.DELIVERED),
        }
        if seller_id is not None:
            seller_sql = "AND ps.seller_id = :seller_id"
            fallback_params["seller_id"] = seller_id

        rows = self.db.fetch_all_with_fallback(
            procedure_name="usp_get_top_selling_products",
            procedure_query="SELECT * FROM usp_get_top_selling_products(:min_quantity, :seller_id)",
            params={"min_quantity": min_quantity, "seller_id": seller_id},
            fallback_query=f"""
                SELECT
                    ps.bar_code,
                    ps.name,
                    SUM(oi.quantity) AS total_quantity_sold
                FROM order_items oi
                INNER JOIN orders o ON o.id = oi.order_id
                INNER JOIN product_skus ps ON ps.bar_code = oi.bar_code
                WHERE o.status = :delivered_status
                  {seller_sql}
                GROUP BY ps.bar_code, ps.name
                HAVING SUM(oi.quantity) >= :min_quantity
                ORDER BY total_quantity_sold DESC
            """,
            fallback_params=fallback_params,
        )
        return [{**row, "total_quantity_sold": int(row["total_quantity_sold"] or 0)} for row in rows]

    @contextmanager
    def _transaction(self, action: str, order_id: str) -> Iterator[Connection]:
        try:
            with self.db.transaction() as connection:
                yield connection
        except APIError as exc:
            LOGGER.info("order %s rolled back order_id=%s reason=%s", action, order_id, exc.error_code)
            raise
        except IntegrityError as exc:
            LOGGER.warning("order %s violated a constraint order_id=%s: %s", action, order_id, exc.orig)
            raise APIError(
                status_code=400,
                error_code="ORDER_CONSTRAINT_VIOLATION",
                message="Order write rejected by a database constraint.",
            ) from exc
        except SQLAlchemyError:
            LOGGER.exception("order %s failed order_id=%s", action, order_id)
            raise

    def _transition(
        self,
        connection: Connection,
        *,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        message: str,
    ) -> None:
        result = connection.execute(
            text("UPDATE orders SET status = :to_status WHERE id = :order_id AND status = :from_status"),
            {"order_id": order_id, "from_status": str(from_status), "to_status": str(to_status)},
        )
        if result.rowcount == 1:
            return

        current_status = connection.execute(
            text("SELECT status FROM orders WHERE id = :order_id"),
            {"order_id": order_id},
        ).scalar_one_or_none()
        if current_status is None:
            raise _order_not_found()
        raise APIError(
            status_code=409,
            error_code="INVALID_ORDER_STATUS",
            message=message,
            details={"current_status": current_status, "required_status": str(from_status)},
        )

    def _stamp_delivery(
        self,
        connection: Connection,
        *,
        order_id: str,
        shipper_id: str,
        column: str,
        any_shipper: bool = False,
    ) -> None:
        if column not in {"departure_time", "finish_time"}:
            raise ValueError(f"Unsupported delivery column: {column!r}")

        params: dict[str, Any] = {"order_id": order_id}
        shipper_sql = ""
        # admins act on whichever delivery row the claim created
        if not any_shipper:
            shipper_sql = " AND shipper_id = :shipper_id"
            params["shipper_id"] = shipper_id
        result = connection.execute(
            text(f"UPDATE deliveries SET {column} = CURRENT_TIMESTAMP WHERE order_id = :order_id{shipper_sql}"),
            params,
        )
        if result.rowcount == 0:
            raise APIError(
                status_code=409,
                error_code="DELIVERY_NOT_ASSIGNED",
                message="This order is not assigned to the requesting shipper.",
            )
