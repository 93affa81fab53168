# This file implements product reviews, reactions and replies.
# Reads and single-row writes go through stored procedures first, with inline SQL as fallback.

from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from marketplace.api.api_config import ApiConfig
from marketplace.api.db_access import DatabaseClient
from marketplace.api.error_handlers import APIError
from marketplace.api.schemas.review_schemas import ReactionType
from marketplace.common.identifiers import generate_id

LOGGER = logging.getLogger("reviews")

_SORT_DIRECTIONS = {"asc": "ASC", "desc": "DESC"}


def _parse_replies(raw: Any, *, review_id: str) -> list[dict[str, Any]]:
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        LOGGER.error("Could not parse replies for review %s: %s", review_id, exc)
        return []
    return parsed if isinstance(parsed, list) else []


class ReviewService:
    """Review reads and writes for products and purchased order items."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db

    def list_product_reviews(
        self,
        *,
        bar_code: str,
        rating: int | None = None,
        sort: str = "desc",
    ) -> list[dict[str, Any]]:
        direction = _SORT_DIRECTIONS.get(sort.lower())
        if direction is None:
            raise ValueError("sort must be 'asc' or 'desc'.")

        fallback_where = ["oi.bar_code = :bar_code"]
        fallback_params: dict[str, Any] = {"bar_code": bar_code}
        if rating is not None:
            fallback_where.append("r.rating = :rating")
            fallback_params["rating"] = rating

        rows = self.db.fetch_all_with_fallback(
            procedure_name="usp_get_product_reviews",
            procedure_query="SELECT * FROM usp_get_product_reviews(:bar_code, :rating, :sort)",
            fallback_query=f"""
                SELECT
                    r.id AS review_id,
                    r.rating,
                    r.description AS content,
                    u.username AS author_name,
                    oi.variation_name,
                    (SELECT COUNT(*) FROM reactions re WHERE re.review_id = r.id) AS total_reactions,
                    r.created_at AS review_date
                FROM reviews r
                INNER JOIN write_reviews wr ON wr.review_id = r.id
                INNER JOIN order_items oi ON oi.id = wr.order_item_id
                LEFT JOIN users u ON u.id = wr.user_id
                WHERE {' AND '.join(fallback_where)}
                ORDER BY r.created_at {direction}, r.id ASC
            """,
            params={"bar_code": bar_code, "rating": rating, "sort": direction},
            fallback_params=fallback_params,
        )

        replies_by_review: dict[str, list[dict[str, Any]]] | None = None
        if rows and "replies_json" not in rows[0]:
            replies_by_review = self._replies_for_product(bar_code=bar_code)

        reviews: list[dict[str, Any]] = []
        for row in rows:
            review_id = row["review_id"]
            if replies_by_review is not None:
                replies = replies_by_review.get(review_id, [])
            else:
                replies = _parse_replies(row.get("replies_json"), review_id=review_id)
            reviews.append(
                {
                    "id": review_id,
                    "rating": int(row["rating"]),
                    "content": row.get("content"),
                    "username": row.get("author_name"),
                    "variation_name": row.get("variation_name"),
                    "total_reactions": int(row.get("total_reactions") or 0),
                    "created_at": row.get("review_date"),
                    "replies": replies,
                }
            )
        return reviews

    def get_review(self, *, review_id: str) -> dict[str, Any] | None:
        return self.db.fetch_one(
            """
            SELECT
                r.id,
                r.rating,
                wr.user_id,
                u.username,
                r.description AS content,
                (
                    SELECT COUNT(*) FROM reactions re
                    WHERE re.review_id = r.id AND re.reaction_type = :helpful
                ) AS helpful_count,
                r.created_at
            FROM reviews r
            LEFT JOIN write_reviews wr ON wr.review_id = r.id
            LEFT JOIN users u ON u.id = wr.user_id
            WHERE r.id = :review_id
            """,
            {"review_id": review_id, "helpful": ReactionType.HELPFUL.value},
        )

    def create_review(
        self,
        *,
        user_id: str,
        order_id: str,
        order_item_id: str,
        rating: int,
        content: str | None,
    ) -> dict[str, Any]:
        review_id = generate_id()
        try:
            with self.db.transaction() as connection:
                purchased = connection.execute(
                    text(
                        """
                        SELECT 1
                        FROM order_items oi
                        INNER JOIN orders o ON o.id = oi.order_id
                        WHERE oi.id = :order_item_id AND o.id = :order_id AND o.buyer_id = :user_id
                        """
                    ),
                    {"order_id": order_id, "order_item_id": order_item_id, "user_id": user_id},
                ).first()
                if purchased is None:
                    raise APIError(
                        status_code=404,
                        error_code="ORDER_ITEM_NOT_FOUND",
                        message="Order item not found for this user.",
                    )

                connection.execute(
                    text(
                        """
                        INSERT INTO reviews (id, rating, description, created_at)
                        VALUES (:id, :rating, :description, CURRENT_TIMESTAMP)
                        """
                    ),
                    {"id": review_id, "rating": rating, "description": content},
                )
                connection.execute(
                    text(
                        """
                        INSERT INTO write_reviews (review_id, user_id, order_item_id, order_id)
                        VALUES (:review_id, :user_id, :order_item_id, :order_id)
                        """
                    ),
                    {
                        "review_id": review_id,
                        "user_id": user_id,
                        "order_item_id": order_item_id,
                        "order_id": order_id,
                    },
                )
        except IntegrityError as exc:
            raise APIError(
                status_code=409,
                error_code="REVIEW_EXISTS",
                message="This order item has already been reviewed.",
            ) from exc

        LOGGER.info("review created review_id=%s order_item_id=%s", review_id, order_item_id)
        review = self.get_review(review_id=review_id)
        if review is None:
            raise APIError(status_code=404, error_code="REVIEW_NOT_FOUND", message="Review not found.")
        return review

    def upsert_reaction(self, *, review_id: str, author_id: str, reaction_type: ReactionType) -> dict[str, Any]:
        """Record one reaction per author and review; returns the refreshed review."""

        self._require_review_exists(review_id)
        params = {"review_id": review_id, "type": reaction_type.value, "author": author_id}
        self.db.execute_with_fallback(
            procedure_name="usp_reactions_upsert",
            procedure_statement="CALL usp_reactions_upsert(:review_id, :type, :author)",
            fallback_statement="""
                INSERT INTO reactions (review_id, author_id, reaction_type)
                VALUES (:review_id, :author, :type)
                ON CONFLICT (review_id, author_id) DO UPDATE SET reaction_type = EXCLUDED.reaction_type
            """,
            params=params,
        )
        review = self.get_review(review_id=review_id)
        if review is None:
            raise APIError(status_code=404, error_code="REVIEW_NOT_FOUND", message="Review not found.")
        return review

    def add_reply(self, *, review_id: str, author_id: str, content: str) -> dict[str, Any]:
        self._require_review_exists(review_id)
        reply_id = generate_id()
        self.db.execute_with_fallback(
            procedure_name="usp_insert_reply",
            procedure_statement="CALL usp_insert_reply(:id, :review_id, :author, :content)",
            fallback_statement="""
                INSERT INTO replies (id, review_id, author_id, content, created_at)
                VALUES (:id, :review_id, :author, :content, CURRENT_TIMESTAMP)
            """,
            params={"id": reply_id, "review_id": review_id, "author": author_id, "content": content},
        )
        reply = self.db.fetch_one(
            """
            SELECT rp.id, rp.author_id, u.username AS author_name, rp.content, rp.created_at
            FROM replies rp
            LEFT JOIN users u ON u.id = rp.author_id
            WHERE rp.id = :id
            """,
            {"id": reply_id},
        )
        if reply is None:
            raise APIError(status_code=404, error_code="REPLY_NOT_FOUND", message="Reply not found.")
        return reply

    def get_purchased_items(self, *, user_id: str) -> list[dict[str, Any]]:
        """Delivered order items the user has not reviewed yet."""

        rows = self.db.fetch_all_with_fallback(
            procedure_name="usp_get_purchased_items_for_review",
            procedure_query="SELECT * FROM usp_get_purchased_items_for_review(:user_id)",
            fallback_query="""
                SELECT
                    o.id AS order_id,
                    oi.id AS order_item_id,
                    p.bar_code,
                    p.name AS product_name,
                    oi.variation_name,
                    oi.price,
                    o.created_at AS purchase_date,
                    (SELECT MIN(img.image_url) FROM images img WHERE img.bar_code = p.bar_code) AS product_image
                FROM orders o
                INNER JOIN order_items oi ON oi.order_id = o.id
                INNER JOIN product_skus p ON p.bar_code = oi.bar_code
                LEFT JOIN write_reviews wr ON wr.order_id = o.id AND wr.order_item_id = oi.id
                WHERE o.buyer_id = :user_id
                  AND o.status = 'Delivered'
                  AND wr.review_id IS NULL
                ORDER BY o.created_at DESC
            """,
            params={"user_id": user_id},
        )
        return [
            {
                "order_id": row["order_id"],
                "order_item_id": row["order_item_id"],
                "product_id": row["bar_code"],
                "product_name": row.get("product_name"),
                "variation_name": row.get("variation_name"),
                "price": float(row["price"]) if row.get("price") is not None else None,
                "purchase_date": row.get("purchase_date"),
                "product_image": row.get("product_image"),
            }
            for row in rows
        ]

    def _require_review_exists(self, review_id: str) -> None:
        exists = self.db.fetch_one("SELECT id FROM reviews WHERE id = :review_id", {"review_id": review_id})
        if exists is None:
            raise APIError(status_code=404, error_code="REVIEW_NOT_FOUND", message="Review not found.")

    def _replies_for_product(self, *, bar_code: str) -> dict[str, list[dict[str, Any]]]:
        rows = self.db.fetch_all(
            """
            SELECT rp.review_id, rp.id, rp.author_id, u.username AS author_name, rp.content, rp.created_at
            FROM replies rp
            INNER JOIN write_reviews wr ON wr.review_id = rp.review_id
            INNER JOIN order_items oi ON oi.id = wr.order_item_id
            LEFT JOIN users u ON u.id = rp.author_id
            WHERE oi.bar_code = :bar_code
            ORDER BY rp.created_at ASC, rp.id ASC
            """,
            {"bar_code": bar_code},
        )
        grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for row in rows:
            review_id = row.pop("review_id")
            grouped[review_id].append(row)
        return grouped
