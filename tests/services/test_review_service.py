# This file tests reviews, reactions, replies and reviewable purchases against a real SQLite schema.
# The stored procedures are absent here, so reads and single-row writes exercise their inline fallbacks.

from __future__ import annotations

import logging

import pytest

from marketplace.api.db_access import DatabaseClient
from marketplace.api.error_handlers import APIError
from marketplace.api.schemas.review_schemas import ReactionType
from marketplace.api.services.review_service import ReviewService, _parse_replies
from tests.api.support import build_test_config
from tests.services.seed import insert_order, insert_product, insert_user


def _insert_review(
    db: DatabaseClient,
    review_id: str,
    *,
    user_id: str,
    order_id: str,
    order_item_id: str,
    rating: int,
    created_at: str,
) -> None:
    db.execute(
        "INSERT INTO reviews (id, rating, description, created_at) VALUES (:id, :rating, :text, :created_at)",
        {"id": review_id, "rating": rating, "text": f"review {review_id}", "created_at": created_at},
    )
    db.execute(
        """
        INSERT INTO write_reviews (review_id, user_id, order_item_id, order_id)
        VALUES (:review_id, :user_id, :order_item_id, :order_id)
        """,
        {"review_id": review_id, "user_id": user_id, "order_item_id": order_item_id, "order_id": order_id},
    )


@pytest.fixture
def service(db: DatabaseClient) -> ReviewService:
    insert_user(db, "buyer-1")
    insert_user(db, "buyer-2")
    insert_user(db, "seller-1", role="seller")
    insert_product(db, "sku-a", seller_id="seller-1", name="Kettle", images=["https://img/kettle.png"])
    insert_product(db, "sku-b", seller_id="seller-1", name="Lamp")
    insert_order(
        db,
        "order-1",
        buyer_id="buyer-1",
        status="Delivered",
        created_at="2026-03-01 10:00:00",
        items=[
            {"id": "item-1", "bar_code": "sku-a", "variation_name": "small", "quantity": 1, "price": 20},
            {"id": "item-2", "bar_code": "sku-b", "variation_name": "default", "quantity": 2, "price": 7.5},
        ],
    )
    insert_order(
        db,
        "order-2",
        buyer_id="buyer-2",
        status="Delivered",
        items=[{"id": "item-3", "bar_code": "sku-a", "variation_name": "large", "quantity": 1, "price": 30}],
    )
    insert_order(
        db,
        "order-3",
        buyer_id="buyer-1",
        status="Pending",
        items=[{"id": "item-4", "bar_code": "sku-a", "quantity": 1, "price": 20}],
    )
    return ReviewService(config=build_test_config(), db=db)


def test_create_review_links_order_item(service: ReviewService) -> None:
    review = service.create_review(
        user_id="buyer-1",
        order_id="order-1",
        order_item_id="item-1",
        rating=5,
        content="Great kettle",
    )

    assert review["rating"] == 5
    assert review["user_id"] == "buyer-1"
    assert review["username"] == "buyer-1-name"
    assert review["content"] == "Great kettle"
    assert review["helpful_count"] == 0


def test_create_review_rejects_foreign_order_item(db: DatabaseClient, service: ReviewService) -> None:
    with pytest.raises(APIError) as exc_info:
        service.create_review(user_id="buyer-2", order_id="order-1", order_item_id="item-1", rating=4, content=None)

    assert exc_info.value.error_code == "ORDER_ITEM_NOT_FOUND"
    assert db.fetch_scalar("SELECT COUNT(*) FROM reviews") == 0


def test_create_review_twice_conflicts_and_rolls_back(db: DatabaseClient, service: ReviewService) -> None:
    service.create_review(user_id="buyer-1", order_id="order-1", order_item_id="item-1", rating=5, content=None)

    with pytest.raises(APIError) as exc_info:
        service.create_review(user_id="buyer-1", order_id="order-1", order_item_id="item-1", rating=1, content=None)

    assert exc_info.value.status_code == 409
    assert db.fetch_scalar("SELECT COUNT(*) FROM reviews") == 1


def test_product_reviews_fallback_filters_sorts_and_groups_replies(
    db: DatabaseClient,
    service: ReviewService,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _insert_review(
        db, "rev-old", user_id="buyer-1", order_id="order-1", order_item_id="item-1",
        rating=5, created_at="2026-03-02 09:00:00",
    )
    _insert_review(
        db, "rev-new", user_id="buyer-2", order_id="order-2", order_item_id="item-3",
        rating=2, created_at="2026-03-05 09:00:00",
    )
    service.add_reply(review_id="rev-old", author_id="seller-1", content="Thanks!")
    service.upsert_reaction(review_id="rev-old", author_id="buyer-2", reaction_type=ReactionType.HELPFUL)

    with caplog.at_level(logging.WARNING, logger="db"):
        reviews = service.list_product_reviews(bar_code="sku-a")

    assert [review["id"] for review in reviews] == ["rev-new", "rev-old"]
    assert any("usp_get_product_reviews" in record.getMessage() for record in caplog.records)

    old_review = reviews[1]
    assert old_review["username"] == "buyer-1-name"
    assert old_review["variation_name"] == "small"
    assert old_review["total_reactions"] == 1
    assert [reply["content"] for reply in old_review["replies"]] == ["Thanks!"]
    assert old_review["replies"][0]["author_name"] == "seller-1-name"
    assert reviews[0]["replies"] == []

    ascending = service.list_product_reviews(bar_code="sku-a", sort="asc")
    assert [review["id"] for review in ascending] == ["rev-old", "rev-new"]

    five_star = service.list_product_reviews(bar_code="sku-a", rating=5)
    assert [review["id"] for review in five_star] == ["rev-old"]


def test_product_reviews_reject_unknown_sort(service: ReviewService) -> None:
    with pytest.raises(ValueError):
        service.list_product_reviews(bar_code="sku-a", sort="sideways")


def test_reaction_upsert_keeps_one_reaction_per_author(service: ReviewService) -> None:
    review = service.create_review(
        user_id="buyer-1", order_id="order-1", order_item_id="item-1", rating=5, content=None
    )

    first = service.upsert_reaction(review_id=review["id"], author_id="buyer-2", reaction_type=ReactionType.HELPFUL)
    assert first["helpful_count"] == 1

    changed = service.upsert_reaction(
        review_id=review["id"], author_id="buyer-2", reaction_type=ReactionType.UNHELPFUL
    )
    assert changed["helpful_count"] == 0

    other = service.upsert_reaction(review_id=review["id"], author_id="seller-1", reaction_type=ReactionType.HELPFUL)
    assert other["helpful_count"] == 1


def test_reaction_and_reply_need_existing_review(service: ReviewService) -> None:
    with pytest.raises(APIError) as exc_info:
        service.upsert_reaction(review_id="missing", author_id="buyer-1", reaction_type=ReactionType.HELPFUL)
    assert exc_info.value.status_code == 404

    with pytest.raises(APIError) as exc_info:
        service.add_reply(review_id="missing", author_id="buyer-1", content="Hello")
    assert exc_info.value.status_code == 404


def test_add_reply_returns_author_name(service: ReviewService) -> None:
    review = service.create_review(
        user_id="buyer-1", order_id="order-1", order_item_id="item-1", rating=3, content=None
    )

    reply = service.add_reply(review_id=review["id"], author_id="seller-1", content="We will improve.")

    assert reply["author_id"] == "seller-1"
    assert reply["author_name"] == "seller-1-name"
    assert reply["content"] == "We will improve."
    assert len(reply["id"]) == 32


def test_purchased_items_exclude_reviewed_and_undelivered(service: ReviewService) -> None:
    items = service.get_purchased_items(user_id="buyer-1")
    assert sorted(item["order_item_id"] for item in items) == ["item-1", "item-2"]

    service.create_review(user_id="buyer-1", order_id="order-1", order_item_id="item-1", rating=4, content=None)
    items = service.get_purchased_items(user_id="buyer-1")

    assert [item["order_item_id"] for item in items] == ["item-2"]
    assert items[0]["product_id"] == "sku-b"
    assert items[0]["product_name"] == "Lamp"
    assert items[0]["price"] == pytest.approx(7.5)
    assert items[0]["product_image"] is None


def test_parse_replies_handles_json_text_and_bad_payloads(caplog: pytest.LogCaptureFixture) -> None:
    assert _parse_replies('[{"id": "r1", "content": "hi"}]', review_id="rev-1") == [{"id": "r1", "content": "hi"}]
    assert _parse_replies(None, review_id="rev-1") == []

    with caplog.at_level(logging.ERROR, logger="reviews"):
        assert _parse_replies("{not json", review_id="rev-1") == []
    assert any("rev-1" in record.getMessage() for record in caplog.records)
