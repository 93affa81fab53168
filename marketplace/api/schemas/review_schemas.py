# This file defines review contracts: reviews with replies, reactions and purchasable items.

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from marketplace.api.schemas.common import ListEnvelopeFields, ObjectEnvelopeFields


class ReactionType(StrEnum):
    HELPFUL = "helpful"
    UNHELPFUL = "unhelpful"


class ReplyV1(BaseModel):
    id: str
    author_id: str | None = None
    author_name: str | None = None
    content: str
    created_at: datetime | None = None


class ProductReviewV1(BaseModel):
    id: str
    rating: int
    content: str | None = None
    username: str | None = None
    variation_name: str | None = None
    total_reactions: int = 0
    created_at: datetime | None = None
    replies: list[ReplyV1] = Field(default_factory=list)


class ReviewV1(BaseModel):
    id: str
    rating: int | None = None
    user_id: str | None = None
    username: str | None = None
    content: str | None = None
    helpful_count: int = 0
    created_at: datetime | None = None


class PurchasedItemV1(BaseModel):
    order_id: str
    order_item_id: str
    product_id: str
    product_name: str | None = None
    variation_name: str | None = None
    price: float | None = None
    purchase_date: datetime | None = None
    product_image: str | None = None


class ReviewCreateRequestV1(BaseModel):
    order_id: str = Field(min_length=1)
    order_item_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    content: str | None = Field(default=None, max_length=4000)


class ReactionRequestV1(BaseModel):
    reaction_type: ReactionType


class ReplyCreateRequestV1(BaseModel):
    content: str = Field(min_length=1, max_length=4000)


class ProductReviewListResponseV1(ListEnvelopeFields):
    data: list[ProductReviewV1]


class PurchasedItemListResponseV1(ListEnvelopeFields):
    data: list[PurchasedItemV1]


class ReviewResponseV1(ObjectEnvelopeFields):
    data: ReviewV1


class ReplyResponseV1(ObjectEnvelopeFields):
    data: ReplyV1
