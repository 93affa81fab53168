# This file defines the order contracts: lifecycle statuses, write payloads and response rows.
# Statuses move Pending -> Processing -> Dispatched -> Delivering -> Delivered.

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from marketplace.api.schemas.common import ListEnvelopeFields, ObjectEnvelopeFields


class OrderStatus(StrEnum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    DISPATCHED = "Dispatched"
    DELIVERING = "Delivering"
    DELIVERED = "Delivered"


class OrderItemCreateV1(BaseModel):
    bar_code: str = Field(min_length=1, max_length=64)
    variation_name: str = Field(min_length=1, max_length=100)
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)


class OrderCreateRequestV1(BaseModel):
    address: str = Field(min_length=1, max_length=500)
    status: OrderStatus = OrderStatus.PENDING
    items: list[OrderItemCreateV1] = Field(min_length=1)


class OrderUpdateRequestV1(BaseModel):
    new_status: OrderStatus | None = None
    new_address: str | None = Field(default=None, min_length=1, max_length=500)


class OrderItemV1(BaseModel):
    id: str
    order_id: str
    bar_code: str
    variation_name: str
    quantity: int
    price: float


class OrderV1(BaseModel):
    id: str
    buyer_id: str
    address: str
    status: OrderStatus
    created_at: datetime | None = None
    total: float
    items: list[OrderItemV1]


class OrderResponseV1(ObjectEnvelopeFields):
    data: OrderV1


class OrderUpdateResultV1(BaseModel):
    order_id: str
    updated_status: OrderStatus | None = None
    updated_address: str | None = None


class OrderUpdateResponseV1(ObjectEnvelopeFields):
    data: OrderUpdateResultV1


class OrderTransitionResultV1(BaseModel):
    order_id: str
    new_status: OrderStatus


class OrderTransitionResponseV1(ObjectEnvelopeFields):
    data: OrderTransitionResultV1


class OrderDetailsRowV1(BaseModel):
    id: str
    status: str
    total: float
    created_at: datetime | None = None
    buyer: str | None = None
    item_count: int


class OrderDetailsListResponseV1(ListEnvelopeFields):
    data: list[OrderDetailsRowV1]


class TopSellingProductRowV1(BaseModel):
    bar_code: str
    name: str
    total_quantity_sold: int


class TopSellingProductListResponseV1(ListEnvelopeFields):
    data: list[TopSellingProductRowV1]
