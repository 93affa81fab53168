# This file defines catalog contracts: products, variations, categories and seller write payloads.

from __future__ import annotations

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field

from marketplace.api.schemas.common import ListEnvelopeFields, ObjectEnvelopeFields


class StockFilter(StrEnum):
    IN_STOCK = "in"
    OUT_OF_STOCK = "out"


class ImageFilter(StrEnum):
    WITH = "with"
    WITHOUT = "without"


class VariationV1(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    price: float = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)


class CategoryV1(BaseModel):
    name: str
    description: str | None = None


class ProductSummaryV1(BaseModel):
    bar_code: str
    name: str
    description: str | None = None
    manufacturing_date: date | None = None
    expired_date: date | None = None
    seller_id: str
    image_url: str | None = None


class ProductDetailV1(BaseModel):
    bar_code: str
    name: str
    description: str | None = None
    manufacturing_date: date | None = None
    expired_date: date | None = None
    seller_id: str
    images: list[str]
    variations: list[VariationV1]
    categories: list[str]


class ProductSimpleV1(BaseModel):
    bar_code: str
    name: str


class ProductCreateRequestV1(BaseModel):
    bar_code: str | None = Field(default=None, min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    manufacturing_date: date | None = None
    expired_date: date | None = None
    description: str | None = None
    variations: list[VariationV1] = Field(default_factory=list)
    category: str | None = None


class ProductUpdateRequestV1(BaseModel):
    """Partial update; `category: null` removes the category mapping."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    manufacturing_date: date | None = None
    expired_date: date | None = None
    description: str | None = None
    variations: list[VariationV1] | None = None
    category: str | None = None


class VariationsAddRequestV1(BaseModel):
    variations: list[VariationV1] = Field(min_length=1)


class CategoryAssignRequestV1(BaseModel):
    category: str = Field(min_length=1, max_length=100)


class CategoryListResponseV1(ListEnvelopeFields):
    data: list[CategoryV1]


class ProductSummaryListResponseV1(ListEnvelopeFields):
    data: list[ProductSummaryV1]


class ProductSimpleListResponseV1(ListEnvelopeFields):
    data: list[ProductSimpleV1]


class ProductDetailResponseV1(ObjectEnvelopeFields):
    data: ProductDetailV1
