# This file defines category endpoints: the category catalog and product category assignment.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from marketplace.api.api_config import ApiConfig
from marketplace.api.auth import is_admin, require_roles
from marketplace.api.dependencies import get_config, get_product_service
from marketplace.api.response_envelope import build_list_envelope, build_object_envelope
from marketplace.api.schemas.product_schemas import (
    CategoryAssignRequestV1,
    CategoryListResponseV1,
    ProductDetailResponseV1,
)
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.api.services.product_service import ProductService

router = APIRouter(prefix="/categories", tags=["categories"])
ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
SellerDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.SELLER, UserRole.ADMIN))]


@router.get(
    "",
    response_model=CategoryListResponseV1,
    response_model_exclude_none=True,
)
def list_categories(
    request: Request,
    service: ProductServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=service.get_categories(),
    )


@router.post(
    "/assign/{bar_code}",
    response_model=ProductDetailResponseV1,
    response_model_exclude_none=True,
)
def assign_category(
    request: Request,
    bar_code: str,
    payload: CategoryAssignRequestV1,
    service: ProductServiceDep,
    config: ConfigDep,
    user: SellerDep,
) -> dict[str, object]:
    product = service.assign_category(
        bar_code=bar_code,
        category=payload.category,
        seller_id=None if is_admin(user) else user["id"],
    )
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=product,
        message="Category assigned.",
    )
