# This file defines the order lifecycle endpoints under the versioned API path.
# Buyers create, patch and cancel orders; shippers claim, start and confirm deliveries.
# Reporting endpoints are restricted to admins and sellers.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, Response

from marketplace.api.api_config import ApiConfig
from marketplace.api.auth import is_admin, require_roles
from marketplace.api.dependencies import get_config, get_order_service
from marketplace.api.error_handlers import APIError
from marketplace.api.response_envelope import build_list_envelope, build_object_envelope
from marketplace.api.schemas.order_schemas import (
    OrderCreateRequestV1,
    OrderDetailsListResponseV1,
    OrderResponseV1,
    OrderStatus,
    OrderTransitionResponseV1,
    OrderUpdateRequestV1,
    OrderUpdateResponseV1,
    TopSellingProductListResponseV1,
)
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.api.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
BuyerDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.BUYER, UserRole.ADMIN))]
ShipperDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.SHIPPER, UserRole.ADMIN))]
SellerDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.SELLER, UserRole.ADMIN))]
AdminDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.ADMIN))]


def _object_response(
    request: Request,
    config: ApiConfig,
    data: dict[str, Any],
    message: str | None = None,
) -> dict[str, object]:
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=data,
        message=message,
    )


@router.post(
    "",
    status_code=201,
    response_model=OrderResponseV1,
    response_model_exclude_none=True,
)
def create_order(
    request: Request,
    payload: OrderCreateRequestV1,
    service: OrderServiceDep,
    config: ConfigDep,
    user: BuyerDep,
) -> dict[str, object]:
    order = service.create_order(
        buyer_id=user["id"],
        address=payload.address,
        status=payload.status,
        items=[item.model_dump() for item in payload.items],
    )
    return _object_response(request, config, order, message="Order created.")


@router.get(
    "/details",
    response_model=OrderDetailsListResponseV1,
    response_model_exclude_none=True,
)
def order_details(
    request: Request,
    service: OrderServiceDep,
    config: ConfigDep,
    _admin: AdminDep,
    status: OrderStatus | None = Query(default=None),
    min_items: int = Query(default=0, ge=0),
) -> dict[str, object]:
    rows = service.get_order_details(
        status_filter=status.value if status is not None else None,
        min_items=min_items,
    )
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=rows,
    )


@router.get(
    "/reports/top-selling",
    response_model=TopSellingProductListResponseV1,
    response_model_exclude_none=True,
)
def top_selling_products(
    request: Request,
    service: OrderServiceDep,
    config: ConfigDep,
    user: SellerDep,
    min_quantity: int = Query(default=0, ge=0),
    seller_id: str | None = Query(default=None),
) -> dict[str, object]:
    if not is_admin(user):
        if seller_id is not None and seller_id != user["id"]:
            raise APIError(
                status_code=403,
                error_code="ACCESS_DENIED",
                message="Sellers can only report on their own products.",
            )
        seller_id = user["id"]

    rows = service.get_top_selling_products(min_quantity=min_quantity, seller_id=seller_id)
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=rows,
    )


@router.post(
    "/claim/{order_id}",
    response_model=OrderTransitionResponseV1,
    response_model_exclude_none=True,
)
def claim_order(
    request: Request,
    order_id: str,
    service: OrderServiceDep,
    config: ConfigDep,
    user: ShipperDep,
) -> dict[str, object]:
    result = service.claim_order(order_id=order_id, shipper_id=user["id"])
    return _object_response(request, config, result, message="Order claimed.")


@router.post(
    "/start/{order_id}",
    response_model=OrderTransitionResponseV1,
    response_model_exclude_none=True,
)
def start_delivery(
    request: Request,
    order_id: str,
    service: OrderServiceDep,
    config: ConfigDep,
    user: ShipperDep,
) -> dict[str, object]:
    result = service.start_delivery(order_id=order_id, shipper_id=user["id"], is_admin=is_admin(user))
    return _object_response(request, config, result, message="Delivery started.")


@router.post(
    "/confirm/{order_id}",
    response_model=OrderTransitionResponseV1,
    response_model_exclude_none=True,
)
def confirm_delivery(
    request: Request,
    order_id: str,
    service: OrderServiceDep,
    config: ConfigDep,
    user: ShipperDep,
) -> dict[str, object]:
    result = service.confirm_delivery(order_id=order_id, shipper_id=user["id"], is_admin=is_admin(user))
    return _object_response(request, config, result, message="Delivery confirmed.")


@router.get(
    "/{order_id}",
    response_model=OrderResponseV1,
    response_model_exclude_none=True,
)
def get_order(
    request: Request,
    order_id: str,
    service: OrderServiceDep,
    config: ConfigDep,
    user: BuyerDep,
) -> dict[str, object]:
    order = service.get_order(order_id=order_id, buyer_id=None if is_admin(user) else user["id"])
    if order is None:
        raise APIError(status_code=404, error_code="ORDER_NOT_FOUND", message="Order not found.")
    return _object_response(request, config, order)


@router.put(
    "/{order_id}",
    response_model=OrderUpdateResponseV1,
    response_model_exclude_none=True,
)
def update_order(
    request: Request,
    order_id: str,
    payload: OrderUpdateRequestV1,
    service: OrderServiceDep,
    config: ConfigDep,
    user: BuyerDep,
) -> dict[str, object]:
    result = service.update_order(
        order_id=order_id,
        user_id=user["id"],
        is_admin=is_admin(user),
        new_status=payload.new_status.value if payload.new_status is not None else None,
        new_address=payload.new_address,
    )
    return _object_response(request, config, result, message="Order updated.")


@router.delete("/{order_id}", status_code=204, response_class=Response)
def delete_order(
    order_id: str,
    service: OrderServiceDep,
    user: BuyerDep,
) -> Response:
    service.delete_order(order_id=order_id, user_id=user["id"], is_admin=is_admin(user))
    return Response(status_code=204)
