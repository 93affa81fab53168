# This file defines catalog endpoints for browsing products and managing a seller's own listings.
# Public reads need no token; seller writes are scoped to products the caller owns.
# List endpoints use allowlisted sorting and deterministic pagination.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, Response

from marketplace.api.api_config import ApiConfig
from marketplace.api.auth import require_roles
from marketplace.api.dependencies import get_config, get_product_service
from marketplace.api.error_handlers import APIError
from marketplace.api.pagination import (
    PaginationSpec,
    SortSpec,
    compute_total_pages,
    normalize_pagination,
    parse_sort,
)
from marketplace.api.response_envelope import build_list_envelope, build_object_envelope
from marketplace.api.schemas.common import PaginationMetadata
from marketplace.api.schemas.product_schemas import (
    ImageFilter,
    ProductCreateRequestV1,
    ProductDetailResponseV1,
    ProductSimpleListResponseV1,
    ProductSummaryListResponseV1,
    ProductUpdateRequestV1,
    StockFilter,
    VariationsAddRequestV1,
)
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.api.services.product_service import PRODUCT_SORT_FIELD_MAP, ProductService

router = APIRouter(prefix="/products", tags=["products"])
ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
SellerDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.SELLER, UserRole.ADMIN))]


def _paging(config: ApiConfig, page: int, page_size: int | None, sort: str | None) -> tuple[PaginationSpec, SortSpec]:
    try:
        pagination = normalize_pagination(
            page=page,
            page_size=page_size,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        )
        sort_spec = parse_sort(
            requested_sort=sort,
            default_sort=config.default_product_sort,
            column_map=PRODUCT_SORT_FIELD_MAP,
        )
    except ValueError as exc:
        raise APIError(
            status_code=400,
            error_code="INVALID_QUERY_PARAM",
            message=str(exc),
        ) from exc
    return pagination, sort_spec


def _paged_envelope(
    request: Request,
    config: ApiConfig,
    service_result: dict[str, Any],
    pagination: PaginationSpec,
    sort_spec: SortSpec,
) -> dict[str, object]:
    total_count = int(service_result["total_count"])
    pagination_meta = PaginationMetadata(
        page=pagination.page,
        page_size=pagination.page_size,
        total_count=total_count,
        total_pages=compute_total_pages(total_count=total_count, page_size=pagination.page_size),
        sort=sort_spec.as_text,
    )
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=list(service_result["rows"]),
        pagination=pagination_meta.model_dump(),
    )


def _list_envelope(request: Request, config: ApiConfig, rows: list[dict[str, Any]]) -> dict[str, object]:
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=rows,
    )


def _detail_envelope(
    request: Request,
    config: ApiConfig,
    product: dict[str, Any],
    message: str | None = None,
) -> dict[str, object]:
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=product,
        message=message,
    )


def _product_not_found() -> APIError:
    return APIError(status_code=404, error_code="PRODUCT_NOT_FOUND", message="Product not found.")


@router.get(
    "/category/{category}",
    response_model=ProductSummaryListResponseV1,
    response_model_exclude_none=True,
)
def products_by_category(
    request: Request,
    category: str,
    service: ProductServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return _list_envelope(request, config, service.get_products_by_category(category=category))


@router.get(
    "/search",
    response_model=ProductSummaryListResponseV1,
    response_model_exclude_none=True,
)
def search_products(
    request: Request,
    service: ProductServiceDep,
    config: ConfigDep,
    name: str = Query(min_length=1),
) -> dict[str, object]:
    return _list_envelope(request, config, service.search_products_by_name(name=name))


@router.get(
    "/all",
    response_model=ProductSummaryListResponseV1,
    response_model_exclude_none=True,
)
def all_products(
    request: Request,
    service: ProductServiceDep,
    config: ConfigDep,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    sort: str | None = Query(default=None),
) -> dict[str, object]:
    pagination, sort_spec = _paging(config, page, page_size, sort)
    service_result = service.get_all_products(
        page=pagination.page,
        page_size=pagination.page_size,
        sort=sort_spec,
    )
    return _paged_envelope(request, config, service_result, pagination, sort_spec)


@router.get(
    "/simple",
    response_model=ProductSimpleListResponseV1,
    response_model_exclude_none=True,
)
def simple_products(
    request: Request,
    service: ProductServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return _list_envelope(request, config, service.get_product_list_simple())


@router.get(
    "/seller/{seller_id}",
    response_model=ProductSummaryListResponseV1,
    response_model_exclude_none=True,
)
def products_by_seller(
    request: Request,
    seller_id: str,
    service: ProductServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return _list_envelope(request, config, service.get_products_by_seller(seller_id=seller_id))


@router.get(
    "/mine",
    response_model=ProductSummaryListResponseV1,
    response_model_exclude_none=True,
)
def my_products(
    request: Request,
    service: ProductServiceDep,
    config: ConfigDep,
    user: SellerDep,
    search: str | None = Query(default=None),
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    category: str | None = Query(default=None),
    stock: StockFilter | None = Query(default=None),
    has_images: ImageFilter | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    sort: str | None = Query(default=None),
) -> dict[str, object]:
    if min_price is not None and max_price is not None and min_price > max_price:
        raise APIError(
            status_code=400,
            error_code="INVALID_PRICE_RANGE",
            message="min_price must be <= max_price.",
        )

    pagination, sort_spec = _paging(config, page, page_size, sort)
    service_result = service.list_seller_products(
        seller_id=user["id"],
        page=pagination.page,
        page_size=pagination.page_size,
        sort=sort_spec,
        search=search,
        min_price=min_price,
        max_price=max_price,
        category=category,
        stock=stock,
        has_images=has_images,
    )
    return _paged_envelope(request, config, service_result, pagination, sort_spec)


@router.get(
    "/mine/{bar_code}",
    response_model=ProductDetailResponseV1,
    response_model_exclude_none=True,
)
def my_product(
    request: Request,
    bar_code: str,
    service: ProductServiceDep,
    config: ConfigDep,
    user: SellerDep,
) -> dict[str, object]:
    product = service.get_product_details(bar_code=bar_code, seller_id=user["id"])
    if product is None:
        raise _product_not_found()
    return _detail_envelope(request, config, product)


@router.post(
    "",
    status_code=201,
    response_model=ProductDetailResponseV1,
    response_model_exclude_none=True,
)
def create_product(
    request: Request,
    payload: ProductCreateRequestV1,
    service: ProductServiceDep,
    config: ConfigDep,
    user: SellerDep,
) -> dict[str, object]:
    product = service.create_product(seller_id=user["id"], data=payload.model_dump(mode="json"))
    return _detail_envelope(request, config, product, message="Product created.")


@router.put(
    "/{bar_code}",
    response_model=ProductDetailResponseV1,
    response_model_exclude_none=True,
)
def update_product(
    request: Request,
    bar_code: str,
    payload: ProductUpdateRequestV1,
    service: ProductServiceDep,
    config: ConfigDep,
    user: SellerDep,
) -> dict[str, object]:
    product = service.update_product(
        seller_id=user["id"],
        bar_code=bar_code,
        data=payload.model_dump(mode="json", exclude_unset=True),
    )
    if product is None:
        raise _product_not_found()
    return _detail_envelope(request, config, product, message="Product updated.")


@router.delete("/{bar_code}", status_code=204, response_class=Response)
def delete_product(
    bar_code: str,
    service: ProductServiceDep,
    user: SellerDep,
) -> Response:
    if not service.delete_product(seller_id=user["id"], bar_code=bar_code):
        raise _product_not_found()
    return Response(status_code=204)


@router.post(
    "/{bar_code}/variations",
    response_model=ProductDetailResponseV1,
    response_model_exclude_none=True,
)
def add_variations(
    request: Request,
    bar_code: str,
    payload: VariationsAddRequestV1,
    service: ProductServiceDep,
    config: ConfigDep,
    user: SellerDep,
) -> dict[str, object]:
    product = service.add_variations(
        seller_id=user["id"],
        bar_code=bar_code,
        variations=[variation.model_dump() for variation in payload.variations],
    )
    if product is None:
        raise _product_not_found()
    return _detail_envelope(request, config, product, message="Variations saved.")


@router.get(
    "/{bar_code}",
    response_model=ProductDetailResponseV1,
    response_model_exclude_none=True,
)
def product_details(
    request: Request,
    bar_code: str,
    service: ProductServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    product = service.get_product_details(bar_code=bar_code)
    if product is None:
        raise _product_not_found()
    return _detail_envelope(request, config, product)
