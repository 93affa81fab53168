# This file defines review endpoints: product reviews, reactions, replies and reviewable purchases.
# Reading product reviews is public; every write needs an authenticated user.

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, Request

from marketplace.api.api_config import ApiConfig
from marketplace.api.auth import CurrentUserDep, require_roles
from marketplace.api.dependencies import get_config, get_review_service
from marketplace.api.error_handlers import APIError
from marketplace.api.response_envelope import build_list_envelope, build_object_envelope
from marketplace.api.schemas.review_schemas import (
    ProductReviewListResponseV1,
    PurchasedItemListResponseV1,
    ReactionRequestV1,
    ReplyCreateRequestV1,
    ReplyResponseV1,
    ReviewCreateRequestV1,
    ReviewResponseV1,
)
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.api.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])
ReviewServiceDep = Annotated[ReviewService, Depends(get_review_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
BuyerDep = Annotated[dict[str, Any], Depends(require_roles(UserRole.BUYER, UserRole.ADMIN))]


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


@router.get(
    "/product/{bar_code}",
    response_model=ProductReviewListResponseV1,
    response_model_exclude_none=True,
)
def product_reviews(
    request: Request,
    bar_code: str,
    service: ReviewServiceDep,
    config: ConfigDep,
    rating: int | None = Query(default=None, ge=1, le=5),
    sort: Literal["asc", "desc"] = Query(default="desc"),
) -> dict[str, object]:
    rows = service.list_product_reviews(bar_code=bar_code, rating=rating, sort=sort)
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=rows,
    )


@router.get(
    "/purchased",
    response_model=PurchasedItemListResponseV1,
    response_model_exclude_none=True,
)
def purchased_items(
    request: Request,
    service: ReviewServiceDep,
    config: ConfigDep,
    user: BuyerDep,
) -> dict[str, object]:
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=service.get_purchased_items(user_id=user["id"]),
    )


@router.get(
    "/{review_id}",
    response_model=ReviewResponseV1,
    response_model_exclude_none=True,
)
def get_review(
    request: Request,
    review_id: str,
    service: ReviewServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    review = service.get_review(review_id=review_id)
    if review is None:
        raise APIError(status_code=404, error_code="REVIEW_NOT_FOUND", message="Review not found.")
    return _object_response(request, config, review)


@router.post(
    "",
    status_code=201,
    response_model=ReviewResponseV1,
    response_model_exclude_none=True,
)
def create_review(
    request: Request,
    payload: ReviewCreateRequestV1,
    service: ReviewServiceDep,
    config: ConfigDep,
    user: BuyerDep,
) -> dict[str, object]:
    review = service.create_review(
        user_id=user["id"],
        order_id=payload.order_id,
        order_item_id=payload.order_item_id,
        rating=payload.rating,
        content=payload.content,
    )
    return _object_response(request, config, review, message="Review created.")


@router.post(
    "/{review_id}/reactions",
    response_model=ReviewResponseV1,
    response_model_exclude_none=True,
)
def react_to_review(
    request: Request,
    review_id: str,
    payload: ReactionRequestV1,
    service: ReviewServiceDep,
    config: ConfigDep,
    user: CurrentUserDep,
) -> dict[str, object]:
    review = service.upsert_reaction(
        review_id=review_id,
        author_id=user["id"],
        reaction_type=payload.reaction_type,
    )
    return _object_response(request, config, review, message="Reaction saved.")


@router.post(
    "/{review_id}/replies",
    status_code=201,
    response_model=ReplyResponseV1,
    response_model_exclude_none=True,
)
def reply_to_review(
    request: Request,
    review_id: str,
    payload: ReplyCreateRequestV1,
    service: ReviewServiceDep,
    config: ConfigDep,
    user: CurrentUserDep,
) -> dict[str, object]:
    reply = service.add_reply(review_id=review_id, author_id=user["id"], content=payload.content)
    return _object_response(request, config, reply, message="Reply added.")
