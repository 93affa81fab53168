# This file provides dependency factories for FastAPI routes and middleware.
# Services are created once and shared through dependency injection so tests can override them.

from __future__ import annotations

from functools import lru_cache

from marketplace.api.api_config import ApiConfig, get_api_config
from marketplace.api.db_access import DatabaseClient
from marketplace.api.services.order_service import OrderService
from marketplace.api.services.product_service import ProductService
from marketplace.api.services.review_service import ReviewService
from marketplace.api.services.user_service import UserService


@lru_cache(maxsize=1)
def get_database_client() -> DatabaseClient:
    config = get_api_config()
    return DatabaseClient(database_url=config.database_url)


@lru_cache(maxsize=1)
def get_order_service() -> OrderService:
    config = get_api_config()
    db_client = get_database_client()
    return OrderService(config=config, db=db_client)


@lru_cache(maxsize=1)
def get_product_service() -> ProductService:
    config = get_api_config()
    db_client = get_database_client()
    return ProductService(config=config, db=db_client)


@lru_cache(maxsize=1)
def get_review_service() -> ReviewService:
    config = get_api_config()
    db_client = get_database_client()
    return ReviewService(config=config, db=db_client)


@lru_cache(maxsize=1)
def get_user_service() -> UserService:
    config = get_api_config()
    db_client = get_database_client()
    return UserService(config=config, db=db_client)


def get_config() -> ApiConfig:
    return get_api_config()
