# This file builds the FastAPI application and registers all API routers.
# Startup behavior, middleware, metrics and error handling are configured in one place.
# The app adds request IDs, timing headers, and optional request logging for operations visibility.

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import RequestResponseEndpoint

from marketplace.api.api_config import get_api_config
from marketplace.api.dependencies import get_database_client
from marketplace.api.error_handlers import register_error_handlers
from marketplace.api.routers.categories import router as categories_router
from marketplace.api.routers.health import router as health_router
from marketplace.api.routers.orders import router as orders_router
from marketplace.api.routers.products import router as products_router
from marketplace.api.routers.reviews import router as reviews_router
from marketplace.api.routers.users import router as users_router
from marketplace.common.logging import configure_logging

LOGGER = logging.getLogger("api.requests")
APP_LOGGER = logging.getLogger("api")

API_HTTP_REQUESTS_TOTAL = Counter(
    "api_http_requests_total",
    "Total number of HTTP requests processed by the API.",
    ["method", "path", "status_code"],
)
API_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "api_http_request_duration_seconds",
    "API request duration in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
API_HTTP_INFLIGHT_REQUESTS = Gauge(
    "api_http_inflight_requests",
    "Number of API requests currently being processed.",
    ["method"],
)


def _path_label(request: Request) -> str:
    # route templates keep label cardinality bounded for ids in paths
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def create_app() -> FastAPI:
    """Create configured FastAPI application instance."""

    configure_logging()
    config = get_api_config()

    app = FastAPI(
        title=config.api_name,
        description=(
            "Versioned marketplace API: order lifecycle, product catalog, reviews and accounts. "
            "Reporting endpoints call stored procedures and fall back to inline SQL."
        ),
        version=config.app_version,
        openapi_tags=[
            {"name": "health", "description": "Service liveness, readiness, and version metadata."},
            {"name": "orders", "description": "Order creation, delivery lifecycle and order reports."},
            {"name": "products", "description": "Product catalog and seller listings."},
            {"name": "categories", "description": "Category catalog and product assignment."},
            {"name": "reviews", "description": "Product reviews, reactions and replies."},
            {"name": "users", "description": "Registration, login and the current user."},
        ],
    )

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        method_label = request.method
        started = time.perf_counter()
        status_code = 500
        API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label).inc()
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            duration_ms = (time.perf_counter() - started) * 1000.0

            response.headers["x-request-id"] = request_id
            response.headers["x-response-time-ms"] = f"{duration_ms:.2f}"

            if config.enable_request_logging:
                LOGGER.info(
                    "request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
                    request_id,
                    request.method,
                    request.url.path,
                    response.status_code,
                    duration_ms,
                )

            return response
        finally:
            duration_s = time.perf_counter() - started
            path_label = _path_label(request)
            API_HTTP_REQUESTS_TOTAL.labels(
                method=method_label,
                path=path_label,
                status_code=str(status_code),
            ).inc()
            API_HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method_label,
                path=path_label,
            ).observe(duration_s)
            API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label).dec()

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.on_event("startup")
    def startup_checks() -> None:
        try:
            db = get_database_client()
            connected = db.can_connect()
        except SQLAlchemyError:
            connected = False
        if not connected:
            APP_LOGGER.warning("Database is unreachable at startup.")
        app.state.db_connected_at_startup = connected

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(users_router, prefix=config.api_version_path)
    app.include_router(orders_router, prefix=config.api_version_path)
    app.include_router(products_router, prefix=config.api_version_path)
    app.include_router(categories_router, prefix=config.api_version_path)
    app.include_router(reviews_router, prefix=config.api_version_path)

    return app


app = create_app()
