# This file builds response envelopes for API endpoints in a consistent format.
# Clients always receive version metadata and the request id next to the payload.
# The helpers return plain dictionaries that the pydantic response models validate.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from marketplace.api.schema_versions import build_version_fields


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def build_list_envelope(
    *,
    api_version_path: str,
    schema_version: str,
    request_id: str,
    data: list[dict[str, Any]],
    pagination: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Build standard list response envelope; `count` mirrors the page length."""

    return {
        **build_version_fields(api_version_path=api_version_path, schema_version=schema_version),
        "request_id": request_id,
        "generated_at": utc_now(),
        "count": len(data),
        "data": data,
        "pagination": pagination,
        "warnings": warnings,
    }


def build_object_envelope(
    *,
    api_version_path: str,
    schema_version: str,
    request_id: str,
    data: dict[str, Any] | None,
    message: str | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Build standard single-object response envelope."""

    return {
        **build_version_fields(api_version_path=api_version_path, schema_version=schema_version),
        "request_id": request_id,
        "generated_at": utc_now(),
        "message": message,
        "data": data,
        "warnings": warnings,
    }
