# This file defines schema pieces shared by every endpoint group.
# Envelope metadata, pagination and error payloads stay identical across routers.

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PaginationMetadata(BaseModel):
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_count: int = Field(ge=0)
    total_pages: int = Field(ge=0)
    sort: str | None = None


class EnvelopeFields(BaseModel):
    api_version: str
    schema_version: str
    request_id: str
    generated_at: datetime
    warnings: list[str] | None = None


class ListEnvelopeFields(EnvelopeFields):
    count: int = Field(ge=0)
    pagination: PaginationMetadata | None = None


class ObjectEnvelopeFields(EnvelopeFields):
    message: str | None = None


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str
    timestamp: datetime
