# This file defines account contracts for registration, login and the current-user view.
# Password hashes never leave the service layer; `UserV1` has no password field.

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from marketplace.api.schemas.common import ObjectEnvelopeFields


class UserRole(StrEnum):
    BUYER = "buyer"
    SELLER = "seller"
    SHIPPER = "shipper"
    ADMIN = "admin"


class UserV1(BaseModel):
    id: str
    username: str
    email: str
    full_name: str | None = None
    role: UserRole
    created_at: datetime | None = None


class RegisterRequestV1(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=72)
    full_name: str | None = Field(default=None, max_length=255)
    role: UserRole = UserRole.BUYER

    @field_validator("role")
    @classmethod
    def reject_admin_signup(cls, value: UserRole) -> UserRole:
        if value == UserRole.ADMIN:
            raise ValueError("admin accounts cannot be self-registered.")
        return value


class LoginRequestV1(BaseModel):
    identifier: str = Field(min_length=1, description="Email address or username.")
    password: str = Field(min_length=1)


class LoginResultV1(BaseModel):
    token: str
    user: UserV1


class UserResponseV1(ObjectEnvelopeFields):
    data: UserV1


class LoginResponseV1(ObjectEnvelopeFields):
    data: LoginResultV1


class LogoutResponseV1(ObjectEnvelopeFields):
    data: None = None
