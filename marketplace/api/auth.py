# This file issues and verifies access tokens and exposes the current-user dependencies.
# Tokens are read from the auth cookie first, then from an `Authorization: Bearer` header.
# Role checks compose with `get_current_user`, so route tests can override a single dependency.

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

import jwt
from fastapi import Depends, Request, Response

from marketplace.api.api_config import ApiConfig
from marketplace.api.dependencies import get_config, get_user_service
from marketplace.api.error_handlers import APIError
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.api.services.user_service import UserService

LOGGER = logging.getLogger("auth")

ConfigDep = Annotated[ApiConfig, Depends(get_config)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def create_access_token(*, user: dict[str, Any], config: ApiConfig, now: datetime | None = None) -> str:
    issued_at = now or datetime.now(UTC)
    payload = {
        "id": user["id"],
        "role": str(user["role"]),
        "iat": issued_at,
        "exp": issued_at + timedelta(days=config.jwt_expires_days),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_access_token(token: str, *, config: ApiConfig) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise APIError(status_code=401, error_code="TOKEN_EXPIRED", message="Token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise APIError(status_code=401, error_code="INVALID_TOKEN", message="Invalid token.") from exc

    if not payload.get("id"):
        raise APIError(status_code=401, error_code="INVALID_TOKEN", message="Invalid token.")
    return payload


def extract_token(request: Request, *, config: ApiConfig) -> str | None:
    token = request.cookies.get(config.auth_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def get_current_user(request: Request, config: ConfigDep, users: UserServiceDep) -> dict[str, Any]:
    token = extract_token(request, config=config)
    if token is None:
        raise APIError(status_code=401, error_code="AUTH_REQUIRED", message="Authentication required.")

    payload = decode_access_token(token, config=config)
    user = users.get_user_by_id(user_id=str(payload["id"]))
    if user is None:
        LOGGER.info("token refers to unknown user id=%s", payload["id"])
        raise APIError(status_code=401, error_code="INVALID_TOKEN", message="User no longer exists.")
    return user


CurrentUserDep = Annotated[dict[str, Any], Depends(get_current_user)]


def require_roles(*roles: UserRole) -> Callable[[dict[str, Any]], dict[str, Any]]:
    """Dependency factory that admits only users holding one of `roles`."""

    allowed = {UserRole(role).value for role in roles}

    def dependency(user: CurrentUserDep) -> dict[str, Any]:
        if str(user.get("role")) not in allowed:
            raise APIError(
                status_code=403,
                error_code="ACCESS_DENIED",
                message="You do not have permission to perform this action.",
                details={"required_roles": sorted(allowed)},
            )
        return user

    return dependency


def is_admin(user: dict[str, Any]) -> bool:
    return str(user.get("role")) == UserRole.ADMIN.value


def set_auth_cookie(response: Response, *, token: str, config: ApiConfig) -> None:
    response.set_cookie(
        key=config.auth_cookie_name,
        value=token,
        max_age=config.auth_cookie_max_age_seconds,
        httponly=True,
        samesite="strict",
        secure=config.secure_cookies,
    )


def clear_auth_cookie(response: Response, *, config: ApiConfig) -> None:
    response.delete_cookie(
        key=config.auth_cookie_name,
        httponly=True,
        samesite="strict",
        secure=config.secure_cookies,
    )
