# This file defines account endpoints: registration, cookie-based login and logout, and the current user.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from marketplace.api.api_config import ApiConfig
from marketplace.api.auth import (
    CurrentUserDep,
    clear_auth_cookie,
    create_access_token,
    set_auth_cookie,
)
from marketplace.api.dependencies import get_config, get_user_service
from marketplace.api.response_envelope import build_object_envelope
from marketplace.api.schemas.user_schemas import (
    LoginRequestV1,
    LoginResponseV1,
    LogoutResponseV1,
    RegisterRequestV1,
    UserResponseV1,
)
from marketplace.api.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post(
    "/register",
    status_code=201,
    response_model=UserResponseV1,
    response_model_exclude_none=True,
)
def register(
    request: Request,
    payload: RegisterRequestV1,
    service: UserServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    user = service.register(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
    )
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=user,
        message="User registered.",
    )


@router.post(
    "/login",
    response_model=LoginResponseV1,
    response_model_exclude_none=True,
)
def login(
    request: Request,
    response: Response,
    payload: LoginRequestV1,
    service: UserServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    user = service.authenticate(identifier=payload.identifier, password=payload.password)
    token = create_access_token(user=user, config=config)
    set_auth_cookie(response, token=token, config=config)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data={"token": token, "user": user},
        message="Login successful.",
    )


@router.post(
    "/logout",
    response_model=LogoutResponseV1,
    response_model_exclude_none=True,
)
def logout(
    request: Request,
    response: Response,
    config: ConfigDep,
) -> dict[str, object]:
    clear_auth_cookie(response, config=config)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=None,
        message="Logged out.",
    )


@router.get(
    "/me",
    response_model=UserResponseV1,
    response_model_exclude_none=True,
)
def me(
    request: Request,
    user: CurrentUserDep,
    config: ConfigDep,
) -> dict[str, object]:
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=user,
    )
