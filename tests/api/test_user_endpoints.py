# This file tests account endpoints and the token-based current-user dependency.
# Login issues a real signed token, so these tests also cover cookie and bearer extraction.

from __future__ import annotations

from typing import Any

from marketplace.api.error_handlers import APIError
from tests.api.support import api_test_client, build_test_config, make_user


class FakeUserService:
    def __init__(self) -> None:
        self.users = {"buyer-1": make_user("buyer")}

    def register(self, **kwargs: Any) -> dict[str, Any]:
        if kwargs["username"] == "taken":
            raise APIError(status_code=409, error_code="USER_EXISTS", message="exists")
        return {**make_user(str(kwargs["role"]), "new-user"), "username": kwargs["username"]}

    def authenticate(self, *, identifier: str, password: str) -> dict[str, Any]:
        if password != "correct horse":
            raise APIError(status_code=401, error_code="INVALID_CREDENTIALS", message="Invalid credentials.")
        return self.users["buyer-1"]

    def get_user_by_id(self, *, user_id: str) -> dict[str, Any] | None:
        return self.users.get(user_id)


def _register_payload(**overrides: Any) -> dict[str, Any]:
    payload = {"username": "alice", "email": "alice@example.com", "password": "correct horse"}
    payload.update(overrides)
    return payload


def test_register_returns_created_user_without_password() -> None:
    with api_test_client(user_service=FakeUserService()) as client:
        response = client.post("/api/v1/users/register", json=_register_payload(role="seller"))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["username"] == "alice"
    assert data["role"] == "seller"
    assert "password" not in data


def test_register_rejects_admin_role_and_short_password() -> None:
    with api_test_client(user_service=FakeUserService()) as client:
        admin = client.post("/api/v1/users/register", json=_register_payload(role="admin"))
        short = client.post("/api/v1/users/register", json=_register_payload(password="short"))

    assert admin.status_code == 422
    assert short.status_code == 422


def test_register_conflict_is_propagated() -> None:
    with api_test_client(user_service=FakeUserService()) as client:
        response = client.post("/api/v1/users/register", json=_register_payload(username="taken"))

    assert response.status_code == 409
    assert response.json()["error_code"] == "USER_EXISTS"


def test_login_sets_cookie_and_token_authenticates_me() -> None:
    with api_test_client(user_service=FakeUserService()) as client:
        login = client.post(
            "/api/v1/users/login",
            json={"identifier": "alice@example.com", "password": "correct horse"},
        )
        token = login.json()["data"]["token"]
        set_cookie = login.headers["set-cookie"]
        client.cookies.clear()
        me = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})

    assert login.status_code == 200
    assert set_cookie.startswith("token=")
    assert "httponly" in set_cookie.lower()
    assert "samesite=strict" in set_cookie.lower()
    assert me.status_code == 200
    assert me.json()["data"]["id"] == "buyer-1"


def test_login_with_bad_password_is_unauthorized() -> None:
    with api_test_client(user_service=FakeUserService()) as client:
        response = client.post("/api/v1/users/login", json={"identifier": "alice", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "INVALID_CREDENTIALS"


def test_me_requires_token() -> None:
    with api_test_client(user_service=FakeUserService()) as client:
        missing = client.get("/api/v1/users/me")
        garbage = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-token"})

    assert missing.status_code == 401
    assert missing.json()["error_code"] == "AUTH_REQUIRED"
    assert garbage.status_code == 401
    assert garbage.json()["error_code"] == "INVALID_TOKEN"


def test_logout_clears_cookie() -> None:
    config = build_test_config()
    with api_test_client(config=config, user_service=FakeUserService()) as client:
        response = client.post("/api/v1/users/logout")

    assert response.status_code == 200
    assert response.json()["message"] == "Logged out."
    assert response.headers["set-cookie"].startswith(f"{config.auth_cookie_name}=")
