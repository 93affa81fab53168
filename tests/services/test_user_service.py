# This file tests registration, credential checks and password resets against a real SQLite schema.

from __future__ import annotations

import pytest

from marketplace.api.db_access import DatabaseClient
from marketplace.api.error_handlers import APIError
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.api.services.user_service import UserService, hash_password, verify_password
from tests.api.support import build_test_config


@pytest.fixture
def service(db: DatabaseClient) -> UserService:
    return UserService(config=build_test_config(), db=db)


def test_register_stores_bcrypt_hash(db: DatabaseClient, service: UserService) -> None:
    user = service.register(
        username="alice",
        email="Alice@Example.com",
        password="correct horse",
        full_name="Alice A",
        role=UserRole.SELLER,
    )

    assert user["email"] == "alice@example.com"
    assert user["role"] == "seller"
    assert "password" not in user

    stored = db.fetch_one("SELECT password FROM users WHERE id = :id", {"id": user["id"]})
    assert stored["password"].startswith("$2")
    assert verify_password("correct horse", stored["password"])


def test_register_duplicate_username_conflicts(service: UserService) -> None:
    service.register(username="alice", email="alice@example.com", password="correct horse")

    with pytest.raises(APIError) as exc_info:
        service.register(username="alice", email="other@example.com", password="correct horse")

    assert exc_info.value.status_code == 409
    assert exc_info.value.error_code == "USER_EXISTS"


@pytest.mark.parametrize("identifier", ["alice@example.com", "ALICE@example.com", "alice"])
def test_authenticate_by_email_or_username(service: UserService, identifier: str) -> None:
    service.register(username="alice", email="alice@example.com", password="correct horse")

    user = service.authenticate(identifier=identifier, password="correct horse")

    assert user["username"] == "alice"
    assert "password" not in user


def test_authenticate_by_id(service: UserService) -> None:
    registered = service.register(username="alice", email="alice@example.com", password="correct horse")

    assert service.authenticate(identifier=registered["id"], password="correct horse")["id"] == registered["id"]


def test_authenticate_rejects_bad_password_and_unknown_user(service: UserService) -> None:
    service.register(username="alice", email="alice@example.com", password="correct horse")

    for identifier, password in (("alice", "wrong password"), ("nobody", "correct horse")):
        with pytest.raises(APIError) as exc_info:
            service.authenticate(identifier=identifier, password=password)
        assert exc_info.value.status_code == 401
        assert exc_info.value.error_code == "INVALID_CREDENTIALS"


def test_set_password_rehashes(service: UserService) -> None:
    service.register(username="alice", email="alice@example.com", password="correct horse")

    assert service.set_password(identifier="alice@example.com", password="new password!") is True
    assert service.authenticate(identifier="alice", password="new password!")["username"] == "alice"
    assert service.set_password(identifier="nobody", password="irrelevant") is False


def test_verify_password_tolerates_non_bcrypt_values() -> None:
    assert verify_password("secret", "plain-text") is False
    assert verify_password("secret", hash_password("secret", rounds=4)) is True
