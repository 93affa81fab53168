# This file implements account registration, credential checks and password maintenance.
# Passwords are stored as bcrypt hashes; rows returned to callers never include the hash.

from __future__ import annotations

import logging
from typing import Any

import bcrypt
from sqlalchemy.exc import IntegrityError

from marketplace.api.api_config import ApiConfig
from marketplace.api.db_access import DatabaseClient
from marketplace.api.error_handlers import APIError
from marketplace.api.schemas.user_schemas import UserRole
from marketplace.common.identifiers import generate_id

LOGGER = logging.getLogger("users")

_PUBLIC_COLUMNS = "id, username, email, full_name, role, created_at"


def hash_password(password: str, *, rounds: int) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


class UserService:
    """User lookups and credential handling."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db

    def get_user_by_id(self, *, user_id: str) -> dict[str, Any] | None:
        return self.db.fetch_one(f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE id = :user_id", {"user_id": user_id})

    def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        full_name: str | None = None,
        role: UserRole = UserRole.BUYER,
    ) -> dict[str, Any]:
        user_id = generate_id()
        try:
            self.db.execute(
                """
                INSERT INTO users (id, username, email, password, full_name, role, created_at)
                VALUES (:id, :username, :email, :password, :full_name, :role, CURRENT_TIMESTAMP)
                """,
                {
                    "id": user_id,
                    "username": username.strip(),
                    "email": email.strip().lower(),
                    "password": hash_password(password, rounds=self.config.password_hash_rounds),
                    "full_name": full_name,
                    "role": UserRole(role).value,
                },
            )
        except IntegrityError as exc:
            raise APIError(
                status_code=409,
                error_code="USER_EXISTS",
                message="A user with this username or email already exists.",
            ) from exc

        LOGGER.info("user registered user_id=%s role=%s", user_id, role)
        user = self.get_user_by_id(user_id=user_id)
        if user is None:
            raise APIError(status_code=404, error_code="USER_NOT_FOUND", message="User not found.")
        return user

    def authenticate(self, *, identifier: str, password: str) -> dict[str, Any]:
        """Return the public user row when `password` matches; raise 401 otherwise."""

        row = self._find_with_password(identifier)
        if row is None or not verify_password(password, row["password"] or ""):
            LOGGER.info("login failed identifier=%s", identifier)
            raise APIError(
                status_code=401,
                error_code="INVALID_CREDENTIALS",
                message="Invalid username/email or password.",
            )
        row.pop("password", None)
        return row

    def set_password(self, *, identifier: str, password: str) -> bool:
        row = self._find_with_password(identifier)
        if row is None:
            return False
        updated = self.db.execute(
            "UPDATE users SET password = :password WHERE id = :user_id",
            {
                "password": hash_password(password, rounds=self.config.password_hash_rounds),
                "user_id": row["id"],
            },
        )
        return updated > 0

    def _find_with_password(self, identifier: str) -> dict[str, Any] | None:
        value = identifier.strip()
        if "@" in value:
            return self.db.fetch_one(
                f"SELECT {_PUBLIC_COLUMNS}, password FROM users WHERE email = :value",
                {"value": value.lower()},
            )
        return self.db.fetch_one(
            f"SELECT {_PUBLIC_COLUMNS}, password FROM users WHERE username = :value OR id = :value",
            {"value": value},
        )
