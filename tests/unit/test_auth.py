"""
Unit tests for access token helpers.
They cover token round trips, expiry and tampering without starting the API.
"""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from marketplace.api.auth import create_access_token, decode_access_token
from marketplace.api.error_handlers import APIError
from tests.api.support import build_test_config, make_user


def test_token_carries_id_and_role() -> None:
    config = build_test_config()
    token = create_access_token(user=make_user("seller"), config=config)

    payload = decode_access_token(token, config=config)

    assert payload["id"] == "seller-1"
    assert payload["role"] == "seller"
    assert payload["exp"] - payload["iat"] == config.jwt_expires_days * 24 * 60 * 60


def test_expired_token_is_rejected() -> None:
    config = build_test_config(jwt_expires_days=1)
    issued = datetime.now(UTC) - timedelta(days=2)
    token = create_access_token(user=make_user(), config=config, now=issued)

    with pytest.raises(APIError) as exc_info:
        decode_access_token(token, config=config)

    assert exc_info.value.status_code == 401
    assert exc_info.value.error_code == "TOKEN_EXPIRED"


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = jwt.encode({"id": "buyer-1", "role": "buyer"}, "another-secret", algorithm="HS256")

    with pytest.raises(APIError) as exc_info:
        decode_access_token(token, config=build_test_config())

    assert exc_info.value.error_code == "INVALID_TOKEN"


def test_token_without_id_is_rejected() -> None:
    config = build_test_config()
    token = jwt.encode({"role": "buyer"}, config.jwt_secret, algorithm="HS256")

    with pytest.raises(APIError):
        decode_access_token(token, config=config)
