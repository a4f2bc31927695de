"""Tests for bearer token verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from roles_api.core import config
from roles_api.features.users.auth import verify_jwt_token


def make_token(secret: str = "secret", **claims) -> str:
    claims.setdefault("sub", "alice@example.com")
    return jwt.encode(claims, secret, algorithm="HS256")


class TestVerifyJwtToken:

    def test_verified_with_secret(self, monkeypatch):
        monkeypatch.setattr(config, "JWT_SECRET", "secret")

        payload = verify_jwt_token(make_token())

        assert payload["sub"] == "alice@example.com"

    def test_wrong_secret(self, monkeypatch):
        monkeypatch.setattr(config, "JWT_SECRET", "secret")

        with pytest.raises(HTTPException) as exc_info:
            verify_jwt_token(make_token(secret="not-the-secret"))

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    def test_without_secret_only_expiry_is_checked(self, monkeypatch):
        monkeypatch.setattr(config, "JWT_SECRET", None)

        payload = verify_jwt_token(make_token(secret="anything"))

        assert payload["sub"] == "alice@example.com"

    def test_expired(self, monkeypatch):
        monkeypatch.setattr(config, "JWT_SECRET", None)
        token = make_token(exp=datetime.now(timezone.utc) - timedelta(minutes=1))

        with pytest.raises(HTTPException) as exc_info:
            verify_jwt_token(token)

        assert exc_info.value.detail == "Token has expired"

    def test_garbage(self, monkeypatch):
        monkeypatch.setattr(config, "JWT_SECRET", None)

        with pytest.raises(HTTPException) as exc_info:
            verify_jwt_token("not-a-jwt")

        assert exc_info.value.status_code == 401
