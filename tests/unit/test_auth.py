"""Unit tests for authentication functions."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from jose import jwt

from common.auth import (
    authenticate_user,
    create_access_token,
    decode_token,
    get_password_hash,
    try_decode_token,
    verify_password,
)
from common.config import get_settings
from common.dependencies import Identity, ensure_can_modify
from common.exceptions import AuthorizationError
from common.models import Booking, RoleEnum, User

settings = get_settings()


class TestPasswordHashing:
    def test_password_hash_and_verify(self):
        password = "MySecurePassword123!"
        hashed = get_password_hash(password)

        assert hashed != password
        assert verify_password(password, hashed) is True
        assert verify_password("WrongPassword", hashed) is False


class TestJWTTokens:
    def test_create_access_token(self):
        token = create_access_token({"sub": "testuser", "role": "admin"})

        decoded = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        assert decoded["sub"] == "testuser"
        assert decoded["role"] == "admin"
        assert decoded["exp"] > datetime.now(timezone.utc).timestamp()

    def test_decode_token_invalid(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_token("invalid.token.here")

        assert exc_info.value.status_code == 401

    def test_try_decode_token_treats_bad_tokens_as_guest(self):
        expired = create_access_token({"sub": "testuser"}, timedelta(hours=-1))

        assert try_decode_token(None) is None
        assert try_decode_token("") is None
        assert try_decode_token("garbage") is None
        assert try_decode_token(expired) is None

    def test_try_decode_token_valid(self):
        token = create_access_token({"sub": "testuser", "role": "regular"})

        assert try_decode_token(token)["sub"] == "testuser"


class TestUserAuthentication:
    def _user(self, password: str) -> User:
        return User(
            id=1,
            username="testuser",
            email="test@example.com",
            name="Test User",
            role=RoleEnum.REGULAR,
            hashed_password=get_password_hash(password),
        )

    def test_authenticate_user_success(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = self._user("TestPass123")

        result = authenticate_user(mock_db, "testuser", "TestPass123")

        assert result is not None
        assert result.username == "testuser"

    def test_authenticate_user_wrong_password(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = self._user("CorrectPassword")

        assert authenticate_user(mock_db, "testuser", "WrongPassword") is None

    def test_authenticate_user_not_found(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = None

        assert authenticate_user(mock_db, "nonexistent", "anypassword") is None


class TestOwnerOrAdmin:
    def test_owner_may_modify(self):
        ensure_can_modify(Identity(principal_id=3, role=RoleEnum.REGULAR, username="u"), Booking(created_by=3))

    def test_admin_may_modify_anything(self):
        admin = Identity(principal_id=1, role=RoleEnum.ADMIN, username="admin")
        ensure_can_modify(admin, Booking(created_by=3))
        ensure_can_modify(admin, Booking(created_by=None))

    @pytest.mark.parametrize("owner", [4, None])
    def test_others_are_rejected(self, owner):
        with pytest.raises(AuthorizationError):
            ensure_can_modify(Identity(principal_id=3, role=RoleEnum.REGULAR, username="u"), Booking(created_by=owner))
