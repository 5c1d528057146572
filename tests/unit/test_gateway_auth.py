"""Unit tests for rp_gateway: tokens, password hashing, schemas, UserService."""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from jose import jwt
from pydantic import ValidationError

from config.settings import settings
from src.rp_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    UsernameExistsError,
)
from src.rp_gateway.auth.dependencies import resolve_user_from_token
from src.rp_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.rp_gateway.auth.password import hash_password, verify_password
from src.rp_gateway.user.db_models import UserModel
from src.rp_gateway.user.schemas import RegisterRequest
from src.rp_gateway.user.service import UserService


def _make_user(is_active: bool = True, password: str = "Pass1word") -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = "alice"
    user.email = "alice@example.com"
    user.display_name = "Alice"
    user.password_hash = hash_password(password)
    user.credit_balance = settings.INITIAL_CREDITS
    user.is_active = is_active
    user.deleted_at = None
    return user


def _result(value: object) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestTokens:
    def test_access_token_claims(self) -> None:
        payload = jwt.get_unverified_claims(create_access_token("user-123"))
        assert payload["sub"] == "user-123"
        assert payload["type"] == "access"

    def test_refresh_token_decodes_as_refresh(self) -> None:
        payload = decode_token(create_refresh_token("user-abc"), expected_type="refresh")
        assert payload["sub"] == "user-abc"

    def test_refresh_token_rejected_as_access(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token(create_refresh_token("user-abc"), expected_type="access")

    def test_access_token_rejected_as_refresh(self) -> None:
        with pytest.raises(InvalidRefreshTokenError):
            decode_token(create_access_token("user-abc"), expected_type="refresh")

    def test_expired_access_token(self) -> None:
        with patch("src.rp_gateway.auth.jwt_handler._ACCESS_EXPIRE", timedelta(seconds=-1)):
            token = create_access_token("user-abc")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token, expected_type="access")

    def test_tampered_token(self) -> None:
        token = create_access_token("user-abc")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token[:-4] + "xxxx", expected_type="access")


class TestPasswordHashing:
    def test_verify_round_trip(self) -> None:
        hashed = hash_password("MySecret1")
        assert hashed != "MySecret1"
        assert verify_password("MySecret1", hashed) is True
        assert verify_password("WrongPass9", hashed) is False

    def test_random_salt(self) -> None:
        assert hash_password("MySecret1") != hash_password("MySecret1")

    def test_long_multibyte_password(self) -> None:
        # 100 characters but 197 bytes in UTF-8
        plain = "Aa1" + "\u00e9" * 97
        hashed = hash_password(plain)
        assert verify_password(plain, hashed) is True

    def test_malformed_hash_is_rejected(self) -> None:
        assert verify_password("MySecret1", "not-a-bcrypt-hash") is False


class TestRegisterRequest:
    def test_valid(self) -> None:
        req = RegisterRequest(username="bob_1", email="bob@example.com", password="Secret123")
        assert req.display_name is None

    def test_password_needs_digit(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="bob", email="bob@example.com", password="NoDigitsHere")

    def test_username_pattern(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="bob smith", email="bob@example.com", password="Secret123")


class TestResolveUserFromToken:
    async def test_valid_token_returns_user(self) -> None:
        user = _make_user()
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_result(user))

        found = await resolve_user_from_token(create_access_token(str(user.id)), db)

        assert found is user

    async def test_garbage_token_returns_none(self) -> None:
        db = AsyncMock()
        assert await resolve_user_from_token("garbage", db) is None
        db.execute.assert_not_called()

    async def test_deleted_user_returns_none(self) -> None:
        user = _make_user()
        user.deleted_at = MagicMock()
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_result(user))

        assert await resolve_user_from_token(create_access_token(str(user.id)), db) is None


class TestUserService:
    async def test_duplicate_username(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_result(_make_user()))

        with pytest.raises(UsernameExistsError):
            await UserService().register("alice", "new@example.com", "Pass1word", db)

    async def test_duplicate_email(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=[_result(None), _result(_make_user())])

        with pytest.raises(EmailExistsError):
            await UserService().register("newuser", "alice@example.com", "Pass1word", db)

    async def test_register_grants_initial_credits(self) -> None:
        db = AsyncMock()
        db.add = MagicMock()
        db.execute = AsyncMock(side_effect=[_result(None), _result(None), MagicMock(), MagicMock()])

        async def _flush() -> None:
            db.add.call_args.args[0].id = uuid.uuid4()

        db.flush = AsyncMock(side_effect=_flush)

        user = await UserService().register("carol", "carol@example.com", "Pass1word", db)

        assert user.credit_balance == settings.INITIAL_CREDITS
        assert user.display_name == "carol"
        # two lookups, the settings row and the welcome transaction
        assert db.execute.await_count == 4

    async def test_login_wrong_password(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_result(_make_user(password="Other1pass")))

        with pytest.raises(InvalidCredentialsError):
            await UserService().login("alice", "Pass1word", db)

    async def test_login_disabled_account(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_result(_make_user(is_active=False)))

        with pytest.raises(AccountDisabledError):
            await UserService().login("alice", "Pass1word", db)

    async def test_login_returns_tokens(self) -> None:
        user = _make_user()
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_result(user))

        _, access, refresh = await UserService().login("alice", "Pass1word", db)

        assert decode_token(access, "access")["sub"] == str(user.id)
        assert decode_token(refresh, "refresh")["sub"] == str(user.id)

    async def test_refresh_issues_access_token(self) -> None:
        access = await UserService().refresh(create_refresh_token("user-9"))
        assert decode_token(access, "access")["sub"] == "user-9"
