"""Tests for auth security functions."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from blogapi.auth.permissions import UserRole
from blogapi.auth.security import (
    AuthenticationError,
    authenticate_token,
    create_access_token,
    decode_access_token,
)
from blogapi.config import get_settings


def _encode(payload: dict) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_create_access_token(self) -> None:
        """Should create valid access token."""
        token = create_access_token({"sub": str(uuid4()), "role": UserRole.USER.value})
        assert token is not None
        assert len(token) > 0

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        user_id = uuid4()
        token = create_access_token(
            {"sub": str(user_id), "role": UserRole.AUTHOR.value}
        )
        payload = decode_access_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["role"] == UserRole.AUTHOR.value
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        token = create_access_token(
            {"sub": str(uuid4())}, expires_delta=timedelta(seconds=-1)
        )

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        """Should raise JWTError for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        token = _encode({"sub": str(uuid4()), "type": "refresh"})

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_token_without_type(self) -> None:
        """Tokens issued without a type claim are access tokens."""
        user_id = uuid4()
        payload = decode_access_token(_encode({"sub": str(user_id)}))

        assert payload["sub"] == str(user_id)

    def test_decode_token_wrong_secret(self) -> None:
        """Tokens signed with another key are rejected."""
        token = jwt.encode({"sub": str(uuid4())}, "another-secret", algorithm="HS256")

        with pytest.raises(JWTError):
            decode_access_token(token)


class TestAuthenticateToken:
    """Tests for authenticate_token."""

    def test_authenticated_user(self) -> None:
        user_id = uuid4()
        user = authenticate_token(create_access_token({"sub": str(user_id)}))

        assert user.id == user_id
        assert user.role == UserRole.USER
        assert user.is_privileged is False

    def test_admin_role_any_case(self) -> None:
        user = authenticate_token(
            create_access_token({"sub": str(uuid4()), "role": "Admin"})
        )

        assert user.role == UserRole.ADMIN
        assert user.is_privileged is True

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token) -> None:
        with pytest.raises(AuthenticationError, match="Missing authentication token"):
            authenticate_token(token)

    def test_invalid_token(self) -> None:
        with pytest.raises(AuthenticationError, match="Invalid or expired token"):
            authenticate_token("invalid.token.here")

    @pytest.mark.parametrize(
        "claims",
        [
            {},
            {"sub": "not-a-uuid"},
            {"sub": "00000000-0000-0000-0000-000000000001", "role": "superuser"},
            {"sub": "00000000-0000-0000-0000-000000000001", "role": 5},
            {"sub": "00000000-0000-0000-0000-000000000001", "role": ["admin"]},
        ],
    )
    def test_invalid_claims(self, claims) -> None:
        with pytest.raises(AuthenticationError, match="Invalid token claims"):
            authenticate_token(create_access_token(claims))


class TestTokenUniqueness:
    """Tests for token uniqueness."""

    def test_access_tokens_unique_different_users(self) -> None:
        """Access tokens for different users are unique."""
        token1 = create_access_token({"sub": str(uuid4())})
        token2 = create_access_token({"sub": str(uuid4())})
        assert token1 != token2
