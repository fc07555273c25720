"""Access token handling.

Tokens are issued by the identity service; this module only creates them
for local tooling and tests, and validates them on every request:
- JWT signature and expiration (python-jose)
- Token type separation (refresh tokens are rejected)
- ``sub`` must be a user UUID and ``role`` a known role
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from blogapi.auth.permissions import UserRole, is_privileged, parse_role
from blogapi.config.settings import get_settings


class AuthenticationError(Exception):
    """Raised when a token cannot be turned into an authenticated user."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """Identity extracted from a validated access token."""

    id: UUID
    role: UserRole

    @property
    def is_privileged(self) -> bool:
        return is_privileged(self.role)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        data: Payload data (typically {"sub": user_id, "role": role})
        expires_delta: Token lifetime (default from settings)

    Returns:
        Encoded JWT string

    Token payload includes:
        - All provided data
        - exp: Expiration timestamp
        - iat: Issued at timestamp
        - type: "access" (for validation)
    """
    settings = get_settings()

    to_encode = data.copy()
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)
    )

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates:
    - JWT signature
    - Expiration time
    - Token type is "access" (tokens without a type claim are accepted)

    Args:
        token: JWT string

    Returns:
        Decoded payload dictionary

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type", "access") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    return payload


def authenticate_token(token: str | None) -> AuthenticatedUser:
    """Validate a token and return the user it identifies.

    Raises:
        AuthenticationError: With a client-facing message
    """
    if not token:
        msg = "Missing authentication token"
        raise AuthenticationError(msg)

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        msg = "Invalid or expired token"
        raise AuthenticationError(msg) from e

    try:
        user_id = UUID(str(payload["sub"]))
        role = parse_role(payload.get("role"))
    except (KeyError, ValueError) as e:
        msg = "Invalid token claims"
        raise AuthenticationError(msg) from e

    return AuthenticatedUser(id=user_id, role=role)
