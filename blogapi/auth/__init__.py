"""Authentication collaborator: access token validation and roles."""

from blogapi.auth.dependencies import CurrentUser, get_current_user
from blogapi.auth.permissions import UserRole, is_privileged
from blogapi.auth.security import (
    AuthenticatedUser,
    AuthenticationError,
    authenticate_token,
    create_access_token,
    decode_access_token,
)


__all__ = [
    "AuthenticatedUser",
    "AuthenticationError",
    "CurrentUser",
    "UserRole",
    "authenticate_token",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "is_privileged",
]
