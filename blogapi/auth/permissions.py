"""Role handling for blog users.

Roles are issued by the identity service inside the access token:
- ADMIN: Can moderate (delete) any comment
- AUTHOR: Writes posts
- ANALYST: Read access to analytics
- USER: Regular reader and commenter

Only ADMIN carries privileges inside the comment core.
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles as carried in the ``role`` token claim."""

    USER = "user"
    AUTHOR = "author"
    ADMIN = "admin"
    ANALYST = "analyst"


PRIVILEGED_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN})


def parse_role(value: object) -> UserRole:
    """Parse a role claim case-insensitively.

    Tokens may carry ``"Admin"`` as well as ``"admin"``.

    Raises:
        ValueError: If the claim is not a known role string
    """
    if value is None:
        return UserRole.USER
    if not isinstance(value, str):
        msg = f"Invalid role claim: {value!r}"
        raise ValueError(msg)
    return UserRole(value.lower())


def is_privileged(role: UserRole | str) -> bool:
    """Return True if the role may act on other users' comments.

    Examples:
        >>> is_privileged(UserRole.ADMIN)
        True
        >>> is_privileged("author")
        False
    """
    if isinstance(role, str) and not isinstance(role, UserRole):
        try:
            role = parse_role(role)
        except ValueError:
            return False
    return role in PRIVILEGED_ROLES
