"""Comment core errors.

Every error carries a client-facing ``message`` and a stable ``code``;
the HTTP layer maps codes to status codes.
"""

from fastapi import status


class CommentError(Exception):
    """Base comment error."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentNotFoundError(CommentError):
    """Comment not found (or already deleted)."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Comment not found"):
        super().__init__(message, "NOT_FOUND")


class PostNotFoundError(CommentError):
    """Post not found or deleted."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Post not found"):
        super().__init__(message, "POST_NOT_FOUND")


class ParentCommentNotFoundError(CommentError):
    """Parent comment missing, deleted, or on another post."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Parent comment not found"):
        super().__init__(message, "PARENT_NOT_FOUND")


class PermissionDeniedError(CommentError):
    """Permission denied for operation."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not allowed to delete this comment"):
        super().__init__(message, "UNAUTHORIZED")


class RateLimitExceededError(CommentError):
    """Rate limit exceeded."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self, message: str = "Too many comments, please wait before posting again"
    ):
        super().__init__(message, "RATE_LIMITED")


class MaxNestingDepthError(CommentError):
    """Reply would exceed the maximum nesting depth."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Maximum comment nesting depth reached"):
        super().__init__(message, "MAX_DEPTH")


class CommentValidationError(CommentError):
    """Comment content rejected."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid comment content"):
        super().__init__(message, "VALIDATION_ERROR")


class DatabaseError(CommentError):
    """The comment store failed. The message never carries driver details."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, "INTERNAL_ERROR")


class CacheUnavailableError(CommentError):
    """A required cache operation failed."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, "INTERNAL_ERROR")
