"""Pydantic schemas for the comment API.

Request/Response models for:
- Comment creation
- Threaded comment pages (also the cached representation of a page)
- Comment counts
- Error envelopes
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to create a new comment.

    Content length and emptiness are checked by the service so that the
    same rules apply to every caller.
    """

    content: str
    parent_comment_id: int | None = None
    markdown_enabled: bool = True


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentAuthor(BaseModel):
    """Author information in comment response."""

    id: UUID
    name: str


class CommentResponse(BaseModel):
    """A comment and, recursively, its visible replies.

    ``replies`` is None (not an empty list) for a comment without replies.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    content_html: str
    author: CommentAuthor
    created_at: datetime
    parent_comment_id: int | None = None
    replies: list["CommentResponse"] | None = None


class CommentListResponse(BaseModel):
    """One page of root comments with the post's total comment count."""

    comments: list[CommentResponse]
    total_count: int


class CommentCountResponse(BaseModel):
    """Number of visible comments on a post."""

    post_id: int
    count: int


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    error: str
    code: str
    request_id: str | None = Field(None, description="Request correlation id")


# Cached page representation
CommentPage = TypeAdapter(list[CommentResponse])
