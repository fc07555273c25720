"""Comment API endpoints.

Provides routes for:
- Creating comments and replies
- Listing a post's threaded comments
- Counting a post's comments
- Deleting comments (author or admin)

Errors raised by the service are rendered by the application's
``CommentError`` handler.
"""

from fastapi import APIRouter, Query, Response, status

from blogapi.auth.dependencies import CurrentUser

from .dependencies import CommentServiceDep
from .schemas import (
    CommentCountResponse,
    CommentListResponse,
    CommentResponse,
    CreateCommentRequest,
    ErrorResponse,
)


router = APIRouter(prefix="/api", tags=["comments"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERROR_RESPONSES, 429: {"model": ErrorResponse}},
    summary="Create comment",
)
async def create_comment(
    post_id: int,
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentResponse:
    """Create a comment on a post, or a reply when ``parent_comment_id`` is set.

    Limited to one comment per 100 seconds per user. Replies can be nested
    at most three levels deep.
    """
    return await comment_service.create_comment(post_id, user.id, data)


@router.get(
    "/posts/{post_id}/comments",
    response_model=CommentListResponse,
    responses=_ERROR_RESPONSES,
    summary="List comments",
)
async def list_comments(
    post_id: int,
    comment_service: CommentServiceDep,
    page: int = Query(1, ge=1, description="1-based page of root comments"),
) -> CommentListResponse:
    """Get a page of root comments (newest first) with their replies."""
    return await comment_service.get_post_comments(post_id, page)


@router.get(
    "/posts/{post_id}/comments/count",
    response_model=CommentCountResponse,
    responses=_ERROR_RESPONSES,
    summary="Count comments",
)
async def count_comments(
    post_id: int,
    comment_service: CommentServiceDep,
) -> CommentCountResponse:
    count = await comment_service.get_comment_count(post_id)
    return CommentCountResponse(post_id=post_id, count=count)


@router.delete(
    "/comments/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_ERROR_RESPONSES, 403: {"model": ErrorResponse}},
    summary="Delete comment",
)
async def delete_comment(
    comment_id: int,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> Response:
    """Soft-delete a comment. Authors can delete their own, admins any."""
    await comment_service.delete_comment(
        comment_id,
        actor_id=user.id,
        is_privileged=user.is_privileged,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
