"""Comment write path and read facade.

Creating a comment runs a fixed sequence of mandatory steps (validation,
rate limit, post and parent checks, rendering, author lookup, transactional
insert); any failure there aborts the request. Everything after the commit is
optional: notifications run on the background dispatcher, and cache
maintenance is best-effort, logged and never raised.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from functools import partial
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from blogapi.core.cache import CacheBackend, CacheError
from blogapi.core.redis import COMMENT_STREAM, comment_count_key, comment_list_key
from blogapi.core.tasks import BackgroundDispatcher
from blogapi.notifications.service import NotificationService

from .exceptions import (
    CommentNotFoundError,
    CommentValidationError,
    DatabaseError,
    MaxNestingDepthError,
    ParentCommentNotFoundError,
    PermissionDeniedError,
    PostNotFoundError,
    RateLimitExceededError,
)
from .models import MAX_NESTING_DEPTH, Comment, NewComment
from .rate_limit import RateLimiter
from .rendering import ContentRenderer
from .repository import AuthorDirectory, CommentRepository, PostDirectory
from .schemas import CommentListResponse, CommentResponse, CreateCommentRequest
from .tree import CommentTreeBuilder


logger = structlog.get_logger(__name__)

COMMENT_CREATED = "comment_created"
COMMENT_DELETED = "comment_deleted"


@contextmanager
def _store_errors(operation: str, **context: object) -> Iterator[None]:
    """Translate store failures into ``DatabaseError``."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("comment_store_failed", operation=operation, error=str(e), **context)
        raise DatabaseError from e


class CommentService:
    """Service for comment creation, deletion and listing."""

    def __init__(
        self,
        repository: CommentRepository,
        posts: PostDirectory,
        authors: AuthorDirectory,
        renderer: ContentRenderer,
        cache: CacheBackend,
        tree: CommentTreeBuilder,
        rate_limiter: RateLimiter,
        notifications: NotificationService,
        dispatcher: BackgroundDispatcher,
        *,
        max_length: int = 5000,
        max_depth: int = MAX_NESTING_DEPTH,
        notify_post_author: bool = True,
    ) -> None:
        self.repository = repository
        self.posts = posts
        self.authors = authors
        self.renderer = renderer
        self.cache = cache
        self.tree = tree
        self.rate_limiter = rate_limiter
        self.notifications = notifications
        self.dispatcher = dispatcher
        self.max_length = max_length
        self.max_depth = max_depth
        self.notify_post_author = notify_post_author

    # ==========================================================================
    # Create
    # ==========================================================================

    def validate_content(self, content: str) -> str:
        """Return the stripped content or raise ``CommentValidationError``."""
        content = content.strip()
        if not content:
            msg = "Comment content cannot be empty"
            raise CommentValidationError(msg)
        if len(content) > self.max_length:
            msg = f"Comment content cannot exceed {self.max_length} characters"
            raise CommentValidationError(msg)
        return content

    async def create_comment(
        self,
        post_id: int,
        actor_id: UUID,
        request: CreateCommentRequest,
    ) -> CommentResponse:
        """Create a comment (root or reply) on a post.

        Args:
            post_id: Post being commented on
            actor_id: Authenticated author of the comment
            request: Content, optional parent and markdown flag

        Returns:
            The created comment, without replies

        Raises:
            CommentValidationError: Empty or too long content
            RateLimitExceededError: Actor commented too recently
            PostNotFoundError: Post missing or deleted
            ParentCommentNotFoundError: Parent missing, deleted or on another post
            MaxNestingDepthError: Reply would be nested too deep
            CacheUnavailableError: Rate limiter could not reach the cache
            DatabaseError: Store failure
        """
        content = self.validate_content(request.content)

        if await self.rate_limiter.check_and_set(actor_id):
            raise RateLimitExceededError

        with _store_errors("get_post", post_id=post_id):
            post_author_id = await self.posts.get_author_id(post_id)
        if post_author_id is None:
            raise PostNotFoundError

        parent: Comment | None = None
        nesting_level = 0
        if request.parent_comment_id is not None:
            with _store_errors("get_parent", post_id=post_id):
                parent = await self.repository.get(request.parent_comment_id)
            if parent is None or parent.post_id != post_id or parent.is_deleted:
                raise ParentCommentNotFoundError

            nesting_level = parent.nesting_level + 1
            if nesting_level > self.max_depth:
                raise MaxNestingDepthError

        content_html = self.renderer.render(content, request.markdown_enabled)

        with _store_errors("resolve_author", post_id=post_id):
            author = await self.authors.resolve(actor_id)

        with _store_errors("insert_comment", post_id=post_id):
            comment = await self.repository.insert(
                NewComment(
                    post_id=post_id,
                    user_id=actor_id,
                    parent_comment_id=request.parent_comment_id,
                    content=content,
                    content_html=content_html,
                    markdown_enabled=request.markdown_enabled,
                    nesting_level=nesting_level,
                )
            )

        logger.info(
            "comment_created",
            comment_id=comment.id,
            post_id=post_id,
            parent_comment_id=comment.parent_comment_id,
            nesting_level=comment.nesting_level,
        )

        self._schedule_notifications(comment, parent, post_author_id)
        await self._refresh_cache(comment, COMMENT_CREATED, count_delta=1)

        return CommentResponse(
            id=comment.id,
            content_html=comment.content_html,
            author=author,
            created_at=comment.created_at,
            parent_comment_id=comment.parent_comment_id,
            replies=None,
        )

    def _schedule_notifications(
        self,
        comment: Comment,
        parent: Comment | None,
        post_author_id: UUID,
    ) -> None:
        if not self.notifications.enabled:
            return

        if parent is not None:
            if parent.user_id != comment.user_id:
                self.dispatcher.submit(
                    "notify_comment_reply",
                    partial(self.notifications.notify_reply, parent.user_id, comment),
                )
        elif self.notify_post_author and post_author_id != comment.user_id:
            self.dispatcher.submit(
                "notify_new_comment",
                partial(self.notifications.notify_new_comment, post_author_id, comment),
            )

    # ==========================================================================
    # Delete
    # ==========================================================================

    async def delete_comment(
        self,
        comment_id: int,
        actor_id: UUID,
        is_privileged: bool = False,
    ) -> int:
        """Soft-delete a comment.

        Only the author or a privileged user may delete a comment.

        Returns:
            The id of the deleted comment

        Raises:
            CommentNotFoundError: Missing or already deleted
            PermissionDeniedError: Actor is neither author nor privileged
            DatabaseError: Store failure
        """
        with _store_errors("get_comment", comment_id=comment_id):
            comment = await self.repository.get(comment_id)
        if comment is None or comment.is_deleted:
            raise CommentNotFoundError

        if comment.user_id != actor_id and not is_privileged:
            logger.warning(
                "comment_delete_denied",
                comment_id=comment_id,
                actor_id=str(actor_id),
            )
            raise PermissionDeniedError

        with _store_errors("soft_delete", comment_id=comment_id):
            deleted = await self.repository.soft_delete(comment_id, actor_id)
        if deleted is None:
            # Deleted concurrently
            raise CommentNotFoundError

        logger.info(
            "comment_deleted",
            comment_id=comment_id,
            post_id=deleted.post_id,
            by_author=comment.user_id == actor_id,
        )

        await self._refresh_cache(deleted, COMMENT_DELETED, count_delta=-1)
        return deleted.id

    # ==========================================================================
    # Read
    # ==========================================================================

    async def get_post_comments(self, post_id: int, page: int = 1) -> CommentListResponse:
        """One page of threaded comments with the post's total count.

        A failing count is reported as 0 rather than failing the page.
        """
        comments = await self.tree.get_comments(post_id, page)

        try:
            total_count = await self.get_comment_count(post_id)
        except DatabaseError:
            logger.warning("comment_count_unavailable", post_id=post_id)
            total_count = 0

        return CommentListResponse(comments=comments, total_count=total_count)

    async def get_comment_count(self, post_id: int) -> int:
        return await self.tree.count(post_id)

    # ==========================================================================
    # Cache maintenance
    # ==========================================================================

    async def _refresh_cache(self, comment: Comment, event: str, count_delta: int) -> None:
        """Invalidate the post's cached page, adjust its count, record the change.

        The count is only adjusted when already cached, in one atomic step, so a
        missing or expired key is recomputed from the store on the next read.
        """
        post_id = comment.post_id

        try:
            await self.cache.delete(comment_list_key(post_id))
        except CacheError as e:
            logger.warning("comment_cache_invalidate_failed", post_id=post_id, error=str(e))

        count_key = comment_count_key(post_id)
        try:
            await self.cache.increment_if_exists(count_key, count_delta)
        except CacheError as e:
            logger.warning("comment_count_update_failed", post_id=post_id, error=str(e))

        fields = {
            "event": event,
            "post_id": str(post_id),
            "comment_id": str(comment.id),
            "parent_id": (
                str(comment.parent_comment_id)
                if comment.parent_comment_id is not None
                else "null"
            ),
        }
        try:
            await self.cache.append_stream(COMMENT_STREAM, fields)
        except CacheError as e:
            logger.warning(
                "comment_stream_append_failed",
                post_id=post_id,
                comment_event=event,
                error=str(e),
            )
