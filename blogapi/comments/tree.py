"""Threaded comment retrieval.

A post's comments are served as pages of root comments, newest first,
each carrying its replies (oldest first) down to the maximum nesting
depth. The first page of every post is cached as JSON under
``comments:post:{post_id}``; later pages always come from the store.

Soft-deleted comments never appear. Their visible replies are lifted into
the position the deleted comment would have occupied.
"""

from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from blogapi.core.cache import CacheBackend, CacheError
from blogapi.core.redis import comment_count_key, comment_list_key

from .exceptions import DatabaseError
from .models import MAX_NESTING_DEPTH, Comment
from .repository import AuthorDirectory, CommentRepository
from .schemas import CommentAuthor, CommentPage, CommentResponse


logger = structlog.get_logger(__name__)


class CommentTreeBuilder:
    """Builds comment trees from the store, with a cache in front."""

    def __init__(
        self,
        repository: CommentRepository,
        authors: AuthorDirectory,
        cache: CacheBackend,
        *,
        page_size: int = 20,
        max_depth: int = MAX_NESTING_DEPTH,
        list_ttl: int = 3600,
        count_ttl: int = 3600,
    ) -> None:
        self.repository = repository
        self.authors = authors
        self.cache = cache
        self.page_size = page_size
        self.max_depth = max_depth
        self.list_ttl = list_ttl
        self.count_ttl = count_ttl

    # ==========================================================================
    # Pages
    # ==========================================================================

    async def get_comments(self, post_id: int, page: int = 1) -> list[CommentResponse]:
        """Return one page of threaded comments for a post.

        Args:
            post_id: Post whose comments are listed
            page: 1-based page number

        Raises:
            DatabaseError: If the store fails; nothing is cached in that case
        """
        page = max(page, 1)

        if page == 1:
            cached = await self._get_cached_page(post_id)
            if cached is not None:
                return cached

        offset = (page - 1) * self.page_size
        try:
            roots = await self.repository.find_roots(post_id, self.page_size, offset)
            authors: dict[UUID, CommentAuthor] = {}
            nodes: list[CommentResponse] = []
            for root in roots:
                nodes.extend(await self._build(root, 0, authors))
        except SQLAlchemyError as e:
            logger.error(
                "comment_tree_load_failed",
                post_id=post_id,
                page=page,
                error=str(e),
            )
            raise DatabaseError from e

        if page == 1:
            await self._cache_page(post_id, nodes)

        return nodes

    async def _build(
        self,
        comment: Comment,
        depth: int,
        authors: dict[UUID, CommentAuthor],
    ) -> list[CommentResponse]:
        """Materialize ``comment`` at ``depth``.

        Returns the comment as a single node, or its visible replies when the
        comment itself is deleted.
        """
        replies: list[CommentResponse] = []
        if depth < self.max_depth:
            for child in await self.repository.find_replies(comment.id):
                replies.extend(await self._build(child, depth + 1, authors))

        if comment.is_deleted:
            return replies

        author = authors.get(comment.user_id)
        if author is None:
            author = await self.authors.resolve(comment.user_id)
            authors[comment.user_id] = author

        return [
            CommentResponse(
                id=comment.id,
                content_html=comment.content_html,
                author=author,
                created_at=comment.created_at,
                parent_comment_id=comment.parent_comment_id,
                replies=replies or None,
            )
        ]

    async def _get_cached_page(self, post_id: int) -> list[CommentResponse] | None:
        key = comment_list_key(post_id)
        try:
            cached = await self.cache.get(key)
            if cached is None:
                return None
            return CommentPage.validate_json(cached)
        except CacheError as e:
            logger.warning("comment_cache_read_failed", post_id=post_id, error=str(e))
        except ValidationError as e:
            logger.warning(
                "comment_cache_corrupt",
                post_id=post_id,
                error_count=e.error_count(),
            )
        return None

    async def _cache_page(self, post_id: int, nodes: list[CommentResponse]) -> None:
        key = comment_list_key(post_id)
        try:
            await self.cache.set_with_ttl(
                key, CommentPage.dump_json(nodes).decode(), self.list_ttl
            )
        except CacheError as e:
            logger.warning("comment_cache_write_failed", post_id=post_id, error=str(e))

    # ==========================================================================
    # Counts
    # ==========================================================================

    async def count(self, post_id: int) -> int:
        """Number of non-deleted comments on a post (cached).

        Raises:
            DatabaseError: If the cache misses and the store fails
        """
        key = comment_count_key(post_id)
        try:
            cached = await self.cache.get(key)
        except CacheError as e:
            logger.warning("comment_count_cache_read_failed", post_id=post_id, error=str(e))
            cached = None

        if cached is not None:
            try:
                return int(cached)
            except ValueError:
                logger.warning("comment_count_cache_corrupt", post_id=post_id)

        try:
            total = await self.repository.count_by_post(post_id)
        except SQLAlchemyError as e:
            logger.error("comment_count_failed", post_id=post_id, error=str(e))
            raise DatabaseError from e

        try:
            await self.cache.set_with_ttl(key, str(total), self.count_ttl)
        except CacheError as e:
            logger.warning("comment_count_cache_write_failed", post_id=post_id, error=str(e))

        return total
