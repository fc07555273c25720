"""Store collaborators used by the comment core.

Abstract interfaces plus their PostgreSQL implementations (SQLAlchemy Core
over asyncpg). Every method opens its own session from the factory; the
insert and the soft delete run inside a transaction.

Implementations raise ``sqlalchemy.exc.SQLAlchemyError`` on failure; the
callers translate that into ``DatabaseError``.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import ColumnElement, FromClause, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import (
    DELETED_CONTENT,
    DELETED_CONTENT_HTML,
    MAX_NESTING_DEPTH,
    Comment,
    NewComment,
    comments_table,
    posts_table,
    users_table,
)
from .schemas import CommentAuthor


logger = structlog.get_logger(__name__)

UNKNOWN_AUTHOR_NAME = "unknown"


def has_visible_replies(
    parent: FromClause, max_depth: int, depth: int = 1
) -> ColumnElement[bool]:
    """EXISTS clause matching when ``parent`` has a non-deleted descendant.

    Descendants are looked up at most ``max_depth`` levels below ``parent``,
    the same depth the tree is materialized to.
    """
    reply = comments_table.alias(f"reply_{depth}")
    visible: ColumnElement[bool] = reply.c.is_deleted.is_(False)
    if depth < max_depth:
        visible = or_(visible, has_visible_replies(reply, max_depth, depth + 1))
    return exists().where(reply.c.parent_comment_id == parent.c.id, visible)


# ==============================================================================
# Interfaces
# ==============================================================================


class CommentRepository(ABC):
    """Read/write access to comment rows."""

    @abstractmethod
    async def get(self, comment_id: int) -> Comment | None:
        """Find a comment by ID, deleted or not."""

    @abstractmethod
    async def insert(self, comment: NewComment) -> Comment:
        """Insert a comment in its own transaction and return the stored row."""

    @abstractmethod
    async def find_roots(self, post_id: int, limit: int, offset: int) -> list[Comment]:
        """Root comments of a post, newest first.

        Deleted roots are included only while a non-deleted reply sits
        somewhere below them, so those replies remain reachable through
        paging. A root whose whole thread is deleted takes no page slot.
        """

    @abstractmethod
    async def find_replies(self, parent_id: int) -> list[Comment]:
        """Direct replies of a comment, oldest first, deleted ones included."""

    @abstractmethod
    async def soft_delete(self, comment_id: int, deleted_by: UUID) -> Comment | None:
        """Flag a live comment as deleted.

        Returns:
            The updated row, or None if the comment is missing or already deleted
        """

    @abstractmethod
    async def count_by_post(self, post_id: int) -> int:
        """Count non-deleted comments of a post."""


class PostDirectory(ABC):
    """Lookup of the posts comments attach to."""

    @abstractmethod
    async def get_author_id(self, post_id: int) -> UUID | None:
        """Author of a live post, or None if the post is missing or deleted."""

    async def exists(self, post_id: int) -> bool:
        return await self.get_author_id(post_id) is not None


class AuthorDirectory(ABC):
    """Resolves user ids to the author shown next to a comment."""

    @abstractmethod
    async def resolve(self, user_id: UUID) -> CommentAuthor:
        """Return the display identity of ``user_id``."""


# ==============================================================================
# PostgreSQL implementations
# ==============================================================================


class SqlCommentRepository(CommentRepository):
    """PostgreSQL implementation of CommentRepository."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_depth: int = MAX_NESTING_DEPTH,
    ) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory
            max_depth: Deepest reply level shown under a root
        """
        self.session_factory = session_factory
        self.max_depth = max_depth

    async def get(self, comment_id: int) -> Comment | None:
        stmt = select(comments_table).where(comments_table.c.id == comment_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            row = result.fetchone()
        return Comment.from_row(row) if row else None

    async def insert(self, comment: NewComment) -> Comment:
        now = datetime.now(UTC)
        stmt = (
            comments_table.insert()
            .values(
                **comment.to_values(),
                is_deleted=False,
                created_at=now,
                updated_at=now,
            )
            .returning(comments_table)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)
            row = result.one()
        return Comment.from_row(row)

    async def find_roots(self, post_id: int, limit: int, offset: int) -> list[Comment]:
        visible: ColumnElement[bool] = comments_table.c.is_deleted.is_(False)
        if self.max_depth > 0:
            visible = or_(visible, has_visible_replies(comments_table, self.max_depth))

        stmt = (
            select(comments_table)
            .where(comments_table.c.post_id == post_id)
            .where(comments_table.c.parent_comment_id.is_(None))
            .where(visible)
            .order_by(comments_table.c.created_at.desc(), comments_table.c.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.fetchall()
        return [Comment.from_row(row) for row in rows]

    async def find_replies(self, parent_id: int) -> list[Comment]:
        stmt = (
            select(comments_table)
            .where(comments_table.c.parent_comment_id == parent_id)
            .order_by(comments_table.c.created_at, comments_table.c.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.fetchall()
        return [Comment.from_row(row) for row in rows]

    async def soft_delete(self, comment_id: int, deleted_by: UUID) -> Comment | None:
        now = datetime.now(UTC)
        stmt = (
            update(comments_table)
            .where(comments_table.c.id == comment_id)
            .where(comments_table.c.is_deleted.is_(False))
            .values(
                is_deleted=True,
                content=DELETED_CONTENT,
                content_html=DELETED_CONTENT_HTML,
                deleted_by=deleted_by,
                deleted_at=now,
                updated_at=now,
            )
            .returning(comments_table)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)
            row = result.fetchone()
        return Comment.from_row(row) if row else None

    async def count_by_post(self, post_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(comments_table)
            .where(comments_table.c.post_id == post_id)
            .where(comments_table.c.is_deleted.is_(False))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0


class SqlPostDirectory(PostDirectory):
    """PostgreSQL implementation of PostDirectory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_author_id(self, post_id: int) -> UUID | None:
        stmt = (
            select(posts_table.c.user_id)
            .where(posts_table.c.id == post_id)
            .where(posts_table.c.is_deleted.is_(False))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()


class SqlAuthorDirectory(AuthorDirectory):
    """PostgreSQL implementation of AuthorDirectory.

    Users that no longer exist are shown as ``unknown``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def resolve(self, user_id: UUID) -> CommentAuthor:
        stmt = select(users_table.c.id, users_table.c.username.label("name")).where(
            users_table.c.id == user_id
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            row = result.fetchone()

        if row is None:
            logger.warning("comment_author_not_found", author_id=str(user_id))
            return CommentAuthor(id=user_id, name=UNKNOWN_AUTHOR_NAME)

        return CommentAuthor(id=row.id, name=row.name)
