"""Relational model of the blog's comment store.

SQLAlchemy Core table definitions for the tables the comment core reads
and writes. DDL and migrations are owned by the schema service; these
definitions must match it column for column.

Architecture: Adjacency List pattern for threaded comments
- parent_comment_id references the parent comment (NULL for root comments)
- nesting_level is stored on the row (0 for roots, parent + 1 for replies)
- Soft delete only: rows are flagged and their content replaced
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID as PG_UUID


DB_SCHEMA = "global"

# Soft-deleted rows keep their place in the tree with these markers
DELETED_CONTENT = "[deleted]"
DELETED_CONTENT_HTML = "<p>[deleted]</p>"

# Root comments sit at level 0; replies go at most this many levels deeper
MAX_NESTING_DEPTH = 3

metadata = MetaData(schema=DB_SCHEMA)


# ==============================================================================
# Table Definitions
# ==============================================================================

users_table = Table(
    "users",
    metadata,
    Column("id", PG_UUID(as_uuid=True), primary_key=True),
    Column("username", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("role", String(20), nullable=False, server_default="user"),
    Column(
        "created_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column(
        "updated_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
)

posts_table = Table(
    "posts",
    metadata,
    Column("id", BigInteger, primary_key=True),
    Column("title", String(255), nullable=False),
    Column("slug", String(255), nullable=False, unique=True),
    Column("user_id", PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False),
    Column("is_draft", Boolean, nullable=False, server_default="false"),
    Column("is_deleted", Boolean, nullable=False, server_default="false"),
    Column(
        "created_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
)

comments_table = Table(
    "comments",
    metadata,
    Column("id", BigInteger, primary_key=True, autoincrement=True),
    Column(
        "post_id",
        BigInteger,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False),
    Column("parent_comment_id", BigInteger, ForeignKey("comments.id"), nullable=True),
    Column("content", Text, nullable=False),
    Column("content_html", Text, nullable=False),
    Column("is_deleted", Boolean, nullable=False, server_default="false"),
    Column("deleted_by", PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=True),
    Column("deleted_at", TIMESTAMP(timezone=True), nullable=True),
    Column("markdown_enabled", Boolean, nullable=False, server_default="true"),
    Column(
        "created_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column(
        "updated_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column("nesting_level", Integer, nullable=False, server_default="0"),
)

Index("idx_comments_post_id", comments_table.c.post_id)
Index("idx_comments_user_id", comments_table.c.user_id)
Index("idx_comments_parent_id", comments_table.c.parent_comment_id)
Index("idx_comments_created_at", comments_table.c.created_at.desc())


# ==============================================================================
# Data Classes
# ==============================================================================


@dataclass
class Comment:
    """Comment row."""

    id: int
    post_id: int
    user_id: UUID
    parent_comment_id: int | None
    content: str
    content_html: str
    is_deleted: bool
    deleted_by: UUID | None
    deleted_at: datetime | None
    markdown_enabled: bool
    nesting_level: int
    created_at: datetime
    updated_at: datetime

    @property
    def is_root(self) -> bool:
        return self.parent_comment_id is None

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from a ``comments`` row."""
        return cls(
            id=row.id,
            post_id=row.post_id,
            user_id=row.user_id,
            parent_comment_id=row.parent_comment_id,
            content=row.content,
            content_html=row.content_html,
            is_deleted=row.is_deleted or False,
            deleted_by=row.deleted_by,
            deleted_at=row.deleted_at,
            markdown_enabled=row.markdown_enabled,
            nesting_level=row.nesting_level or 0,
            created_at=row.created_at,
            updated_at=row.updated_at or row.created_at,
        )


@dataclass
class NewComment:
    """Values of a comment about to be inserted."""

    post_id: int
    user_id: UUID
    parent_comment_id: int | None
    content: str
    content_html: str
    markdown_enabled: bool
    nesting_level: int

    def to_values(self) -> dict[str, Any]:
        return {
            "post_id": self.post_id,
            "user_id": self.user_id,
            "parent_comment_id": self.parent_comment_id,
            "content": self.content,
            "content_html": self.content_html,
            "markdown_enabled": self.markdown_enabled,
            "nesting_level": self.nesting_level,
        }
