"""Comment system module.

Provides the threaded comment core:
- Threaded comments (parent/child) with bounded nesting
- Per-user rate limiting
- Cached comment pages and counts
- Reply and new-comment notifications

Note: Router is not exported here to avoid circular imports.
Import directly from blogapi.comments.router when needed.
"""

from .exceptions import CommentError
from .models import MAX_NESTING_DEPTH, Comment, NewComment
from .rate_limit import RateLimiter
from .service import CommentService
from .tree import CommentTreeBuilder


__all__ = [
    "MAX_NESTING_DEPTH",
    "Comment",
    "CommentError",
    "CommentService",
    "CommentTreeBuilder",
    "NewComment",
    "RateLimiter",
]
