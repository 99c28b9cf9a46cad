"""Threaded comment module.

Provides the comment tree with:
- Floor and sub-floor numbering, reply chains and depth
- Moderated creation with an audit trail for rejected content
- Likes, dislikes, pins, featured comments and author replies
- In-memory and Cassandra stores

Note: Services and the router are not exported here to avoid circular
imports with the ranking and report modules. Import them from their modules.
"""

from .exceptions import (
    CommentError,
    ConflictError,
    ContentRejectedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from .models import (
    COMMENTS_TABLES_CQL,
    Comment,
    CommentReport,
    CommentStatus,
    CommentTarget,
    ReportReason,
    ReportStatus,
    TargetType,
)


__all__ = [
    "COMMENTS_TABLES_CQL",
    "Comment",
    "CommentError",
    "CommentReport",
    "CommentStatus",
    "CommentTarget",
    "ConflictError",
    "ContentRejectedError",
    "NotFoundError",
    "PermissionDeniedError",
    "ReportReason",
    "ReportStatus",
    "TargetType",
    "ValidationFailedError",
]
