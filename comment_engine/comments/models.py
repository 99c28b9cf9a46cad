"""Data model for threaded comments.

Cassandra table definitions for:
- Comments: main table keyed by id, plus per-target / parent / root / user indexes
- Comment counters: like, dislike and reply counts as COUNTER columns
- Interactions: one row per (comment, user, kind) to stop double likes
- Reports: user reports with a moderation queue by status
- Floor building, hot lists, fold rules, author replies, sensitive words

Architecture: comments form a tree stored as an arena by id
- parent_id is 0 for root comments, root_id is the id of the thread's root
- reply_chain is an immutable snapshot of ancestor ids (root first)
- floor_number numbers roots per target; sub_floor_number numbers replies per parent
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any


class TargetType(IntEnum):
    """Kind of object a comment thread hangs off."""

    ARTICLE = 1
    VIDEO = 2
    QA = 3
    POST = 4


class ContentKind(IntEnum):
    """Comment content kind."""

    TEXT = 1
    IMAGE = 2
    EMOTICON = 3


class CommentStatus(IntEnum):
    """Visibility state of a comment."""

    NORMAL = 1
    AUDITING = 2
    DELETED = 3
    FOLDED = 4
    BLOCKED = 5


class InteractionKind(IntEnum):
    """User interaction with a comment."""

    LIKE = 1
    DISLIKE = 2


class ReportReason(IntEnum):
    """Reasons for reporting a comment."""

    SPAM = 1
    PORN = 2
    POLITICAL = 3
    ABUSE = 4
    FAKE_NEWS = 5


class ReportStatus(IntEnum):
    """Report moderation status."""

    PENDING = 0
    APPROVED = 1
    REJECTED = 2


COUNTER_FIELDS = ("like_count", "dislike_count", "reply_count", "total_reply_count")

# Statuses shown in listings
VISIBLE_STATUSES = frozenset({CommentStatus.NORMAL, CommentStatus.FOLDED})


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    id BIGINT PRIMARY KEY,
    target_type INT,
    target_id BIGINT,
    user_id BIGINT,
    username TEXT,
    avatar TEXT,
    parent_id BIGINT,
    root_id BIGINT,
    reply_to_user_id BIGINT,
    reply_to_comment_id BIGINT,
    floor_number INT,
    sub_floor_number INT,
    reply_chain LIST<BIGINT>,
    depth INT,
    content TEXT,
    content_kind INT,
    images LIST<TEXT>,
    mentioned_user_ids LIST<BIGINT>,
    status INT,
    is_pinned BOOLEAN,
    is_author BOOLEAN,
    is_hot BOOLEAN,
    is_featured BOOLEAN,
    hot_score DOUBLE,
    quality_score DOUBLE,
    audit_status INT,
    risk_level INT,
    audit_reason TEXT,
    ip TEXT,
    ip_location TEXT,
    device_type TEXT,
    user_agent TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    deleted_at TIMESTAMP
)
"""

# Counters live apart from the row so increments never overwrite each other
COMMENT_COUNTERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_counters (
    id BIGINT PRIMARY KEY,
    like_count COUNTER,
    dislike_count COUNTER,
    reply_count COUNTER,
    total_reply_count COUNTER
)
"""

COMMENTS_BY_TARGET_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_target (
    target_type INT,
    target_id BIGINT,
    comment_id BIGINT,
    parent_id BIGINT,
    floor_number INT,
    PRIMARY KEY ((target_type, target_id), comment_id)
)
"""

COMMENTS_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_parent (
    parent_id BIGINT,
    comment_id BIGINT,
    sub_floor_number INT,
    PRIMARY KEY ((parent_id), comment_id)
)
"""

COMMENTS_BY_ROOT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_root (
    root_id BIGINT,
    comment_id BIGINT,
    PRIMARY KEY ((root_id), comment_id)
)
"""

COMMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_user (
    user_id BIGINT,
    comment_id BIGINT,
    PRIMARY KEY ((user_id), comment_id)
) WITH CLUSTERING ORDER BY (comment_id DESC)
"""

# Single-partition registry of targets, walked by the hot ranking sweep
COMMENT_TARGETS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_targets (
    bucket INT,
    target_type INT,
    target_id BIGINT,
    PRIMARY KEY ((bucket), target_type, target_id)
)
"""

COMMENT_INTERACTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_interactions (
    comment_id BIGINT,
    user_id BIGINT,
    kind INT,
    created_at TIMESTAMP,
    PRIMARY KEY ((comment_id), user_id, kind)
)
"""

COMMENT_REPORTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reports (
    id BIGINT PRIMARY KEY,
    comment_id BIGINT,
    reporter_id BIGINT,
    reason INT,
    description TEXT,
    status INT,
    handler_id BIGINT,
    handled_at TIMESTAMP,
    handle_result TEXT,
    created_at TIMESTAMP
)
"""

COMMENT_REPORTS_BY_COMMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reports_by_comment (
    comment_id BIGINT,
    report_id BIGINT,
    PRIMARY KEY ((comment_id), report_id)
)
"""

COMMENT_REPORTS_BY_STATUS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reports_by_status (
    status INT,
    report_id BIGINT,
    PRIMARY KEY ((status), report_id)
) WITH CLUSTERING ORDER BY (report_id DESC)
"""

SENSITIVE_WORDS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.sensitive_words (
    word TEXT PRIMARY KEY,
    id BIGINT,
    level INT,
    action INT,
    replacement TEXT,
    enabled BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

FLOOR_BUILDINGS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_floor_buildings (
    target_type INT,
    target_id BIGINT,
    user_id BIGINT,
    comment_ids LIST<BIGINT>,
    floor_count INT,
    first_comment_at TIMESTAMP,
    last_comment_at TIMESTAMP,
    PRIMARY KEY ((target_type, target_id), user_id)
)
"""

HOT_LISTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_hot_lists (
    target_type INT,
    target_id BIGINT,
    rank INT,
    comment_id BIGINT,
    hot_score DOUBLE,
    user_id BIGINT,
    username TEXT,
    content TEXT,
    like_count BIGINT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((target_type, target_id), rank)
)
"""

FOLD_RULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_fold_rules (
    name TEXT PRIMARY KEY,
    rule_type INT,
    config TEXT,
    enabled BOOLEAN
)
"""

AUTHOR_REPLIES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_author_replies (
    comment_id BIGINT,
    id BIGINT,
    author_id BIGINT,
    content TEXT,
    created_at TIMESTAMP,
    PRIMARY KEY ((comment_id), id)
)
"""

# All table definitions for initialization
COMMENTS_TABLES_CQL = [
    COMMENTS_TABLE_CQL,
    COMMENT_COUNTERS_TABLE_CQL,
    COMMENTS_BY_TARGET_TABLE_CQL,
    COMMENTS_BY_PARENT_TABLE_CQL,
    COMMENTS_BY_ROOT_TABLE_CQL,
    COMMENTS_BY_USER_TABLE_CQL,
    COMMENT_TARGETS_TABLE_CQL,
    COMMENT_INTERACTIONS_TABLE_CQL,
    COMMENT_REPORTS_TABLE_CQL,
    COMMENT_REPORTS_BY_COMMENT_TABLE_CQL,
    COMMENT_REPORTS_BY_STATUS_TABLE_CQL,
    SENSITIVE_WORDS_TABLE_CQL,
    FLOOR_BUILDINGS_TABLE_CQL,
    HOT_LISTS_TABLE_CQL,
    FOLD_RULES_TABLE_CQL,
    AUTHOR_REPLIES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class CommentTarget:
    """The object a comment thread belongs to."""

    target_type: int
    target_id: int

    @property
    def key(self) -> str:
        return f"{int(self.target_type)}:{self.target_id}"


@dataclass
class Comment:
    """Comment entity with structural position, counters and audit state."""

    target_type: int
    target_id: int
    user_id: int
    content: str
    id: int = 0
    username: str = ""
    avatar: str = ""
    parent_id: int = 0
    root_id: int = 0
    reply_to_user_id: int | None = None
    reply_to_comment_id: int | None = None
    floor_number: int = 0
    sub_floor_number: int = 0
    reply_chain: list[int] = field(default_factory=list)
    depth: int = 0
    content_kind: int = ContentKind.TEXT
    images: list[str] = field(default_factory=list)
    mentioned_user_ids: list[int] = field(default_factory=list)
    status: int = CommentStatus.NORMAL
    is_pinned: bool = False
    is_author: bool = False
    is_hot: bool = False
    is_featured: bool = False
    like_count: int = 0
    dislike_count: int = 0
    reply_count: int = 0
    total_reply_count: int = 0
    hot_score: float = 0.0
    quality_score: float = 0.0
    audit_status: int = 0
    risk_level: int = 0
    audit_reason: str = ""
    ip: str = ""
    ip_location: str = ""
    device_type: str = ""
    user_agent: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id == 0

    @property
    def target(self) -> CommentTarget:
        return CommentTarget(self.target_type, self.target_id)

    @property
    def is_visible(self) -> bool:
        return self.status in VISIBLE_STATUSES

    @classmethod
    def from_row(cls, row: Any, counters: Any = None) -> "Comment":
        """Create Comment from a Cassandra row and its counter row."""
        return cls(
            id=row.id,
            target_type=row.target_type,
            target_id=row.target_id,
            user_id=row.user_id,
            username=row.username or "",
            avatar=row.avatar or "",
            parent_id=row.parent_id or 0,
            root_id=row.root_id or 0,
            reply_to_user_id=row.reply_to_user_id,
            reply_to_comment_id=row.reply_to_comment_id,
            floor_number=row.floor_number or 0,
            sub_floor_number=row.sub_floor_number or 0,
            reply_chain=list(row.reply_chain or []),
            depth=row.depth or 0,
            content=row.content or "",
            content_kind=row.content_kind or ContentKind.TEXT,
            images=list(row.images or []),
            mentioned_user_ids=list(row.mentioned_user_ids or []),
            status=row.status or CommentStatus.NORMAL,
            is_pinned=bool(row.is_pinned),
            is_author=bool(row.is_author),
            is_hot=bool(row.is_hot),
            is_featured=bool(row.is_featured),
            like_count=(counters.like_count or 0) if counters else 0,
            dislike_count=(counters.dislike_count or 0) if counters else 0,
            reply_count=(counters.reply_count or 0) if counters else 0,
            total_reply_count=(counters.total_reply_count or 0) if counters else 0,
            hot_score=row.hot_score or 0.0,
            quality_score=row.quality_score or 0.0,
            audit_status=row.audit_status or 0,
            risk_level=row.risk_level or 0,
            audit_reason=row.audit_reason or "",
            ip=row.ip or "",
            ip_location=row.ip_location or "",
            device_type=row.device_type or "",
            user_agent=row.user_agent or "",
            created_at=row.created_at,
            updated_at=row.updated_at or row.created_at,
            deleted_at=row.deleted_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "target_type": int(self.target_type),
            "target_id": self.target_id,
            "user_id": self.user_id,
            "username": self.username,
            "avatar": self.avatar,
            "parent_id": self.parent_id,
            "root_id": self.root_id,
            "reply_to_user_id": self.reply_to_user_id,
            "reply_to_comment_id": self.reply_to_comment_id,
            "floor_number": self.floor_number,
            "sub_floor_number": self.sub_floor_number,
            "reply_chain": list(self.reply_chain),
            "depth": self.depth,
            "content": self.content,
            "content_kind": int(self.content_kind),
            "images": list(self.images),
            "status": int(self.status),
            "is_pinned": self.is_pinned,
            "is_author": self.is_author,
            "is_hot": self.is_hot,
            "is_featured": self.is_featured,
            "like_count": self.like_count,
            "dislike_count": self.dislike_count,
            "reply_count": self.reply_count,
            "total_reply_count": self.total_reply_count,
            "hot_score": self.hot_score,
            "audit_status": int(self.audit_status),
            "risk_level": int(self.risk_level),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class CommentReport:
    """User report against a comment."""

    comment_id: int
    reporter_id: int
    reason: int
    description: str = ""
    id: int = 0
    status: int = ReportStatus.PENDING
    handler_id: int | None = None
    handled_at: datetime | None = None
    handle_result: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_pending(self) -> bool:
        return self.status == ReportStatus.PENDING

    @classmethod
    def from_row(cls, row: Any) -> "CommentReport":
        """Create CommentReport from Cassandra row."""
        return cls(
            id=row.id,
            comment_id=row.comment_id,
            reporter_id=row.reporter_id,
            reason=row.reason,
            description=row.description or "",
            status=row.status if row.status is not None else ReportStatus.PENDING,
            handler_id=row.handler_id,
            handled_at=row.handled_at,
            handle_result=row.handle_result or "",
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "comment_id": self.comment_id,
            "reporter_id": self.reporter_id,
            "reason": int(self.reason),
            "description": self.description,
            "status": int(self.status),
            "handler_id": self.handler_id,
            "handled_at": _iso(self.handled_at),
            "handle_result": self.handle_result,
            "created_at": _iso(self.created_at),
        }


@dataclass
class FloorBuildingRecord:
    """Consecutive posting by one user under one target."""

    target_type: int
    target_id: int
    user_id: int
    comment_ids: list[int] = field(default_factory=list)
    floor_count: int = 0
    first_comment_at: datetime | None = None
    last_comment_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "FloorBuildingRecord":
        return cls(
            target_type=row.target_type,
            target_id=row.target_id,
            user_id=row.user_id,
            comment_ids=list(row.comment_ids or []),
            floor_count=row.floor_count or 0,
            first_comment_at=row.first_comment_at,
            last_comment_at=row.last_comment_at,
        )


@dataclass
class HotListEntry:
    """One row of a target's top-K hot snapshot."""

    target_type: int
    target_id: int
    comment_id: int
    rank: int
    hot_score: float
    user_id: int = 0
    username: str = ""
    content: str = ""
    like_count: int = 0
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "HotListEntry":
        return cls(
            target_type=row.target_type,
            target_id=row.target_id,
            comment_id=row.comment_id,
            rank=row.rank,
            hot_score=row.hot_score or 0.0,
            user_id=row.user_id or 0,
            username=row.username or "",
            content=row.content or "",
            like_count=row.like_count or 0,
            updated_at=row.updated_at,
        )


@dataclass
class AuthorReply:
    """Addendum by the target owner attached to a comment."""

    comment_id: int
    author_id: int
    content: str
    id: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "AuthorReply":
        return cls(
            id=row.id,
            comment_id=row.comment_id,
            author_id=row.author_id,
            content=row.content or "",
            created_at=row.created_at,
        )


@dataclass
class CommentStats:
    """Aggregates for one target, computed on demand."""

    target_type: int
    target_id: int
    total_comments: int = 0
    root_comments: int = 0
    today_comments: int = 0
    avg_content_length: float = 0.0
    hot_comments: int = 0
    last_comment_at: datetime | None = None


@dataclass
class UserCommentStats:
    """Aggregates for one user, computed on demand."""

    user_id: int
    total_comments: int = 0
    total_likes: int = 0
    total_replies: int = 0
    avg_likes: float = 0.0
    hot_comments: int = 0
    pinned_comments: int = 0
    featured_comments: int = 0


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_report(
    comment_id: int,
    reporter_id: int,
    reason: int,
    description: str = "",
) -> CommentReport:
    """Create a new pending report."""
    return CommentReport(
        comment_id=comment_id,
        reporter_id=reporter_id,
        reason=int(reason),
        description=description,
        status=ReportStatus.PENDING,
        created_at=datetime.now(UTC),
    )
