"""Pydantic schemas for the comment API.

Request/Response models with validation for:
- Root comments and replies
- Listings, threads and hot lists
- Reports and moderation queue
- Sensitive words and fold rules
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from comment_engine.moderation.models import WordAction, WordLevel
from comment_engine.reports.rules import FoldRuleType

from .models import ContentKind, ReportReason, TargetType


# ==============================================================================
# Constants
# ==============================================================================
MAX_IMAGES = 9
MAX_MENTIONS = 20
MAX_BATCH = 100

# ==============================================================================
# Request Schemas
# ==============================================================================


class _ContentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Strip whitespace and validate content."""
        v = v.strip()
        if not v:
            msg = "Content cannot be empty"
            raise ValueError(msg)
        return v


class _NewCommentRequest(_ContentRequest):
    content_kind: ContentKind = ContentKind.TEXT
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES)
    mentioned_user_ids: list[int] = Field(
        default_factory=list, max_length=MAX_MENTIONS
    )


class CreateCommentRequest(_NewCommentRequest):
    """Request to post a root comment."""

    target_type: TargetType
    target_id: int = Field(..., gt=0)


class CreateReplyRequest(_NewCommentRequest):
    """Request to reply to a comment."""

    reply_to_comment_id: int | None = Field(None, gt=0)


class AuthorReplyRequest(_ContentRequest):
    """Owner addendum to a comment."""


class CreateReportRequest(BaseModel):
    """Request to report a comment."""

    reason: ReportReason
    description: str = Field("", max_length=500)


class HandleReportRequest(BaseModel):
    """Moderator decision on a report."""

    approved: bool
    result: str = Field("", max_length=500)


class BatchCommentsRequest(BaseModel):
    """Moderator bulk action."""

    comment_ids: list[int] = Field(..., min_length=1, max_length=MAX_BATCH)


class SensitiveWordRequest(BaseModel):
    """Add or update a sensitive word."""

    word: str = Field(..., min_length=1, max_length=100)
    level: WordLevel = WordLevel.NORMAL
    action: WordAction = WordAction.REPLACE
    replacement: str = Field("", max_length=100)

    @field_validator("word")
    @classmethod
    def validate_word(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Word cannot be empty"
            raise ValueError(msg)
        return v


class FoldRuleRequest(BaseModel):
    """Create or replace a fold rule."""

    name: str = Field(..., min_length=1, max_length=100)
    rule_type: FoldRuleType
    config: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


# ==============================================================================
# Response Schemas
# ==============================================================================


class AuthorResponse(BaseModel):
    """Comment author info."""

    id: int
    name: str
    avatar: str = ""


class CommentResponse(BaseModel):
    """Response for a single comment."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    target_type: int
    target_id: int
    author: AuthorResponse
    parent_id: int = 0
    root_id: int = 0
    reply_to_user_id: int | None = None
    reply_to_comment_id: int | None = None
    floor_number: int
    sub_floor_number: int = 0
    depth: int = 0
    reply_chain: list[int] = Field(default_factory=list)
    content: str
    content_kind: int = ContentKind.TEXT
    images: list[str] = Field(default_factory=list)
    status: int
    is_pinned: bool = False
    is_author: bool = False
    is_hot: bool = False
    is_featured: bool = False
    like_count: int = 0
    dislike_count: int = 0
    reply_count: int = 0
    total_reply_count: int = 0
    hot_score: float = 0.0
    audit_status: int
    risk_level: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_comment(cls, comment: Any) -> "CommentResponse":
        """Create response from Comment entity."""
        content = comment.content
        if comment.deleted_at is not None:
            content = "[Comentario removido]"

        return cls(
            id=comment.id,
            target_type=comment.target_type,
            target_id=comment.target_id,
            author=AuthorResponse(
                id=comment.user_id, name=comment.username, avatar=comment.avatar
            ),
            parent_id=comment.parent_id,
            root_id=comment.root_id,
            reply_to_user_id=comment.reply_to_user_id,
            reply_to_comment_id=comment.reply_to_comment_id,
            floor_number=comment.floor_number,
            sub_floor_number=comment.sub_floor_number,
            depth=comment.depth,
            reply_chain=list(comment.reply_chain),
            content=content,
            content_kind=comment.content_kind,
            images=list(comment.images),
            status=comment.status,
            is_pinned=comment.is_pinned,
            is_author=comment.is_author,
            is_hot=comment.is_hot,
            is_featured=comment.is_featured,
            like_count=comment.like_count,
            dislike_count=comment.dislike_count,
            reply_count=comment.reply_count,
            total_reply_count=comment.total_reply_count,
            hot_score=round(comment.hot_score, 4),
            audit_status=comment.audit_status,
            risk_level=comment.risk_level,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )


class CommentListResponse(BaseModel):
    """Paginated list of comments."""

    items: list[CommentResponse]
    total: int
    page: int
    size: int
    has_more: bool = False

    @classmethod
    def from_page(cls, page: Any) -> "CommentListResponse":
        return cls(
            items=[CommentResponse.from_comment(c) for c in page.items],
            total=page.total,
            page=page.page,
            size=page.size,
            has_more=page.has_more,
        )


class ThreadResponse(BaseModel):
    """Whole thread under a root comment."""

    root_id: int
    items: list[CommentResponse]


class HotCommentResponse(BaseModel):
    """Entry of a target's hot list."""

    model_config = ConfigDict(from_attributes=True)

    comment_id: int
    rank: int
    hot_score: float
    user_id: int
    username: str
    content: str
    like_count: int
    updated_at: datetime


class AuthorReplyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    comment_id: int
    author_id: int
    content: str
    created_at: datetime


class FloorBuildingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    target_type: int
    target_id: int
    user_id: int
    comment_ids: list[int]
    floor_count: int
    first_comment_at: datetime | None = None
    last_comment_at: datetime | None = None


class CommentStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    target_type: int
    target_id: int
    total_comments: int
    root_comments: int
    today_comments: int
    avg_content_length: float
    hot_comments: int
    last_comment_at: datetime | None = None


class UserCommentStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    total_comments: int
    total_likes: int
    total_replies: int
    avg_likes: float
    hot_comments: int
    pinned_comments: int
    featured_comments: int


class ReportResponse(BaseModel):
    """Response for a report."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    comment_id: int
    reporter_id: int
    reason: int
    description: str = ""
    status: int
    handler_id: int | None = None
    handled_at: datetime | None = None
    handle_result: str = ""
    created_at: datetime


class ReportOutcomeResponse(BaseModel):
    """Result of filing a report."""

    report: ReportResponse
    report_count: int
    folded: bool


class ReportListResponse(BaseModel):
    items: list[ReportResponse]
    page: int
    size: int


class SensitiveWordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    word: str
    level: int
    action: int
    replacement: str = ""
    enabled: bool = True


class FoldRuleResponse(BaseModel):
    name: str
    rule_type: int
    config: dict[str, Any]
    enabled: bool

    @classmethod
    def from_rule(cls, rule: Any) -> "FoldRuleResponse":
        return cls(
            name=rule.name,
            rule_type=int(rule.rule_type),
            config=json.loads(rule.config_json()),
            enabled=rule.enabled,
        )


class BatchResultResponse(BaseModel):
    requested: int
    affected: int


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str
