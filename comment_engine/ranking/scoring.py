"""Time-decayed comment popularity and per-target hot snapshots."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from comment_engine.comments.models import (
    Comment,
    CommentStatus,
    CommentTarget,
    HotListEntry,
)


if TYPE_CHECKING:
    from comment_engine.comments.store import CommentStore


logger = structlog.get_logger(__name__)

LIKE_WEIGHT = 0.6
DISLIKE_WEIGHT = 0.1
REPLY_WEIGHT = 0.3
DECAY_HOURS = 24.0
DECAY_SCALE = 10.0
POPULAR_LIKES = 100
POPULAR_BOOST = 1.2
AUTHOR_BOOST = 1.3
PREVIEW_LENGTH = 100


def calculate_hot_score(
    like_count: int,
    dislike_count: int,
    reply_count: int,
    created_at: datetime,
    is_author: bool = False,
    now: datetime | None = None,
) -> float:
    """Popularity score decaying exponentially with age.

    ``base * exp(-hours / 24) * 10``, then x1.2 above 100 likes, then x1.3
    for comments by the target's author.
    """
    now = now or datetime.now(UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    hours = (now - created_at).total_seconds() / 3600

    base = (
        like_count * LIKE_WEIGHT
        - dislike_count * DISLIKE_WEIGHT
        + reply_count * REPLY_WEIGHT
    )
    score = base * math.exp(-hours / DECAY_HOURS) * DECAY_SCALE

    if like_count > POPULAR_LIKES:
        score *= POPULAR_BOOST
    if is_author:
        score *= AUTHOR_BOOST
    return score


def score_comment(comment: Comment, now: datetime | None = None) -> float | None:
    """Score ``comment``, or None if it has no creation time."""
    if comment.created_at is None:
        return None
    return calculate_hot_score(
        comment.like_count,
        comment.dislike_count,
        comment.reply_count,
        comment.created_at,
        is_author=comment.is_author,
        now=now,
    )


class ScoreEngine:
    """Recompute scores and rebuild hot snapshots."""

    def __init__(
        self,
        store: CommentStore,
        hot_list_size: int = 10,
        batch_limit: int = 1000,
    ) -> None:
        self.store = store
        self.hot_list_size = hot_list_size
        self.batch_limit = max(batch_limit, 1)

    async def recompute(
        self, comment_id: int, now: datetime | None = None
    ) -> float | None:
        """Recompute and persist one comment's score.

        Returns None (and leaves the stored score alone) when the comment is
        missing or has no creation time.
        """
        comment = await self.store.get_comment(comment_id)
        if comment is None:
            return None
        score = score_comment(comment, now)
        if score is None:
            logger.warning(
                "hot_score_skipped", comment_id=comment_id, reason="no_created_at"
            )
            return None
        await self.store.update_comment(comment_id, hot_score=score)
        return score

    async def batch_update_scores(
        self, target: CommentTarget, now: datetime | None = None
    ) -> int:
        """Rescore every comment of ``target``, committing one by one.

        Comments are processed in pages of ``batch_limit``. Returns the number
        of comments updated.
        """
        now = now or datetime.now(UTC)
        comments = await self.store.list_by_target(target)
        updated = 0
        for start in range(0, len(comments), self.batch_limit):
            page = comments[start : start + self.batch_limit]
            for comment in page:
                score = score_comment(comment, now)
                if score is None:
                    logger.warning(
                        "hot_score_skipped",
                        comment_id=comment.id,
                        reason="no_created_at",
                    )
                    continue
                await self.store.update_comment(comment.id, hot_score=score)
                updated += 1
            logger.debug("hot_score_page_done", target=target.key, scored=len(page))
        logger.info("hot_scores_updated", target=target.key, updated=updated)
        return updated

    async def refresh_hot_list(
        self,
        target: CommentTarget,
        top_k: int | None = None,
        now: datetime | None = None,
    ) -> list[HotListEntry]:
        """Rescore ``target`` and swap in a new top-K snapshot of root comments."""
        top_k = top_k or self.hot_list_size
        now = now or datetime.now(UTC)
        await self.batch_update_scores(target, now)

        comments = await self.store.list_by_target(target, roots_only=True)
        candidates = [c for c in comments if c.status == CommentStatus.NORMAL]
        candidates.sort(key=lambda c: (-c.hot_score, -c.like_count, c.id))
        top = candidates[:top_k]

        entries = [
            HotListEntry(
                target_type=target.target_type,
                target_id=target.target_id,
                comment_id=c.id,
                rank=rank,
                hot_score=c.hot_score,
                user_id=c.user_id,
                username=c.username,
                content=c.content[:PREVIEW_LENGTH],
                like_count=c.like_count,
                updated_at=now,
            )
            for rank, c in enumerate(top, start=1)
        ]
        await self.store.replace_hot_list(target, entries)

        hot_ids = {c.id for c in top}
        for comment in comments:
            if comment.id in hot_ids and not comment.is_hot:
                await self.store.update_comment(comment.id, is_hot=True)
            elif comment.id not in hot_ids and comment.is_hot:
                await self.store.update_comment(comment.id, is_hot=False)

        logger.info("hot_list_refreshed", target=target.key, size=len(entries))
        return entries

    async def get_hot_comments(
        self, target: CommentTarget, limit: int | None = None
    ) -> list[HotListEntry]:
        entries = await self.store.get_hot_list(target)
        return entries[:limit] if limit else entries
