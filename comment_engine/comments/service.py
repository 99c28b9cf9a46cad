"""Comment system service layer.

Business logic for:
- Root comments and replies (placement, moderation, persistence)
- Tree reads: root listings, replies, whole threads, per-user history
- Likes and dislikes with immediate hot score recomputation
- Pin / feature / author replies for the target owner
- Floor building records and on-demand statistics
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from comment_engine.core.context import set_target
from comment_engine.moderation.models import AuditStatus, AuditVerdict, RiskLevel
from comment_engine.moderation.pipeline import ModerationPipeline
from comment_engine.ranking.scoring import PREVIEW_LENGTH, ScoreEngine

from .collaborators import (
    NotificationDispatcher,
    NotificationEvent,
    NotificationEventType,
    TargetOwnership,
    UserDirectory,
    UserProfile,
)
from .exceptions import (
    ConflictError,
    ContentRejectedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from .models import (
    AuthorReply,
    Comment,
    CommentStats,
    CommentStatus,
    CommentTarget,
    ContentKind,
    FloorBuildingRecord,
    HotListEntry,
    InteractionKind,
    UserCommentStats,
)
from .store import CommentStore
from .thread_builder import Placement, ThreadBuilder, thread_root_id


logger = structlog.get_logger(__name__)

SORT_OPTIONS = ("time", "floor", "hot", "like")


async def release_reply_counters(store: CommentStore, comment: Comment) -> None:
    """Take back the reply counts a visible reply added to its parent and root."""
    if comment.is_root or comment.audit_status == AuditStatus.REJECTED:
        return
    await store.increment_counter(comment.parent_id, "reply_count", -1)
    await store.increment_counter(comment.root_id, "total_reply_count", -1)


async def soft_delete_comment(
    store: CommentStore, comment: Comment, deleted_at: datetime | None = None
) -> bool:
    """Soft-delete ``comment`` and release its reply counts.

    Returns False when the comment was already gone.
    """
    if not await store.soft_delete(comment.id, deleted_at or datetime.now(UTC)):
        return False
    await release_reply_counters(store, comment)
    return True


@dataclass
class ClientInfo:
    """Opaque client metadata recorded with a comment."""

    ip: str = ""
    ip_location: str = ""
    device_type: str = ""
    user_agent: str = ""


@dataclass
class CommentPage:
    """One page of a comment listing."""

    items: list[Comment]
    total: int
    page: int
    size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.size < self.total


@dataclass
class NewComment:
    """Input for a new root comment or reply."""

    content: str
    content_kind: int = ContentKind.TEXT
    images: list[str] = field(default_factory=list)
    mentioned_user_ids: list[int] = field(default_factory=list)
    client: ClientInfo = field(default_factory=ClientInfo)


def _is_listed(comment: Comment) -> bool:
    return comment.is_visible and comment.audit_status != AuditStatus.REJECTED


def _paginate(items: list[Comment], page: int, size: int) -> CommentPage:
    start = (page - 1) * size
    return CommentPage(
        items=items[start : start + size], total=len(items), page=page, size=size
    )


def _sort_key(sort: str):
    if sort == "floor":
        return lambda c: (not c.is_pinned, c.floor_number, c.id)
    if sort == "hot":
        return lambda c: (not c.is_pinned, -c.hot_score, -c.id)
    if sort == "like":
        return lambda c: (not c.is_pinned, -c.like_count, -c.id)
    return lambda c: (not c.is_pinned, -c.id)


class CommentService:
    """Service for threaded comments."""

    def __init__(
        self,
        store: CommentStore,
        users: UserDirectory,
        ownership: TargetOwnership,
        pipeline: ModerationPipeline | None = None,
        score_engine: ScoreEngine | None = None,
        notifications: NotificationDispatcher | None = None,
        max_length: int = 5000,
        max_page_size: int = 100,
    ) -> None:
        self.store = store
        self.users = users
        self.ownership = ownership
        self.threads = ThreadBuilder(store)
        self.pipeline = pipeline or ModerationPipeline()
        self.scores = score_engine or ScoreEngine(store)
        self.notifications = notifications or NotificationDispatcher()
        self.max_length = max_length
        self.max_page_size = max_page_size

    # ==========================================================================
    # Validation helpers
    # ==========================================================================

    def _clean_content(self, content: str) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationFailedError("Conteudo do comentario vazio")
        if len(content) > self.max_length:
            raise ValidationFailedError(
                f"Comentario excede o limite de {self.max_length} caracteres"
            )
        return content

    def _page_bounds(self, page: int, size: int) -> tuple[int, int]:
        return max(page, 1), min(max(size, 1), self.max_page_size)

    async def _require_user(self, user_id: int) -> UserProfile:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("Usuario nao encontrado")
        return user

    async def _require_comment(self, comment_id: int) -> Comment:
        comment = await self.store.get_comment(comment_id)
        if comment is None or comment.status == CommentStatus.DELETED:
            raise NotFoundError
        return comment

    async def _require_owner(self, comment: Comment, user_id: int) -> None:
        owner = await self.ownership.is_owner(
            comment.target_type, comment.target_id, user_id
        )
        if not owner:
            raise PermissionDeniedError("Apenas o autor do conteudo pode fazer isso")

    # ==========================================================================
    # Creation
    # ==========================================================================

    async def create_root(
        self,
        user_id: int,
        target_type: int,
        target_id: int,
        new: NewComment,
    ) -> Comment:
        """Post a root comment under a target.

        Raises:
            ValidationFailedError: empty or oversized content.
            NotFoundError: unknown user.
            ContentRejectedError: moderation rejected the content; the
                comment is recorded with a rejected audit status.
        """
        content = self._clean_content(new.content)
        user = await self._require_user(user_id)
        target = CommentTarget(int(target_type), target_id)
        set_target(target.target_type, target.target_id)

        placement = await self.threads.place_root(target)
        return await self._persist(user, placement, content, new)

    async def create_reply(
        self,
        user_id: int,
        parent_id: int,
        new: NewComment,
        reply_to_comment_id: int | None = None,
    ) -> Comment:
        """Reply to ``parent_id``.

        ``reply_to_comment_id`` names the comment being answered when it
        differs from the structural parent (an @-reply inside a thread).

        Raises:
            ValidationFailedError: empty or oversized content.
            NotFoundError: unknown user, or the parent is missing or deleted.
            ContentRejectedError: moderation rejected the content.
        """
        content = self._clean_content(new.content)
        user = await self._require_user(user_id)
        parent = await self.threads.require_parent(parent_id)
        set_target(parent.target_type, parent.target_id)

        # Checked before a sub-floor is taken
        reply_to = parent
        if reply_to_comment_id and reply_to_comment_id != parent_id:
            reply_to = await self.store.get_comment(reply_to_comment_id)
            if reply_to is None or reply_to.root_id != thread_root_id(parent):
                raise NotFoundError("Comentario respondido nao encontrado")

        placement = await self.threads.place_under(parent)
        return await self._persist(user, placement, content, new, reply_to)

    async def _persist(
        self,
        user: UserProfile,
        placement: Placement,
        content: str,
        new: NewComment,
        reply_to: Comment | None = None,
    ) -> Comment:
        target = placement.target
        is_author = await self.ownership.is_owner(
            target.target_type, target.target_id, user.id
        )
        verdict = self.pipeline.audit(content, is_author=is_author)

        comment = placement.apply(
            Comment(
                target_type=target.target_type,
                target_id=target.target_id,
                user_id=user.id,
                content=content if verdict.rejected else verdict.masked_content,
                username=user.username,
                avatar=user.avatar,
                content_kind=int(new.content_kind),
                images=list(new.images),
                mentioned_user_ids=list(dict.fromkeys(new.mentioned_user_ids)),
                is_author=is_author,
                status=self._status_for(verdict),
                audit_status=verdict.status,
                risk_level=verdict.risk_level,
                audit_reason=verdict.reason_text,
                ip=new.client.ip,
                ip_location=new.client.ip_location,
                device_type=new.client.device_type,
                user_agent=new.client.user_agent,
            )
        )
        if reply_to is not None:
            comment.reply_to_user_id = reply_to.user_id
            comment.reply_to_comment_id = reply_to.id

        comment = await self.store.create_comment(comment)

        if verdict.rejected:
            logger.warning(
                "comment_rejected",
                comment_id=comment.id,
                user_id=user.id,
                risk_level=int(verdict.risk_level),
                reasons=verdict.reasons,
            )
            raise ContentRejectedError(comment=comment)

        if not placement.is_root:
            await self.store.increment_counter(placement.parent_id, "reply_count", 1)
            await self.store.increment_counter(
                placement.root_id, "total_reply_count", 1
            )

        await self.store.record_floor_building(
            target, user.id, comment.id, comment.created_at or datetime.now(UTC)
        )
        self._notify_created(comment, placement)

        logger.info(
            "comment_created",
            comment_id=comment.id,
            parent_id=comment.parent_id,
            root_id=comment.root_id,
            floor_number=comment.floor_number,
            sub_floor_number=comment.sub_floor_number,
            status=CommentStatus(comment.status).name.lower(),
            risk_level=int(comment.risk_level),
        )
        return comment

    @staticmethod
    def _status_for(verdict: AuditVerdict) -> CommentStatus:
        if verdict.rejected or verdict.risk_level >= RiskLevel.HIGH:
            return CommentStatus.FOLDED
        if verdict.status == AuditStatus.PENDING:
            return CommentStatus.AUDITING
        return CommentStatus.NORMAL

    def _notify_created(self, comment: Comment, placement: Placement) -> None:
        preview = comment.content[:PREVIEW_LENGTH]
        notified = {comment.user_id}

        if comment.reply_to_user_id and comment.reply_to_user_id not in notified:
            notified.add(comment.reply_to_user_id)
            self.notifications.notify(
                NotificationEvent(
                    type=NotificationEventType.COMMENT_REPLY,
                    recipient_id=comment.reply_to_user_id,
                    actor_id=comment.user_id,
                    comment_id=comment.id,
                    target_type=placement.target.target_type,
                    target_id=placement.target.target_id,
                    preview=preview,
                )
            )

        for user_id in comment.mentioned_user_ids:
            if user_id in notified:
                continue
            notified.add(user_id)
            self.notifications.notify(
                NotificationEvent(
                    type=NotificationEventType.COMMENT_MENTION,
                    recipient_id=user_id,
                    actor_id=comment.user_id,
                    comment_id=comment.id,
                    target_type=placement.target.target_type,
                    target_id=placement.target.target_id,
                    preview=preview,
                )
            )

    # ==========================================================================
    # Deletion
    # ==========================================================================

    async def delete_comment(self, comment_id: int, user_id: int) -> None:
        """Soft-delete the caller's own comment.

        Raises:
            NotFoundError: missing or already deleted.
            PermissionDeniedError: the caller did not write the comment.
        """
        comment = await self._require_comment(comment_id)
        if comment.user_id != user_id:
            raise PermissionDeniedError
        if not await soft_delete_comment(self.store, comment):
            raise NotFoundError
        logger.info("comment_deleted", comment_id=comment_id, user_id=user_id)

    async def batch_delete(self, comment_ids: list[int]) -> int:
        """Soft-delete many comments at once (moderator action)."""
        live = []
        for comment_id in dict.fromkeys(comment_ids):
            comment = await self.store.get_comment(comment_id)
            if comment is not None and comment.status != CommentStatus.DELETED:
                live.append(comment)
        updated = await self.store.batch_update_status(
            [c.id for c in live], CommentStatus.DELETED
        )
        for comment in live:
            await release_reply_counters(self.store, comment)
        logger.info(
            "comments_batch_deleted", requested=len(comment_ids), deleted=updated
        )
        return updated

    async def batch_fold(self, comment_ids: list[int]) -> int:
        """Fold many visible comments at once (moderator action)."""
        folded = 0
        for comment_id in dict.fromkeys(comment_ids):
            if await self.store.transition_status(
                comment_id,
                CommentStatus.FOLDED,
                frozenset({CommentStatus.NORMAL, CommentStatus.AUDITING}),
            ):
                folded += 1
        logger.info("comments_batch_folded", requested=len(comment_ids), folded=folded)
        return folded

    async def purge_comment(self, comment_id: int) -> None:
        """Remove a comment record for good (moderator action).

        Replies under it are left in place.

        Raises:
            NotFoundError: the comment does not exist.
        """
        comment = await self.store.get_comment(comment_id)
        if comment is None:
            raise NotFoundError
        if comment.status != CommentStatus.DELETED:
            await release_reply_counters(self.store, comment)
        await self.store.purge_comment(comment_id)
        logger.info("comment_purged", comment_id=comment_id)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_comment(self, comment_id: int) -> Comment:
        return await self._require_comment(comment_id)

    async def list_roots(
        self,
        target_type: int,
        target_id: int,
        page: int = 1,
        size: int = 20,
        sort: str = "time",
    ) -> CommentPage:
        """Root comments of a target, pinned first.

        ``sort`` is one of ``time`` (newest first), ``floor`` (ascending),
        ``hot`` or ``like`` (descending).
        """
        if sort not in SORT_OPTIONS:
            raise ValidationFailedError(f"Ordenacao invalida: {sort}")
        page, size = self._page_bounds(page, size)
        target = CommentTarget(int(target_type), target_id)
        roots = [
            c
            for c in await self.store.list_by_target(target, roots_only=True)
            if _is_listed(c)
        ]
        roots.sort(key=_sort_key(sort))
        return _paginate(roots, page, size)

    async def list_replies(
        self, parent_id: int, page: int = 1, size: int = 20
    ) -> CommentPage:
        """Direct replies of a comment in sub-floor order."""
        page, size = self._page_bounds(page, size)
        replies = [
            c for c in await self.store.list_by_parent(parent_id) if _is_listed(c)
        ]
        replies.sort(key=lambda c: (c.sub_floor_number, c.id))
        return _paginate(replies, page, size)

    async def get_thread(self, root_id: int) -> list[Comment]:
        """Whole thread under ``root_id`` in depth-first reading order.

        Hidden comments are left out but their visible descendants stay.
        """
        comments = await self.store.list_by_root(root_id)
        children: dict[int, list[Comment]] = {}
        root = None
        for comment in comments:
            if comment.id == root_id:
                root = comment
            else:
                children.setdefault(comment.parent_id, []).append(comment)
        if root is None:
            raise NotFoundError
        for siblings in children.values():
            siblings.sort(key=lambda c: (c.sub_floor_number, c.id))

        ordered: list[Comment] = []
        stack = [root]
        while stack:
            comment = stack.pop()
            if _is_listed(comment):
                ordered.append(comment)
            stack.extend(reversed(children.get(comment.id, [])))
        return ordered

    async def list_user_comments(
        self, user_id: int, page: int = 1, size: int = 20
    ) -> CommentPage:
        page, size = self._page_bounds(page, size)
        comments = [
            c
            for c in await self.store.list_by_user(user_id)
            if c.status != CommentStatus.DELETED
        ]
        comments.sort(key=lambda c: -c.id)
        return _paginate(comments, page, size)

    async def get_hot_comments(
        self, target_type: int, target_id: int, limit: int | None = None
    ) -> list[HotListEntry]:
        return await self.scores.get_hot_comments(
            CommentTarget(int(target_type), target_id), limit
        )

    async def get_floor_building(
        self, target_type: int, target_id: int, user_id: int
    ) -> FloorBuildingRecord | None:
        return await self.store.get_floor_building(
            CommentTarget(int(target_type), target_id), user_id
        )

    # ==========================================================================
    # Interactions
    # ==========================================================================

    async def _interact(
        self,
        comment_id: int,
        user_id: int,
        kind: InteractionKind,
        add: bool,
    ) -> Comment:
        await self._require_comment(comment_id)
        counter = "like_count" if kind == InteractionKind.LIKE else "dislike_count"
        if add:
            if not await self.store.add_interaction(comment_id, user_id, kind):
                raise ConflictError(
                    "Comentario ja curtido"
                    if kind == InteractionKind.LIKE
                    else "Comentario ja marcado como negativo"
                )
            await self.store.increment_counter(comment_id, counter, 1)
        else:
            if not await self.store.remove_interaction(comment_id, user_id, kind):
                raise ConflictError("Interacao nao encontrada")
            await self.store.increment_counter(comment_id, counter, -1)

        await self.scores.recompute(comment_id)
        logger.debug(
            "comment_interaction",
            comment_id=comment_id,
            kind=kind.name.lower(),
            added=add,
        )
        return await self._require_comment(comment_id)

    async def like(self, comment_id: int, user_id: int) -> Comment:
        return await self._interact(comment_id, user_id, InteractionKind.LIKE, True)

    async def unlike(self, comment_id: int, user_id: int) -> Comment:
        return await self._interact(comment_id, user_id, InteractionKind.LIKE, False)

    async def dislike(self, comment_id: int, user_id: int) -> Comment:
        return await self._interact(comment_id, user_id, InteractionKind.DISLIKE, True)

    async def undislike(self, comment_id: int, user_id: int) -> Comment:
        return await self._interact(
            comment_id, user_id, InteractionKind.DISLIKE, False
        )

    # ==========================================================================
    # Owner actions
    # ==========================================================================

    async def set_pinned(self, comment_id: int, user_id: int, pinned: bool) -> Comment:
        """Pin or unpin a root comment (target owner only)."""
        comment = await self._require_comment(comment_id)
        await self._require_owner(comment, user_id)
        if not comment.is_root:
            raise ValidationFailedError("Apenas comentarios raiz podem ser fixados")
        updated = await self.store.update_comment(comment_id, is_pinned=pinned)
        logger.info("comment_pinned", comment_id=comment_id, pinned=pinned)
        return updated or comment

    async def set_featured(
        self, comment_id: int, user_id: int, featured: bool
    ) -> Comment:
        """Feature or unfeature a comment (target owner only)."""
        comment = await self._require_comment(comment_id)
        await self._require_owner(comment, user_id)
        updated = await self.store.update_comment(comment_id, is_featured=featured)
        logger.info("comment_featured", comment_id=comment_id, featured=featured)
        return updated or comment

    async def author_reply(
        self, comment_id: int, user_id: int, content: str
    ) -> AuthorReply:
        """Attach an owner addendum to a comment.

        Raises:
            PermissionDeniedError: the caller does not own the target.
            ContentRejectedError: moderation rejected the addendum.
        """
        comment = await self._require_comment(comment_id)
        await self._require_owner(comment, user_id)
        content = self._clean_content(content)
        verdict = self.pipeline.audit(content, is_author=True)
        if verdict.rejected:
            raise ContentRejectedError

        reply = await self.store.create_author_reply(
            AuthorReply(
                comment_id=comment_id,
                author_id=user_id,
                content=verdict.masked_content,
            )
        )
        if comment.user_id != user_id:
            self.notifications.notify(
                NotificationEvent(
                    type=NotificationEventType.COMMENT_AUTHOR_REPLY,
                    recipient_id=comment.user_id,
                    actor_id=user_id,
                    comment_id=comment_id,
                    target_type=comment.target_type,
                    target_id=comment.target_id,
                    preview=reply.content[:PREVIEW_LENGTH],
                )
            )
        logger.info("author_reply_created", comment_id=comment_id, reply_id=reply.id)
        return reply

    async def list_author_replies(self, comment_id: int) -> list[AuthorReply]:
        await self._require_comment(comment_id)
        return await self.store.list_author_replies(comment_id)

    # ==========================================================================
    # Statistics
    # ==========================================================================

    async def target_stats(
        self, target_type: int, target_id: int, now: datetime | None = None
    ) -> CommentStats:
        now = now or datetime.now(UTC)
        target = CommentTarget(int(target_type), target_id)
        comments = [
            c
            for c in await self.store.list_by_target(target)
            if c.status != CommentStatus.DELETED
        ]
        stats = CommentStats(target_type=target.target_type, target_id=target_id)
        if not comments:
            return stats

        today = now.date()
        created = [c.created_at for c in comments if c.created_at]
        stats.total_comments = len(comments)
        stats.root_comments = sum(1 for c in comments if c.is_root)
        stats.today_comments = sum(1 for ts in created if ts.date() == today)
        stats.avg_content_length = sum(len(c.content) for c in comments) / len(
            comments
        )
        stats.hot_comments = sum(1 for c in comments if c.is_hot)
        stats.last_comment_at = max(created, default=None)
        return stats

    async def user_stats(self, user_id: int) -> UserCommentStats:
        comments = [
            c
            for c in await self.store.list_by_user(user_id)
            if c.status != CommentStatus.DELETED
        ]
        stats = UserCommentStats(user_id=user_id)
        if not comments:
            return stats
        stats.total_comments = len(comments)
        stats.total_likes = sum(c.like_count for c in comments)
        stats.total_replies = sum(c.reply_count for c in comments)
        stats.avg_likes = stats.total_likes / stats.total_comments
        stats.hot_comments = sum(1 for c in comments if c.is_hot)
        stats.pinned_comments = sum(1 for c in comments if c.is_pinned)
        stats.featured_comments = sum(1 for c in comments if c.is_featured)
        return stats
