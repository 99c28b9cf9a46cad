"""Tests for CommentService over the in-memory store.

Covers:
- Root comments and replies with moderation
- Deletion and reply counters
- Listings, threads and user history
- Likes / dislikes, owner actions, statistics
"""

import pytest

from comment_engine.comments.collaborators import (
    NotificationDispatcher,
    NotificationEventType,
)
from comment_engine.comments.exceptions import (
    ConflictError,
    ContentRejectedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from comment_engine.comments.models import Comment, CommentStatus, TargetType
from comment_engine.comments.service import CommentService, NewComment
from comment_engine.comments.store import InMemoryCommentStore
from comment_engine.moderation.models import AuditStatus


ARTICLE = TargetType.ARTICLE
ARTICLE_ID = 42
OWNER_ID = 99
ALICE, BOB, CAROL = 1, 2, 3


async def _root(
    service: CommentService, user_id: int = ALICE, content: str = "First comment"
) -> Comment:
    return await service.create_root(
        user_id, ARTICLE, ARTICLE_ID, NewComment(content=content)
    )


async def _reply(
    service: CommentService,
    parent_id: int,
    user_id: int = BOB,
    content: str = "A thoughtful reply",
    **kwargs,
) -> Comment:
    return await service.create_reply(
        user_id, parent_id, NewComment(content=content), **kwargs
    )


class TestCreateRoot:
    """Tests for create_root."""

    @pytest.mark.asyncio
    async def test_creates_root_comment(self, comment_service: CommentService):
        comment = await _root(comment_service)

        assert comment.id > 0
        assert comment.root_id == comment.id
        assert comment.floor_number == 1
        assert comment.username == "alice"
        assert comment.status == CommentStatus.NORMAL
        assert comment.audit_status == AuditStatus.APPROVED
        assert comment.is_author is False

    @pytest.mark.asyncio
    async def test_content_is_stripped(self, comment_service: CommentService):
        comment = await _root(comment_service, content="   padded text  ")

        assert comment.content == "padded text"

    @pytest.mark.asyncio
    async def test_empty_content(self, comment_service: CommentService):
        with pytest.raises(ValidationFailedError):
            await _root(comment_service, content="   ")

    @pytest.mark.asyncio
    async def test_content_too_long(self, comment_service: CommentService):
        with pytest.raises(ValidationFailedError, match="200"):
            await _root(comment_service, content="a b " * 60)

    @pytest.mark.asyncio
    async def test_unknown_user(self, comment_service: CommentService):
        with pytest.raises(NotFoundError):
            await _root(comment_service, user_id=1234)

    @pytest.mark.asyncio
    async def test_target_owner_is_flagged(self, comment_service: CommentService):
        comment = await _root(comment_service, user_id=OWNER_ID)

        assert comment.is_author is True

    @pytest.mark.asyncio
    async def test_minor_words_are_stored_masked(
        self, comment_service: CommentService
    ):
        comment = await _root(comment_service, content="look at xx here")

        assert comment.content == "look at ** here"
        assert comment.status == CommentStatus.NORMAL

    @pytest.mark.asyncio
    async def test_review_word_holds_comment_for_audit(
        self, comment_service: CommentService
    ):
        comment = await _root(comment_service, content="promo code inside")

        assert comment.status == CommentStatus.AUDITING
        assert comment.audit_status == AuditStatus.PENDING
        page = await comment_service.list_roots(ARTICLE, ARTICLE_ID)
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_rejected_comment_is_recorded_not_listed(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        with pytest.raises(ContentRejectedError) as exc_info:
            await _root(comment_service, content="buy spam now please")

        rejected = exc_info.value.comment
        assert rejected is not None
        stored = await store.get_comment(rejected.id)
        assert stored.audit_status == AuditStatus.REJECTED
        assert stored.status == CommentStatus.FOLDED
        assert stored.content == "buy spam now please"

        page = await comment_service.list_roots(ARTICLE, ARTICLE_ID)
        assert page.total == 0
        record = await comment_service.get_floor_building(ARTICLE, ARTICLE_ID, ALICE)
        assert record is None


class TestCreateReply:
    """Tests for create_reply."""

    @pytest.mark.asyncio
    async def test_reply_updates_counters(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        root = await _root(comment_service)
        reply = await _reply(comment_service, root.id)
        await _reply(comment_service, reply.id, user_id=CAROL)

        stored_root = await store.get_comment(root.id)
        stored_reply = await store.get_comment(reply.id)
        assert stored_root.reply_count == 1
        assert stored_root.total_reply_count == 2
        assert stored_reply.reply_count == 1

    @pytest.mark.asyncio
    async def test_reply_defaults_reply_to_parent(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)
        reply = await _reply(comment_service, root.id)

        assert reply.reply_to_comment_id == root.id
        assert reply.reply_to_user_id == ALICE

    @pytest.mark.asyncio
    async def test_reply_to_other_comment_in_thread(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)
        bob_reply = await _reply(comment_service, root.id)

        reply = await _reply(
            comment_service,
            root.id,
            user_id=CAROL,
            reply_to_comment_id=bob_reply.id,
        )

        assert reply.parent_id == root.id
        assert reply.depth == 1
        assert reply.reply_to_comment_id == bob_reply.id
        assert reply.reply_to_user_id == BOB

    @pytest.mark.asyncio
    async def test_reply_to_comment_from_other_thread(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)
        other = await _root(comment_service, user_id=BOB)

        with pytest.raises(NotFoundError):
            await _reply(
                comment_service, root.id, user_id=CAROL, reply_to_comment_id=other.id
            )

    @pytest.mark.asyncio
    async def test_invalid_reply_to_keeps_sub_floors_contiguous(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)
        first = await _reply(comment_service, root.id)

        with pytest.raises(NotFoundError):
            await _reply(comment_service, root.id, reply_to_comment_id=404)
        second = await _reply(comment_service, root.id, user_id=CAROL)

        assert [first.sub_floor_number, second.sub_floor_number] == [1, 2]

    @pytest.mark.asyncio
    async def test_reply_notifies_parent_author_and_mentions(
        self,
        comment_service: CommentService,
        dispatcher: NotificationDispatcher,
        sink,
    ):
        root = await _root(comment_service)
        await comment_service.create_reply(
            BOB,
            root.id,
            NewComment(
                content="hey, see this", mentioned_user_ids=[CAROL, CAROL, ALICE]
            ),
        )
        await dispatcher.flush()

        events = [(e.type, e.recipient_id) for e in sink.events]
        assert events == [
            (NotificationEventType.COMMENT_REPLY, ALICE),
            (NotificationEventType.COMMENT_MENTION, CAROL),
        ]

    @pytest.mark.asyncio
    async def test_self_reply_does_not_notify(
        self,
        comment_service: CommentService,
        dispatcher: NotificationDispatcher,
        sink,
    ):
        root = await _root(comment_service)
        await _reply(comment_service, root.id, user_id=ALICE)
        await dispatcher.flush()

        assert sink.events == []

    @pytest.mark.asyncio
    async def test_rejected_reply_leaves_counters_alone(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        root = await _root(comment_service)

        with pytest.raises(ContentRejectedError):
            await _reply(comment_service, root.id, content="this is spam content")

        stored = await store.get_comment(root.id)
        assert stored.reply_count == 0
        assert stored.total_reply_count == 0


class TestDelete:
    """Tests for delete_comment and batch actions."""

    @pytest.mark.asyncio
    async def test_only_author_can_delete(self, comment_service: CommentService):
        root = await _root(comment_service)

        with pytest.raises(PermissionDeniedError):
            await comment_service.delete_comment(root.id, BOB)

    @pytest.mark.asyncio
    async def test_delete_reply_releases_counters(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        root = await _root(comment_service)
        reply = await _reply(comment_service, root.id)

        await comment_service.delete_comment(reply.id, BOB)

        stored_root = await store.get_comment(root.id)
        assert stored_root.reply_count == 0
        assert stored_root.total_reply_count == 0
        with pytest.raises(NotFoundError):
            await comment_service.get_comment(reply.id)

    @pytest.mark.asyncio
    async def test_double_delete(self, comment_service: CommentService):
        root = await _root(comment_service)
        await comment_service.delete_comment(root.id, ALICE)

        with pytest.raises(NotFoundError):
            await comment_service.delete_comment(root.id, ALICE)

    @pytest.mark.asyncio
    async def test_batch_delete_skips_missing_and_deleted(
        self, comment_service: CommentService
    ):
        first = await _root(comment_service)
        second = await _root(comment_service)
        await comment_service.delete_comment(second.id, ALICE)

        deleted = await comment_service.batch_delete([first.id, second.id, 999])

        assert deleted == 1

    @pytest.mark.asyncio
    async def test_batch_fold(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        first = await _root(comment_service)
        second = await _root(comment_service)

        folded = await comment_service.batch_fold([first.id, second.id, first.id])

        assert folded == 2
        stored = await store.get_comment(first.id)
        assert stored.status == CommentStatus.FOLDED

    @pytest.mark.asyncio
    async def test_purge_reply_removes_record_and_counters(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        root = await _root(comment_service)
        reply = await _reply(comment_service, root.id)

        await comment_service.purge_comment(reply.id)

        assert await store.get_comment(reply.id) is None
        stored = await store.get_comment(root.id)
        assert stored.reply_count == 0
        assert stored.total_reply_count == 0

    @pytest.mark.asyncio
    async def test_purge_deleted_reply_does_not_release_twice(
        self, comment_service: CommentService, store: InMemoryCommentStore
    ):
        root = await _root(comment_service)
        reply = await _reply(comment_service, root.id)
        await _reply(comment_service, root.id, user_id=CAROL)
        await comment_service.delete_comment(reply.id, BOB)

        await comment_service.purge_comment(reply.id)

        stored = await store.get_comment(root.id)
        assert stored.reply_count == 1
        assert stored.total_reply_count == 1

    @pytest.mark.asyncio
    async def test_purge_unknown_comment(self, comment_service: CommentService):
        with pytest.raises(NotFoundError):
            await comment_service.purge_comment(404)


class TestListings:
    """Tests for root listings, replies, threads and user history."""

    @pytest.mark.asyncio
    async def test_sorting_and_pinning(self, comment_service: CommentService):
        r1 = await _root(comment_service)
        r2 = await _root(comment_service, user_id=BOB)
        r3 = await _root(comment_service, user_id=CAROL)

        newest = await comment_service.list_roots(ARTICLE, ARTICLE_ID)
        by_floor = await comment_service.list_roots(ARTICLE, ARTICLE_ID, sort="floor")
        assert [c.id for c in newest.items] == [r3.id, r2.id, r1.id]
        assert [c.id for c in by_floor.items] == [r1.id, r2.id, r3.id]

        await comment_service.set_pinned(r1.id, OWNER_ID, True)
        pinned = await comment_service.list_roots(ARTICLE, ARTICLE_ID)
        assert [c.id for c in pinned.items] == [r1.id, r3.id, r2.id]

    @pytest.mark.asyncio
    async def test_sort_by_likes(self, comment_service: CommentService):
        r1 = await _root(comment_service)
        r2 = await _root(comment_service)
        await comment_service.like(r1.id, BOB)

        page = await comment_service.list_roots(ARTICLE, ARTICLE_ID, sort="like")

        assert [c.id for c in page.items] == [r1.id, r2.id]

    @pytest.mark.asyncio
    async def test_invalid_sort(self, comment_service: CommentService):
        with pytest.raises(ValidationFailedError):
            await comment_service.list_roots(ARTICLE, ARTICLE_ID, sort="random")

    @pytest.mark.asyncio
    async def test_pagination(self, comment_service: CommentService):
        for _ in range(3):
            await _root(comment_service)

        first = await comment_service.list_roots(ARTICLE, ARTICLE_ID, page=1, size=2)
        second = await comment_service.list_roots(ARTICLE, ARTICLE_ID, page=2, size=2)

        assert (len(first.items), first.total, first.has_more) == (2, 3, True)
        assert (len(second.items), second.has_more) == (1, False)

    @pytest.mark.asyncio
    async def test_list_replies_in_sub_floor_order(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)
        first = await _reply(comment_service, root.id)
        second = await _reply(comment_service, root.id, user_id=CAROL)

        page = await comment_service.list_replies(root.id)

        assert [c.id for c in page.items] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_thread_is_depth_first(self, comment_service: CommentService):
        a = await _root(comment_service)
        b = await _reply(comment_service, a.id)
        d = await _reply(comment_service, a.id, user_id=CAROL)
        c = await _reply(comment_service, b.id, user_id=CAROL)

        thread = await comment_service.get_thread(a.id)

        assert [x.id for x in thread] == [a.id, b.id, c.id, d.id]

    @pytest.mark.asyncio
    async def test_thread_keeps_children_of_deleted(
        self, comment_service: CommentService
    ):
        a = await _root(comment_service)
        b = await _reply(comment_service, a.id)
        c = await _reply(comment_service, b.id, user_id=CAROL)
        await comment_service.delete_comment(b.id, BOB)

        thread = await comment_service.get_thread(a.id)

        assert [x.id for x in thread] == [a.id, c.id]

    @pytest.mark.asyncio
    async def test_thread_of_unknown_root(self, comment_service: CommentService):
        with pytest.raises(NotFoundError):
            await comment_service.get_thread(404)

    @pytest.mark.asyncio
    async def test_user_comments_newest_first(self, comment_service: CommentService):
        first = await _root(comment_service)
        second = await _root(comment_service)
        await _root(comment_service, user_id=BOB)

        page = await comment_service.list_user_comments(ALICE)

        assert [c.id for c in page.items] == [second.id, first.id]


class TestInteractions:
    """Tests for likes and dislikes."""

    @pytest.mark.asyncio
    async def test_like_and_unlike(self, comment_service: CommentService):
        root = await _root(comment_service)

        liked = await comment_service.like(root.id, BOB)
        assert liked.like_count == 1
        assert liked.hot_score > 0

        unliked = await comment_service.unlike(root.id, BOB)
        assert unliked.like_count == 0

    @pytest.mark.asyncio
    async def test_double_like(self, comment_service: CommentService):
        root = await _root(comment_service)
        await comment_service.like(root.id, BOB)

        with pytest.raises(ConflictError):
            await comment_service.like(root.id, BOB)

    @pytest.mark.asyncio
    async def test_unlike_without_like(self, comment_service: CommentService):
        root = await _root(comment_service)

        with pytest.raises(ConflictError):
            await comment_service.unlike(root.id, BOB)

    @pytest.mark.asyncio
    async def test_dislike_is_independent_of_like(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)
        await comment_service.like(root.id, BOB)

        disliked = await comment_service.dislike(root.id, BOB)
        assert (disliked.like_count, disliked.dislike_count) == (1, 1)

        undisliked = await comment_service.undislike(root.id, BOB)
        assert undisliked.dislike_count == 0

    @pytest.mark.asyncio
    async def test_like_missing_comment(self, comment_service: CommentService):
        with pytest.raises(NotFoundError):
            await comment_service.like(777, BOB)


class TestOwnerActions:
    """Tests for pin, feature and author replies."""

    @pytest.mark.asyncio
    async def test_pin_requires_owner(self, comment_service: CommentService):
        root = await _root(comment_service)

        with pytest.raises(PermissionDeniedError):
            await comment_service.set_pinned(root.id, ALICE, True)

    @pytest.mark.asyncio
    async def test_pin_root_only(self, comment_service: CommentService):
        root = await _root(comment_service)
        reply = await _reply(comment_service, root.id)

        with pytest.raises(ValidationFailedError):
            await comment_service.set_pinned(reply.id, OWNER_ID, True)

    @pytest.mark.asyncio
    async def test_pin_and_feature(self, comment_service: CommentService):
        root = await _root(comment_service)

        pinned = await comment_service.set_pinned(root.id, OWNER_ID, True)
        featured = await comment_service.set_featured(root.id, OWNER_ID, True)

        assert pinned.is_pinned is True
        assert featured.is_featured is True

    @pytest.mark.asyncio
    async def test_author_reply_notifies_commenter(
        self,
        comment_service: CommentService,
        dispatcher: NotificationDispatcher,
        sink,
    ):
        root = await _root(comment_service)

        reply = await comment_service.author_reply(root.id, OWNER_ID, "Thanks xx!")
        await dispatcher.flush()

        assert reply.id > 0
        assert reply.content == "Thanks **!"
        assert [r.id for r in await comment_service.list_author_replies(root.id)] == [
            reply.id
        ]
        assert [(e.type, e.recipient_id) for e in sink.events] == [
            (NotificationEventType.COMMENT_AUTHOR_REPLY, ALICE)
        ]

    @pytest.mark.asyncio
    async def test_author_reply_requires_owner(self, comment_service: CommentService):
        root = await _root(comment_service)

        with pytest.raises(PermissionDeniedError):
            await comment_service.author_reply(root.id, BOB, "Not mine")

    @pytest.mark.asyncio
    async def test_rejected_author_reply_is_not_stored(
        self, comment_service: CommentService
    ):
        root = await _root(comment_service)

        with pytest.raises(ContentRejectedError):
            await comment_service.author_reply(root.id, OWNER_ID, "spam spam")

        assert await comment_service.list_author_replies(root.id) == []


class TestStatistics:
    """Tests for floor building and on-demand statistics."""

    @pytest.mark.asyncio
    async def test_floor_building_tracks_consecutive_posts(
        self, comment_service: CommentService
    ):
        first = await _root(comment_service)
        second = await _root(comment_service)

        record = await comment_service.get_floor_building(ARTICLE, ARTICLE_ID, ALICE)

        assert record.floor_count == 2
        assert record.comment_ids == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_target_stats(self, comment_service: CommentService):
        root = await _root(comment_service, content="12345678")
        await _reply(comment_service, root.id, content="1234")

        stats = await comment_service.target_stats(ARTICLE, ARTICLE_ID)

        assert stats.total_comments == 2
        assert stats.root_comments == 1
        assert stats.today_comments == 2
        assert stats.avg_content_length == 6.0
        assert stats.last_comment_at is not None

    @pytest.mark.asyncio
    async def test_empty_target_stats(self, comment_service: CommentService):
        stats = await comment_service.target_stats(ARTICLE, 7)

        assert stats.total_comments == 0
        assert stats.last_comment_at is None

    @pytest.mark.asyncio
    async def test_user_stats(self, comment_service: CommentService):
        root = await _root(comment_service)
        await _root(comment_service)
        await comment_service.like(root.id, BOB)
        await comment_service.like(root.id, CAROL)
        await _reply(comment_service, root.id)

        stats = await comment_service.user_stats(ALICE)

        assert stats.total_comments == 2
        assert stats.total_likes == 2
        assert stats.total_replies == 1
        assert stats.avg_likes == 1.0
