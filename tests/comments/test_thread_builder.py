"""Tests for structural placement of comments."""

import asyncio

import pytest

from comment_engine.comments.exceptions import NotFoundError
from comment_engine.comments.models import Comment, CommentTarget, TargetType
from comment_engine.comments.store import InMemoryCommentStore
from comment_engine.comments.thread_builder import ThreadBuilder


TARGET = CommentTarget(TargetType.ARTICLE, 42)


@pytest.fixture
def builder(store: InMemoryCommentStore) -> ThreadBuilder:
    return ThreadBuilder(store)


async def _post(
    builder: ThreadBuilder,
    store: InMemoryCommentStore,
    parent_id: int = 0,
    user_id: int = 1,
) -> Comment:
    if parent_id:
        placement = await builder.place_reply(parent_id)
    else:
        placement = await builder.place_root(TARGET)
    comment = placement.apply(
        Comment(
            target_type=TARGET.target_type,
            target_id=TARGET.target_id,
            user_id=user_id,
            content="hello there",
        )
    )
    return await store.create_comment(comment)


class TestPlacement:
    """Tests for floor numbers, depth and reply chains."""

    @pytest.mark.asyncio
    async def test_nested_replies_under_article(
        self, builder: ThreadBuilder, store: InMemoryCommentStore
    ):
        """Root A, reply B to A, reply C to B."""
        a = await _post(builder, store)
        b = await _post(builder, store, parent_id=a.id)
        c = await _post(builder, store, parent_id=b.id)

        assert (a.floor_number, a.depth, a.root_id, a.reply_chain) == (1, 0, a.id, [])
        assert b.sub_floor_number == 1
        assert b.depth == 1
        assert b.reply_chain == [a.id]
        assert b.root_id == a.id
        assert b.floor_number == a.floor_number
        assert c.sub_floor_number == 1
        assert c.depth == 2
        assert c.reply_chain == [a.id, b.id]
        assert c.root_id == a.id

    @pytest.mark.asyncio
    async def test_floors_increase_per_target(
        self, builder: ThreadBuilder, store: InMemoryCommentStore
    ):
        first = await _post(builder, store)
        second = await _post(builder, store)
        other = await builder.place_root(CommentTarget(TargetType.VIDEO, 42))

        assert (first.floor_number, second.floor_number) == (1, 2)
        assert other.floor_number == 1

    @pytest.mark.asyncio
    async def test_sub_floors_scoped_to_parent(
        self, builder: ThreadBuilder, store: InMemoryCommentStore
    ):
        root = await _post(builder, store)
        r1 = await _post(builder, store, parent_id=root.id)
        r2 = await _post(builder, store, parent_id=root.id)
        nested = await _post(builder, store, parent_id=r1.id)

        assert (r1.sub_floor_number, r2.sub_floor_number) == (1, 2)
        assert nested.sub_floor_number == 1

    @pytest.mark.asyncio
    async def test_missing_parent(self, builder: ThreadBuilder):
        with pytest.raises(NotFoundError):
            await builder.place_reply(12345)

    @pytest.mark.asyncio
    async def test_deleted_parent(
        self, builder: ThreadBuilder, store: InMemoryCommentStore
    ):
        root = await _post(builder, store)
        await store.soft_delete(root.id, root.created_at)

        with pytest.raises(NotFoundError):
            await builder.place_reply(root.id)


class TestConcurrency:
    """Concurrent posts never share a floor number."""

    @pytest.mark.asyncio
    async def test_concurrent_roots_get_unique_floors(
        self, builder: ThreadBuilder, store: InMemoryCommentStore
    ):
        comments = await asyncio.gather(*(_post(builder, store) for _ in range(25)))

        floors = sorted(c.floor_number for c in comments)
        assert floors == list(range(1, 26))

    @pytest.mark.asyncio
    async def test_concurrent_replies_get_unique_sub_floors(
        self, builder: ThreadBuilder, store: InMemoryCommentStore
    ):
        root = await _post(builder, store)

        replies = await asyncio.gather(
            *(_post(builder, store, parent_id=root.id) for _ in range(10))
        )

        assert sorted(r.sub_floor_number for r in replies) == list(range(1, 11))
