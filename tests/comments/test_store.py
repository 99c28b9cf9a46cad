"""Tests for the in-memory comment store."""

from datetime import UTC, datetime

import pytest

from comment_engine.comments.models import (
    Comment,
    CommentStatus,
    CommentTarget,
    HotListEntry,
    ReportStatus,
    TargetType,
    create_report,
)
from comment_engine.comments.store import InMemoryCommentStore
from comment_engine.reports.rules import FoldRule, ReportCountRule


TARGET = CommentTarget(TargetType.POST, 7)


def _comment(**kwargs) -> Comment:
    return Comment(
        target_type=TARGET.target_type,
        target_id=TARGET.target_id,
        user_id=kwargs.pop("user_id", 1),
        content=kwargs.pop("content", "stored text"),
        **kwargs,
    )


class TestComments:
    """Tests for comment rows."""

    @pytest.mark.asyncio
    async def test_returned_entities_are_copies(self, store: InMemoryCommentStore):
        created = await store.create_comment(_comment())
        created.content = "mutated"
        created.reply_chain.append(5)

        stored = await store.get_comment(created.id)

        assert stored.content == "stored text"
        assert stored.reply_chain == []

    @pytest.mark.asyncio
    async def test_update_rejects_structural_fields(
        self, store: InMemoryCommentStore
    ):
        created = await store.create_comment(_comment())

        with pytest.raises(ValueError, match="floor_number"):
            await store.update_comment(created.id, floor_number=9)

    @pytest.mark.asyncio
    async def test_update_missing_comment(self, store: InMemoryCommentStore):
        assert await store.update_comment(5, is_hot=True) is None

    @pytest.mark.asyncio
    async def test_transition_is_compare_and_set(self, store: InMemoryCommentStore):
        created = await store.create_comment(_comment())
        allowed = frozenset({CommentStatus.NORMAL})

        assert await store.transition_status(
            created.id, CommentStatus.FOLDED, allowed
        )
        assert not await store.transition_status(
            created.id, CommentStatus.FOLDED, allowed
        )

    @pytest.mark.asyncio
    async def test_soft_delete_once(self, store: InMemoryCommentStore):
        created = await store.create_comment(_comment())
        now = datetime.now(UTC)

        assert await store.soft_delete(created.id, now) is True
        assert await store.soft_delete(created.id, now) is False
        stored = await store.get_comment(created.id)
        assert stored.deleted_at == now

    @pytest.mark.asyncio
    async def test_unknown_counter(self, store: InMemoryCommentStore):
        created = await store.create_comment(_comment())

        with pytest.raises(ValueError, match="Unknown counter"):
            await store.increment_counter(created.id, "view_count", 1)

    @pytest.mark.asyncio
    async def test_floor_counter_seeds_from_existing_rows(
        self, store: InMemoryCommentStore
    ):
        await store.create_comment(_comment(floor_number=4))

        assert await store.next_floor_number(TARGET) == 5

    @pytest.mark.asyncio
    async def test_list_targets(self, store: InMemoryCommentStore):
        await store.create_comment(_comment())
        await store.create_comment(
            Comment(target_type=TargetType.ARTICLE, target_id=1, user_id=1, content="x")
        )

        targets = await store.list_targets()

        assert targets == [CommentTarget(TargetType.ARTICLE, 1), TARGET]


class TestReports:
    """Tests for report rows."""

    @pytest.mark.asyncio
    async def test_resolve_only_pending(self, store: InMemoryCommentStore):
        report = await store.create_report(create_report(1, 2, 1))
        now = datetime.now(UTC)

        assert await store.resolve_report(report.id, ReportStatus.APPROVED, 9, "", now)
        assert not await store.resolve_report(
            report.id, ReportStatus.REJECTED, 9, "", now
        )
        stored = await store.get_report(report.id)
        assert stored.status == ReportStatus.APPROVED
        assert stored.handler_id == 9

    @pytest.mark.asyncio
    async def test_list_reports_newest_first(self, store: InMemoryCommentStore):
        first = await store.create_report(create_report(1, 2, 1))
        second = await store.create_report(create_report(1, 3, 1))

        reports = await store.list_reports(ReportStatus.PENDING, limit=10)

        assert [r.id for r in reports] == [second.id, first.id]
        assert await store.count_reports(1) == 2


class TestSnapshots:
    """Tests for hot lists and fold rules."""

    @pytest.mark.asyncio
    async def test_replace_hot_list(self, store: InMemoryCommentStore):
        entry = HotListEntry(
            target_type=TARGET.target_type,
            target_id=TARGET.target_id,
            comment_id=1,
            rank=1,
            hot_score=3.5,
        )
        await store.replace_hot_list(TARGET, [entry])
        await store.replace_hot_list(TARGET, [])

        assert await store.get_hot_list(TARGET) == []

    @pytest.mark.asyncio
    async def test_fold_rules_keyed_by_name(self, store: InMemoryCommentStore):
        await store.save_fold_rule(FoldRule("reports", ReportCountRule(5)))
        await store.save_fold_rule(FoldRule("reports", ReportCountRule(2)))

        rules = await store.list_fold_rules()

        assert rules == [FoldRule("reports", ReportCountRule(2))]
