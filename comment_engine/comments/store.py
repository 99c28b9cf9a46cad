"""Comment persistence contract and the in-memory implementation.

Everything the engine persists goes through ``CommentStore``. Scoped floor
counters, counter increments, status transitions and report resolution are
atomic operations of the store, never read-then-write sequences in callers.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol

from comment_engine.moderation.matcher import fold
from comment_engine.moderation.models import SensitiveWord
from comment_engine.reports.rules import FoldRule

from .models import (
    COUNTER_FIELDS,
    AuthorReply,
    Comment,
    CommentReport,
    CommentStatus,
    CommentTarget,
    FloorBuildingRecord,
    HotListEntry,
    ReportStatus,
)


# Fields a caller may overwrite through update_comment
MUTABLE_FIELDS = frozenset(
    {
        "root_id",
        "content",
        "is_pinned",
        "is_hot",
        "is_featured",
        "hot_score",
        "quality_score",
        "audit_status",
        "risk_level",
        "audit_reason",
    }
)


class CommentStore(Protocol):
    """Persistence operations required by the comment engine."""

    # Comments
    async def create_comment(self, comment: Comment) -> Comment: ...
    async def get_comment(self, comment_id: int) -> Comment | None: ...
    async def update_comment(
        self, comment_id: int, **fields: Any
    ) -> Comment | None: ...
    async def soft_delete(self, comment_id: int, deleted_at: datetime) -> bool: ...
    async def purge_comment(self, comment_id: int) -> bool: ...
    async def transition_status(
        self, comment_id: int, to_status: int, from_statuses: frozenset[int]
    ) -> bool: ...
    async def batch_update_status(self, comment_ids: list[int], status: int) -> int: ...
    async def increment_counter(
        self, comment_id: int, counter: str, delta: int
    ) -> None: ...

    # Structure
    async def next_floor_number(self, target: CommentTarget) -> int: ...
    async def next_sub_floor_number(self, parent_id: int) -> int: ...
    async def list_by_target(
        self, target: CommentTarget, roots_only: bool = False
    ) -> list[Comment]: ...
    async def list_by_parent(self, parent_id: int) -> list[Comment]: ...
    async def list_by_root(self, root_id: int) -> list[Comment]: ...
    async def list_by_user(self, user_id: int) -> list[Comment]: ...
    async def list_targets(self) -> list[CommentTarget]: ...

    # Interactions
    async def add_interaction(
        self, comment_id: int, user_id: int, kind: int
    ) -> bool: ...
    async def remove_interaction(
        self, comment_id: int, user_id: int, kind: int
    ) -> bool: ...

    # Reports
    async def create_report(self, report: CommentReport) -> CommentReport: ...
    async def get_report(self, report_id: int) -> CommentReport | None: ...
    async def resolve_report(
        self,
        report_id: int,
        status: int,
        handler_id: int,
        result: str,
        handled_at: datetime,
    ) -> bool: ...
    async def count_reports(self, comment_id: int) -> int: ...
    async def list_reports(
        self, status: int, limit: int, offset: int = 0
    ) -> list[CommentReport]: ...

    # Sensitive words
    async def list_sensitive_words(
        self, enabled_only: bool = True
    ) -> list[SensitiveWord]: ...
    async def save_sensitive_word(self, word: SensitiveWord) -> SensitiveWord: ...
    async def delete_sensitive_word(self, word: str) -> bool: ...

    # Floor building, hot lists, fold rules, author replies
    async def record_floor_building(
        self, target: CommentTarget, user_id: int, comment_id: int, at: datetime
    ) -> FloorBuildingRecord: ...
    async def get_floor_building(
        self, target: CommentTarget, user_id: int
    ) -> FloorBuildingRecord | None: ...
    async def replace_hot_list(
        self, target: CommentTarget, entries: list[HotListEntry]
    ) -> None: ...
    async def get_hot_list(self, target: CommentTarget) -> list[HotListEntry]: ...
    async def list_fold_rules(self) -> list[FoldRule]: ...
    async def save_fold_rule(self, rule: FoldRule) -> None: ...
    async def create_author_reply(self, reply: AuthorReply) -> AuthorReply: ...
    async def list_author_replies(self, comment_id: int) -> list[AuthorReply]: ...


class InMemoryCommentStore:
    """Process-local ``CommentStore``.

    Returned entities are copies; callers never hold references into the
    store. A single asyncio lock guards id allocation, scoped counters and
    compare-and-set transitions.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._report_ids = itertools.count(1)
        self._reply_ids = itertools.count(1)
        self._word_ids = itertools.count(1)
        self._comments: dict[int, Comment] = {}
        self._floors: dict[CommentTarget, int] = {}
        self._sub_floors: dict[int, int] = {}
        self._interactions: set[tuple[int, int, int]] = set()
        self._reports: dict[int, CommentReport] = {}
        self._words: dict[str, SensitiveWord] = {}
        self._floor_buildings: dict[tuple[CommentTarget, int], FloorBuildingRecord] = {}
        self._hot_lists: dict[CommentTarget, list[HotListEntry]] = {}
        self._fold_rules: dict[str, FoldRule] = {}
        self._author_replies: dict[int, list[AuthorReply]] = {}

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def create_comment(self, comment: Comment) -> Comment:
        async with self._lock:
            stored = copy.deepcopy(comment)
            stored.id = next(self._ids)
            if stored.is_root:
                stored.root_id = stored.id
            now = datetime.now(UTC)
            stored.created_at = stored.created_at or now
            stored.updated_at = stored.updated_at or stored.created_at
            self._comments[stored.id] = stored
            return copy.deepcopy(stored)

    async def get_comment(self, comment_id: int) -> Comment | None:
        comment = self._comments.get(comment_id)
        return copy.deepcopy(comment) if comment else None

    async def update_comment(self, comment_id: int, **fields: Any) -> Comment | None:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be updated directly: {sorted(unknown)}"
            raise ValueError(msg)
        async with self._lock:
            comment = self._comments.get(comment_id)
            if comment is None:
                return None
            updated = replace(comment, **fields, updated_at=datetime.now(UTC))
            self._comments[comment_id] = updated
            return copy.deepcopy(updated)

    async def soft_delete(self, comment_id: int, deleted_at: datetime) -> bool:
        async with self._lock:
            comment = self._comments.get(comment_id)
            if comment is None or comment.status == CommentStatus.DELETED:
                return False
            comment.status = CommentStatus.DELETED
            comment.deleted_at = deleted_at
            comment.updated_at = deleted_at
            return True

    async def purge_comment(self, comment_id: int) -> bool:
        async with self._lock:
            return self._comments.pop(comment_id, None) is not None

    async def transition_status(
        self, comment_id: int, to_status: int, from_statuses: frozenset[int]
    ) -> bool:
        async with self._lock:
            comment = self._comments.get(comment_id)
            if comment is None or comment.status not in from_statuses:
                return False
            comment.status = to_status
            comment.updated_at = datetime.now(UTC)
            return True

    async def batch_update_status(self, comment_ids: list[int], status: int) -> int:
        now = datetime.now(UTC)
        updated = 0
        async with self._lock:
            for comment_id in comment_ids:
                comment = self._comments.get(comment_id)
                if comment is None:
                    continue
                comment.status = status
                comment.updated_at = now
                if status == CommentStatus.DELETED:
                    comment.deleted_at = now
                updated += 1
        return updated

    async def increment_counter(
        self, comment_id: int, counter: str, delta: int
    ) -> None:
        if counter not in COUNTER_FIELDS:
            msg = f"Unknown counter: {counter}"
            raise ValueError(msg)
        async with self._lock:
            comment = self._comments.get(comment_id)
            if comment is not None:
                setattr(comment, counter, getattr(comment, counter) + delta)

    # ==========================================================================
    # Structure
    # ==========================================================================

    async def next_floor_number(self, target: CommentTarget) -> int:
        async with self._lock:
            current = self._floors.get(target)
            if current is None:
                current = max(
                    (
                        c.floor_number
                        for c in self._comments.values()
                        if c.is_root and c.target == target
                    ),
                    default=0,
                )
            self._floors[target] = current + 1
            return current + 1

    async def next_sub_floor_number(self, parent_id: int) -> int:
        async with self._lock:
            current = self._sub_floors.get(parent_id)
            if current is None:
                current = max(
                    (
                        c.sub_floor_number
                        for c in self._comments.values()
                        if c.parent_id == parent_id
                    ),
                    default=0,
                )
            self._sub_floors[parent_id] = current + 1
            return current + 1

    def _select(self, predicate) -> list[Comment]:
        return [
            copy.deepcopy(c)
            for c in sorted(self._comments.values(), key=lambda c: c.id)
            if predicate(c)
        ]

    async def list_by_target(
        self, target: CommentTarget, roots_only: bool = False
    ) -> list[Comment]:
        return self._select(
            lambda c: c.target == target and (c.is_root or not roots_only)
        )

    async def list_by_parent(self, parent_id: int) -> list[Comment]:
        return self._select(lambda c: c.parent_id == parent_id and parent_id != 0)

    async def list_by_root(self, root_id: int) -> list[Comment]:
        return self._select(lambda c: c.root_id == root_id)

    async def list_by_user(self, user_id: int) -> list[Comment]:
        return self._select(lambda c: c.user_id == user_id)

    async def list_targets(self) -> list[CommentTarget]:
        return sorted(
            {c.target for c in self._comments.values()},
            key=lambda t: (t.target_type, t.target_id),
        )

    # ==========================================================================
    # Interactions
    # ==========================================================================

    async def add_interaction(self, comment_id: int, user_id: int, kind: int) -> bool:
        key = (comment_id, user_id, int(kind))
        async with self._lock:
            if key in self._interactions:
                return False
            self._interactions.add(key)
            return True

    async def remove_interaction(
        self, comment_id: int, user_id: int, kind: int
    ) -> bool:
        key = (comment_id, user_id, int(kind))
        async with self._lock:
            if key not in self._interactions:
                return False
            self._interactions.discard(key)
            return True

    # ==========================================================================
    # Reports
    # ==========================================================================

    async def create_report(self, report: CommentReport) -> CommentReport:
        async with self._lock:
            stored = replace(report, id=next(self._report_ids))
            self._reports[stored.id] = stored
            return replace(stored)

    async def get_report(self, report_id: int) -> CommentReport | None:
        report = self._reports.get(report_id)
        return replace(report) if report else None

    async def resolve_report(
        self,
        report_id: int,
        status: int,
        handler_id: int,
        result: str,
        handled_at: datetime,
    ) -> bool:
        async with self._lock:
            report = self._reports.get(report_id)
            if report is None or report.status != ReportStatus.PENDING:
                return False
            self._reports[report_id] = replace(
                report,
                status=status,
                handler_id=handler_id,
                handle_result=result,
                handled_at=handled_at,
            )
            return True

    async def count_reports(self, comment_id: int) -> int:
        return sum(1 for r in self._reports.values() if r.comment_id == comment_id)

    async def list_reports(
        self, status: int, limit: int, offset: int = 0
    ) -> list[CommentReport]:
        matching = sorted(
            (r for r in self._reports.values() if r.status == status),
            key=lambda r: r.id,
            reverse=True,
        )
        return [replace(r) for r in matching[offset : offset + limit]]

    # ==========================================================================
    # Sensitive words
    # ==========================================================================

    async def list_sensitive_words(
        self, enabled_only: bool = True
    ) -> list[SensitiveWord]:
        return [
            replace(w)
            for w in sorted(self._words.values(), key=lambda w: w.id)
            if w.enabled or not enabled_only
        ]

    async def save_sensitive_word(self, word: SensitiveWord) -> SensitiveWord:
        key = fold(word.word.strip())
        async with self._lock:
            existing = self._words.get(key)
            now = datetime.now(UTC)
            stored = replace(
                word,
                id=existing.id if existing else next(self._word_ids),
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._words[key] = stored
            return replace(stored)

    async def delete_sensitive_word(self, word: str) -> bool:
        async with self._lock:
            return self._words.pop(fold(word.strip()), None) is not None

    # ==========================================================================
    # Floor building, hot lists, fold rules, author replies
    # ==========================================================================

    async def record_floor_building(
        self, target: CommentTarget, user_id: int, comment_id: int, at: datetime
    ) -> FloorBuildingRecord:
        async with self._lock:
            record = self._floor_buildings.get((target, user_id))
            if record is None:
                record = FloorBuildingRecord(
                    target_type=target.target_type,
                    target_id=target.target_id,
                    user_id=user_id,
                    first_comment_at=at,
                )
                self._floor_buildings[(target, user_id)] = record
            record.comment_ids.append(comment_id)
            record.floor_count = len(record.comment_ids)
            record.last_comment_at = at
            return copy.deepcopy(record)

    async def get_floor_building(
        self, target: CommentTarget, user_id: int
    ) -> FloorBuildingRecord | None:
        record = self._floor_buildings.get((target, user_id))
        return copy.deepcopy(record) if record else None

    async def replace_hot_list(
        self, target: CommentTarget, entries: list[HotListEntry]
    ) -> None:
        snapshot = [replace(e) for e in entries]
        async with self._lock:
            self._hot_lists[target] = snapshot

    async def get_hot_list(self, target: CommentTarget) -> list[HotListEntry]:
        return [replace(e) for e in self._hot_lists.get(target, [])]

    async def list_fold_rules(self) -> list[FoldRule]:
        return list(self._fold_rules.values())

    async def save_fold_rule(self, rule: FoldRule) -> None:
        async with self._lock:
            self._fold_rules[rule.name] = rule

    async def create_author_reply(self, reply: AuthorReply) -> AuthorReply:
        async with self._lock:
            stored = replace(reply, id=next(self._reply_ids))
            self._author_replies.setdefault(stored.comment_id, []).append(stored)
            return replace(stored)

    async def list_author_replies(self, comment_id: int) -> list[AuthorReply]:
        return [replace(r) for r in self._author_replies.get(comment_id, [])]
