"""Cassandra-backed ``CommentStore``.

Layout:
- Comment rows keyed by id, counters in a separate COUNTER table
- Query tables by target, parent, root and user hold only ids
- Ids and scoped floor counters come from Redis INCR; a floor key is seeded
  once from the current maximum in Cassandra with SET NX
- Status changes and report resolution are lightweight transactions
"""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

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
from .store import MUTABLE_FIELDS


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)

# All targets share one registry partition
TARGET_BUCKET = 0

# Attempts for a status compare-and-set that lost a race
CAS_ATTEMPTS = 3

ID_KEY = "comments:id:{kind}"
FLOOR_KEY = "comments:floor:{target}"
SUB_FLOOR_KEY = "comments:subfloor:{parent_id}"


class CassandraCommentStore:
    """``CommentStore`` on Cassandra plus Redis counters."""

    def __init__(self, session: Session, keyspace: str, redis: Redis) -> None:
        """Initialize with Cassandra session and Redis."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self._update_statements: dict[tuple[str, ...], Any] = {}
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        ks = self.keyspace

        # Comments
        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {ks}.comments
            (id, target_type, target_id, user_id, username, avatar, parent_id, root_id,
             reply_to_user_id, reply_to_comment_id, floor_number, sub_floor_number,
             reply_chain, depth, content, content_kind, images, mentioned_user_ids,
             status, is_pinned, is_author, is_hot, is_featured, hot_score,
             quality_score, audit_status, risk_level, audit_reason, ip, ip_location,
             device_type, user_agent, created_at, updated_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                    ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {ks}.comments WHERE id = ?
        """)

        self._get_counters = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_counters WHERE id = ?
        """)

        self._delete_comment = self.session.prepare(f"""
            DELETE FROM {ks}.comments WHERE id = ?
        """)

        self._delete_counters = self.session.prepare(f"""
            DELETE FROM {ks}.comment_counters WHERE id = ?
        """)

        self._cas_status = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET status = ?, updated_at = ?
            WHERE id = ?
            IF status = ?
        """)

        self._cas_delete = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET status = ?, deleted_at = ?, updated_at = ?
            WHERE id = ?
            IF status = ?
        """)

        self._set_status = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET status = ?, updated_at = ?
            WHERE id = ?
        """)

        self._set_deleted = self.session.prepare(f"""
            UPDATE {ks}.comments
            SET status = ?, deleted_at = ?, updated_at = ?
            WHERE id = ?
        """)

        self._incr_counter = {
            counter: self.session.prepare(f"""
                UPDATE {ks}.comment_counters
                SET {counter} = {counter} + ?
                WHERE id = ?
            """)
            for counter in COUNTER_FIELDS
        }

        # Query tables
        self._insert_by_target = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_target
            (target_type, target_id, comment_id, parent_id, floor_number)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._insert_by_parent = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_parent
                (parent_id, comment_id, sub_floor_number)
            VALUES (?, ?, ?)
        """)

        self._insert_by_root = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_root (root_id, comment_id) VALUES (?, ?)
        """)

        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_user (user_id, comment_id) VALUES (?, ?)
        """)

        self._insert_target = self.session.prepare(f"""
            INSERT INTO {ks}.comment_targets (bucket, target_type, target_id)
            VALUES (?, ?, ?)
        """)

        self._get_by_target = self.session.prepare(f"""
            SELECT comment_id, parent_id, floor_number FROM {ks}.comments_by_target
            WHERE target_type = ? AND target_id = ?
        """)

        self._get_by_parent = self.session.prepare(f"""
            SELECT comment_id, sub_floor_number FROM {ks}.comments_by_parent
            WHERE parent_id = ?
        """)

        self._get_by_root = self.session.prepare(f"""
            SELECT comment_id FROM {ks}.comments_by_root WHERE root_id = ?
        """)

        self._get_by_user = self.session.prepare(f"""
            SELECT comment_id FROM {ks}.comments_by_user WHERE user_id = ?
        """)

        self._get_targets = self.session.prepare(f"""
            SELECT target_type, target_id FROM {ks}.comment_targets WHERE bucket = ?
        """)

        self._delete_by_target = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_target
            WHERE target_type = ? AND target_id = ? AND comment_id = ?
        """)

        self._delete_by_parent = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_parent WHERE parent_id = ? AND comment_id = ?
        """)

        self._delete_by_root = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_root WHERE root_id = ? AND comment_id = ?
        """)

        self._delete_by_user = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_user WHERE user_id = ? AND comment_id = ?
        """)

        # Interactions
        self._insert_interaction = self.session.prepare(f"""
            INSERT INTO {ks}.comment_interactions
                (comment_id, user_id, kind, created_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._delete_interaction = self.session.prepare(f"""
            DELETE FROM {ks}.comment_interactions
            WHERE comment_id = ? AND user_id = ? AND kind = ?
            IF EXISTS
        """)

        # Reports
        self._insert_report = self.session.prepare(f"""
            INSERT INTO {ks}.comment_reports
            (id, comment_id, reporter_id, reason, description, status, handler_id,
             handled_at, handle_result, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_report_by_comment = self.session.prepare(f"""
            INSERT INTO {ks}.comment_reports_by_comment (comment_id, report_id)
            VALUES (?, ?)
        """)

        self._insert_report_by_status = self.session.prepare(f"""
            INSERT INTO {ks}.comment_reports_by_status (status, report_id)
            VALUES (?, ?)
        """)

        self._delete_report_by_status = self.session.prepare(f"""
            DELETE FROM {ks}.comment_reports_by_status
            WHERE status = ? AND report_id = ?
        """)

        self._get_report = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_reports WHERE id = ?
        """)

        self._resolve_report = self.session.prepare(f"""
            UPDATE {ks}.comment_reports
            SET status = ?, handler_id = ?, handle_result = ?, handled_at = ?
            WHERE id = ?
            IF status = ?
        """)

        self._count_reports = self.session.prepare(f"""
            SELECT COUNT(*) FROM {ks}.comment_reports_by_comment WHERE comment_id = ?
        """)

        self._get_reports_by_status = self.session.prepare(f"""
            SELECT report_id FROM {ks}.comment_reports_by_status
            WHERE status = ?
            LIMIT ?
        """)

        # Sensitive words
        self._get_words = self.session.prepare(f"""
            SELECT * FROM {ks}.sensitive_words
        """)

        self._get_word = self.session.prepare(f"""
            SELECT * FROM {ks}.sensitive_words WHERE word = ?
        """)

        self._insert_word = self.session.prepare(f"""
            INSERT INTO {ks}.sensitive_words
            (word, id, level, action, replacement, enabled, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._delete_word = self.session.prepare(f"""
            DELETE FROM {ks}.sensitive_words WHERE word = ? IF EXISTS
        """)

        # Floor building
        self._append_floor_building = self.session.prepare(f"""
            UPDATE {ks}.comment_floor_buildings
            SET comment_ids = comment_ids + ?, last_comment_at = ?
            WHERE target_type = ? AND target_id = ? AND user_id = ?
        """)

        self._update_floor_building_stats = self.session.prepare(f"""
            UPDATE {ks}.comment_floor_buildings
            SET floor_count = ?, first_comment_at = ?
            WHERE target_type = ? AND target_id = ? AND user_id = ?
        """)

        self._get_floor_building = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_floor_buildings
            WHERE target_type = ? AND target_id = ? AND user_id = ?
        """)

        # Hot lists
        self._insert_hot_entry = self.session.prepare(f"""
            INSERT INTO {ks}.comment_hot_lists
            (target_type, target_id, rank, comment_id, hot_score, user_id, username,
             content, like_count, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._trim_hot_list = self.session.prepare(f"""
            DELETE FROM {ks}.comment_hot_lists
            WHERE target_type = ? AND target_id = ? AND rank > ?
        """)

        self._get_hot_list = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_hot_lists
            WHERE target_type = ? AND target_id = ?
        """)

        # Fold rules
        self._get_fold_rules = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_fold_rules
        """)

        self._insert_fold_rule = self.session.prepare(f"""
            INSERT INTO {ks}.comment_fold_rules (name, rule_type, config, enabled)
            VALUES (?, ?, ?, ?)
        """)

        # Author replies
        self._insert_author_reply = self.session.prepare(f"""
            INSERT INTO {ks}.comment_author_replies
            (comment_id, id, author_id, content, created_at)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._get_author_replies = self.session.prepare(f"""
            SELECT * FROM {ks}.comment_author_replies WHERE comment_id = ?
        """)

    # ==========================================================================
    # Redis counters
    # ==========================================================================

    async def _next_id(self, kind: str) -> int:
        return int(await self.redis.incr(ID_KEY.format(kind=kind)))

    async def _next_scoped(self, key: str, seed) -> int:
        """INCR ``key``, seeding it from ``seed()`` the first time."""
        if not await self.redis.exists(key):
            current = await seed()
            await self.redis.set(key, current, nx=True)
        return int(await self.redis.incr(key))

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def create_comment(self, comment: Comment) -> Comment:
        stored = copy.deepcopy(comment)
        stored.id = await self._next_id("comment")
        if stored.is_root:
            stored.root_id = stored.id
        now = datetime.now(UTC)
        stored.created_at = stored.created_at or now
        stored.updated_at = stored.updated_at or stored.created_at

        await self.session.aexecute(
            self._insert_comment,
            [
                stored.id,
                int(stored.target_type),
                stored.target_id,
                stored.user_id,
                stored.username,
                stored.avatar,
                stored.parent_id,
                stored.root_id,
                stored.reply_to_user_id,
                stored.reply_to_comment_id,
                stored.floor_number,
                stored.sub_floor_number,
                list(stored.reply_chain),
                stored.depth,
                stored.content,
                int(stored.content_kind),
                list(stored.images),
                list(stored.mentioned_user_ids),
                int(stored.status),
                stored.is_pinned,
                stored.is_author,
                stored.is_hot,
                stored.is_featured,
                stored.hot_score,
                stored.quality_score,
                int(stored.audit_status),
                int(stored.risk_level),
                stored.audit_reason,
                stored.ip,
                stored.ip_location,
                stored.device_type,
                stored.user_agent,
                stored.created_at,
                stored.updated_at,
                stored.deleted_at,
            ],
        )
        await self.session.aexecute(
            self._insert_by_target,
            [
                int(stored.target_type),
                stored.target_id,
                stored.id,
                stored.parent_id,
                stored.floor_number,
            ],
        )
        if not stored.is_root:
            await self.session.aexecute(
                self._insert_by_parent,
                [stored.parent_id, stored.id, stored.sub_floor_number],
            )
        await self.session.aexecute(self._insert_by_root, [stored.root_id, stored.id])
        await self.session.aexecute(self._insert_by_user, [stored.user_id, stored.id])
        await self.session.aexecute(
            self._insert_target,
            [TARGET_BUCKET, int(stored.target_type), stored.target_id],
        )
        logger.debug("comment_row_inserted", comment_id=stored.id)
        return stored

    async def get_comment(self, comment_id: int) -> Comment | None:
        result = await self.session.aexecute(self._get_comment, [comment_id])
        row = result.one()
        if not row:
            return None
        counters = await self.session.aexecute(self._get_counters, [comment_id])
        return Comment.from_row(row, counters.one())

    async def _get_many(self, comment_ids: list[int]) -> list[Comment]:
        comments = []
        for comment_id in sorted(set(comment_ids)):
            comment = await self.get_comment(comment_id)
            if comment is not None:
                comments.append(comment)
        return comments

    def _update_statement(self, fields: tuple[str, ...]):
        statement = self._update_statements.get(fields)
        if statement is None:
            assignments = ", ".join(f"{name} = ?" for name in (*fields, "updated_at"))
            statement = self.session.prepare(f"""
                UPDATE {self.keyspace}.comments SET {assignments} WHERE id = ?
            """)
            self._update_statements[fields] = statement
        return statement

    async def update_comment(self, comment_id: int, **fields: Any) -> Comment | None:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be updated directly: {sorted(unknown)}"
            raise ValueError(msg)
        if await self.get_comment(comment_id) is None:
            return None
        names = tuple(sorted(fields))
        values = [
            int(fields[n]) if n in ("audit_status", "risk_level") else fields[n]
            for n in names
        ]
        await self.session.aexecute(
            self._update_statement(names),
            [*values, datetime.now(UTC), comment_id],
        )
        return await self.get_comment(comment_id)

    async def _current_status(self, comment_id: int) -> int | None:
        result = await self.session.aexecute(self._get_comment, [comment_id])
        row = result.one()
        return row.status if row else None

    async def transition_status(
        self, comment_id: int, to_status: int, from_statuses: frozenset[int]
    ) -> bool:
        for _ in range(CAS_ATTEMPTS):
            current = await self._current_status(comment_id)
            if current is None or current not in from_statuses:
                return False
            result = await self.session.aexecute(
                self._cas_status,
                [int(to_status), datetime.now(UTC), comment_id, current],
            )
            if result.was_applied:
                return True
        logger.warning("status_transition_contended", comment_id=comment_id)
        return False

    async def soft_delete(self, comment_id: int, deleted_at: datetime) -> bool:
        for _ in range(CAS_ATTEMPTS):
            current = await self._current_status(comment_id)
            if current is None or current == CommentStatus.DELETED:
                return False
            result = await self.session.aexecute(
                self._cas_delete,
                [
                    int(CommentStatus.DELETED),
                    deleted_at,
                    deleted_at,
                    comment_id,
                    current,
                ],
            )
            if result.was_applied:
                return True
        logger.warning("soft_delete_contended", comment_id=comment_id)
        return False

    async def purge_comment(self, comment_id: int) -> bool:
        comment = await self.get_comment(comment_id)
        if comment is None:
            return False
        await self.session.aexecute(
            self._delete_by_target,
            [int(comment.target_type), comment.target_id, comment_id],
        )
        if not comment.is_root:
            await self.session.aexecute(
                self._delete_by_parent, [comment.parent_id, comment_id]
            )
        await self.session.aexecute(self._delete_by_root, [comment.root_id, comment_id])
        await self.session.aexecute(self._delete_by_user, [comment.user_id, comment_id])
        await self.session.aexecute(self._delete_counters, [comment_id])
        await self.session.aexecute(self._delete_comment, [comment_id])
        logger.info("comment_purged", comment_id=comment_id)
        return True

    async def batch_update_status(self, comment_ids: list[int], status: int) -> int:
        now = datetime.now(UTC)
        updated = 0
        for comment_id in comment_ids:
            if await self._current_status(comment_id) is None:
                continue
            if status == CommentStatus.DELETED:
                await self.session.aexecute(
                    self._set_deleted, [int(status), now, now, comment_id]
                )
            else:
                await self.session.aexecute(
                    self._set_status, [int(status), now, comment_id]
                )
            updated += 1
        return updated

    async def increment_counter(
        self, comment_id: int, counter: str, delta: int
    ) -> None:
        statement = self._incr_counter.get(counter)
        if statement is None:
            msg = f"Unknown counter: {counter}"
            raise ValueError(msg)
        await self.session.aexecute(statement, [delta, comment_id])

    # ==========================================================================
    # Structure
    # ==========================================================================

    async def next_floor_number(self, target: CommentTarget) -> int:
        async def seed() -> int:
            result = await self.session.aexecute(
                self._get_by_target, [int(target.target_type), target.target_id]
            )
            return max(
                (r.floor_number or 0 for r in result if not r.parent_id), default=0
            )

        return await self._next_scoped(FLOOR_KEY.format(target=target.key), seed)

    async def next_sub_floor_number(self, parent_id: int) -> int:
        async def seed() -> int:
            result = await self.session.aexecute(self._get_by_parent, [parent_id])
            return max((r.sub_floor_number or 0 for r in result), default=0)

        return await self._next_scoped(
            SUB_FLOOR_KEY.format(parent_id=parent_id), seed
        )

    async def list_by_target(
        self, target: CommentTarget, roots_only: bool = False
    ) -> list[Comment]:
        result = await self.session.aexecute(
            self._get_by_target, [int(target.target_type), target.target_id]
        )
        ids = [r.comment_id for r in result if not roots_only or not r.parent_id]
        return await self._get_many(ids)

    async def list_by_parent(self, parent_id: int) -> list[Comment]:
        result = await self.session.aexecute(self._get_by_parent, [parent_id])
        return await self._get_many([r.comment_id for r in result])

    async def list_by_root(self, root_id: int) -> list[Comment]:
        result = await self.session.aexecute(self._get_by_root, [root_id])
        return await self._get_many([r.comment_id for r in result])

    async def list_by_user(self, user_id: int) -> list[Comment]:
        result = await self.session.aexecute(self._get_by_user, [user_id])
        return await self._get_many([r.comment_id for r in result])

    async def list_targets(self) -> list[CommentTarget]:
        result = await self.session.aexecute(self._get_targets, [TARGET_BUCKET])
        return [CommentTarget(r.target_type, r.target_id) for r in result]

    # ==========================================================================
    # Interactions
    # ==========================================================================

    async def add_interaction(self, comment_id: int, user_id: int, kind: int) -> bool:
        result = await self.session.aexecute(
            self._insert_interaction,
            [comment_id, user_id, int(kind), datetime.now(UTC)],
        )
        return bool(result.was_applied)

    async def remove_interaction(
        self, comment_id: int, user_id: int, kind: int
    ) -> bool:
        result = await self.session.aexecute(
            self._delete_interaction, [comment_id, user_id, int(kind)]
        )
        return bool(result.was_applied)

    # ==========================================================================
    # Reports
    # ==========================================================================

    async def create_report(self, report: CommentReport) -> CommentReport:
        stored = replace(report)
        stored.id = await self._next_id("report")
        await self.session.aexecute(
            self._insert_report,
            [
                stored.id,
                stored.comment_id,
                stored.reporter_id,
                int(stored.reason),
                stored.description,
                int(stored.status),
                stored.handler_id,
                stored.handled_at,
                stored.handle_result,
                stored.created_at,
            ],
        )
        await self.session.aexecute(
            self._insert_report_by_comment, [stored.comment_id, stored.id]
        )
        await self.session.aexecute(
            self._insert_report_by_status, [int(stored.status), stored.id]
        )
        return stored

    async def get_report(self, report_id: int) -> CommentReport | None:
        result = await self.session.aexecute(self._get_report, [report_id])
        row = result.one()
        return CommentReport.from_row(row) if row else None

    async def resolve_report(
        self,
        report_id: int,
        status: int,
        handler_id: int,
        result: str,
        handled_at: datetime,
    ) -> bool:
        outcome = await self.session.aexecute(
            self._resolve_report,
            [
                int(status),
                handler_id,
                result,
                handled_at,
                report_id,
                int(ReportStatus.PENDING),
            ],
        )
        if not outcome.was_applied:
            return False
        await self.session.aexecute(
            self._delete_report_by_status, [int(ReportStatus.PENDING), report_id]
        )
        await self.session.aexecute(
            self._insert_report_by_status, [int(status), report_id]
        )
        return True

    async def count_reports(self, comment_id: int) -> int:
        result = await self.session.aexecute(self._count_reports, [comment_id])
        row = result.one()
        return int(row.count) if row else 0

    async def list_reports(
        self, status: int, limit: int, offset: int = 0
    ) -> list[CommentReport]:
        result = await self.session.aexecute(
            self._get_reports_by_status, [int(status), offset + limit]
        )
        ids = [r.report_id for r in result][offset:]
        reports = []
        for report_id in ids:
            report = await self.get_report(report_id)
            if report is not None:
                reports.append(report)
        return reports

    # ==========================================================================
    # Sensitive words
    # ==========================================================================

    async def list_sensitive_words(
        self, enabled_only: bool = True
    ) -> list[SensitiveWord]:
        result = await self.session.aexecute(self._get_words)
        words = [SensitiveWord.from_row(r) for r in result]
        return sorted(
            (w for w in words if w.enabled or not enabled_only), key=lambda w: w.id
        )

    async def save_sensitive_word(self, word: SensitiveWord) -> SensitiveWord:
        key = fold(word.word.strip())
        result = await self.session.aexecute(self._get_word, [key])
        existing = result.one()
        now = datetime.now(UTC)
        stored = SensitiveWord(
            word=word.word.strip(),
            level=word.level,
            action=word.action,
            replacement=word.replacement,
            enabled=word.enabled,
            id=existing.id if existing else await self._next_id("word"),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        await self.session.aexecute(
            self._insert_word,
            [
                key,
                stored.id,
                int(stored.level),
                int(stored.action),
                stored.replacement,
                stored.enabled,
                stored.created_at,
                stored.updated_at,
            ],
        )
        return stored

    async def delete_sensitive_word(self, word: str) -> bool:
        result = await self.session.aexecute(self._delete_word, [fold(word.strip())])
        return bool(result.was_applied)

    # ==========================================================================
    # Floor building, hot lists, fold rules, author replies
    # ==========================================================================

    async def get_floor_building(
        self, target: CommentTarget, user_id: int
    ) -> FloorBuildingRecord | None:
        result = await self.session.aexecute(
            self._get_floor_building,
            [int(target.target_type), target.target_id, user_id],
        )
        row = result.one()
        return FloorBuildingRecord.from_row(row) if row else None

    async def record_floor_building(
        self, target: CommentTarget, user_id: int, comment_id: int, at: datetime
    ) -> FloorBuildingRecord:
        key = [int(target.target_type), target.target_id, user_id]
        await self.session.aexecute(
            self._append_floor_building, [[comment_id], at, *key]
        )
        record = await self.get_floor_building(target, user_id)
        if record is None:
            record = FloorBuildingRecord(
                target_type=target.target_type,
                target_id=target.target_id,
                user_id=user_id,
                comment_ids=[comment_id],
                last_comment_at=at,
            )
        record.floor_count = len(record.comment_ids)
        record.first_comment_at = record.first_comment_at or at
        await self.session.aexecute(
            self._update_floor_building_stats,
            [record.floor_count, record.first_comment_at, *key],
        )
        return record

    async def replace_hot_list(
        self, target: CommentTarget, entries: list[HotListEntry]
    ) -> None:
        for entry in entries:
            await self.session.aexecute(
                self._insert_hot_entry,
                [
                    int(target.target_type),
                    target.target_id,
                    entry.rank,
                    entry.comment_id,
                    entry.hot_score,
                    entry.user_id,
                    entry.username,
                    entry.content,
                    entry.like_count,
                    entry.updated_at,
                ],
            )
        # Drop ranks left over from a longer previous snapshot
        await self.session.aexecute(
            self._trim_hot_list,
            [int(target.target_type), target.target_id, len(entries)],
        )

    async def get_hot_list(self, target: CommentTarget) -> list[HotListEntry]:
        result = await self.session.aexecute(
            self._get_hot_list, [int(target.target_type), target.target_id]
        )
        return sorted((HotListEntry.from_row(r) for r in result), key=lambda e: e.rank)

    async def list_fold_rules(self) -> list[FoldRule]:
        result = await self.session.aexecute(self._get_fold_rules)
        return [FoldRule.from_row(r) for r in result]

    async def save_fold_rule(self, rule: FoldRule) -> None:
        await self.session.aexecute(
            self._insert_fold_rule,
            [rule.name, int(rule.rule_type), rule.config_json(), rule.enabled],
        )

    async def create_author_reply(self, reply: AuthorReply) -> AuthorReply:
        stored = AuthorReply(
            comment_id=reply.comment_id,
            author_id=reply.author_id,
            content=reply.content,
            id=await self._next_id("author_reply"),
            created_at=reply.created_at,
        )
        await self.session.aexecute(
            self._insert_author_reply,
            [
                stored.comment_id,
                stored.id,
                stored.author_id,
                stored.content,
                stored.created_at,
            ],
        )
        return stored

    async def list_author_replies(self, comment_id: int) -> list[AuthorReply]:
        result = await self.session.aexecute(self._get_author_replies, [comment_id])
        return [AuthorReply.from_row(r) for r in result]
