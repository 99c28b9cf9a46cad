"""Report intake, auto-folding and the admin review transition.

A report is pending until an admin approves it (the comment is soft-deleted)
or rejects it (no side effect); both outcomes are terminal. Every new report
re-reads the committed report count and folds the comment through a
compare-and-set once the threshold is reached, so repeated or concurrent
reports fold it at most once.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from comment_engine.comments.collaborators import (
    NotificationDispatcher,
    NotificationEvent,
    NotificationEventType,
)
from comment_engine.comments.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from comment_engine.comments.models import (
    CommentReport,
    CommentStatus,
    ReportReason,
    ReportStatus,
    create_report,
)
from comment_engine.comments.service import soft_delete_comment
from comment_engine.comments.store import CommentStore

from .rules import FoldRule, FoldRuleEvaluator


logger = structlog.get_logger(__name__)

FOLDABLE_STATUSES = frozenset({CommentStatus.NORMAL, CommentStatus.AUDITING})


@dataclass
class ReportOutcome:
    """Result of filing a report."""

    report: CommentReport
    report_count: int
    folded: bool


class ReportFoldEngine:
    """Track reports and fold comments that cross the threshold."""

    def __init__(
        self,
        store: CommentStore,
        default_threshold: int = 3,
        notifications: NotificationDispatcher | None = None,
    ) -> None:
        self.store = store
        self.default_threshold = default_threshold
        self.notifications = notifications or NotificationDispatcher()

    async def _evaluator(self) -> FoldRuleEvaluator:
        rules = await self.store.list_fold_rules()
        return FoldRuleEvaluator(rules, default_threshold=self.default_threshold)

    async def report(
        self,
        comment_id: int,
        reporter_id: int,
        reason: int,
        description: str = "",
    ) -> ReportOutcome:
        """File a report and fold the comment if the threshold is reached.

        Raises:
            NotFoundError: the comment does not exist.
            ValidationFailedError: unknown reason code.
        """
        try:
            reason = ReportReason(int(reason))
        except ValueError as e:
            raise ValidationFailedError("Motivo de denuncia invalido") from e

        comment = await self.store.get_comment(comment_id)
        if comment is None:
            raise NotFoundError

        report = await self.store.create_report(
            create_report(comment_id, reporter_id, reason, description.strip())
        )
        count = await self.store.count_reports(comment_id)

        folded = False
        evaluator = await self._evaluator()
        if evaluator.should_fold(count):
            folded = await self.store.transition_status(
                comment_id, CommentStatus.FOLDED, FOLDABLE_STATUSES
            )
            if folded:
                logger.info(
                    "comment_auto_folded",
                    comment_id=comment_id,
                    report_count=count,
                    threshold=evaluator.report_threshold(),
                )
                self.notifications.notify(
                    NotificationEvent(
                        type=NotificationEventType.COMMENT_FOLDED,
                        recipient_id=comment.user_id,
                        actor_id=reporter_id,
                        comment_id=comment_id,
                        target_type=comment.target_type,
                        target_id=comment.target_id,
                    )
                )

        logger.info(
            "comment_reported",
            comment_id=comment_id,
            report_id=report.id,
            reason=reason.name.lower(),
            report_count=count,
        )
        return ReportOutcome(report=report, report_count=count, folded=folded)

    async def handle_report(
        self,
        report_id: int,
        handler_id: int,
        approved: bool,
        result: str = "",
    ) -> CommentReport:
        """Approve (soft-delete the comment) or reject a pending report.

        Raises:
            NotFoundError: the report does not exist.
            ConflictError: the report was already handled.
        """
        report = await self.store.get_report(report_id)
        if report is None:
            raise NotFoundError("Denuncia nao encontrada")
        if not report.is_pending:
            raise ConflictError("Denuncia ja processada")

        status = ReportStatus.APPROVED if approved else ReportStatus.REJECTED
        now = datetime.now(UTC)
        resolved = await self.store.resolve_report(
            report_id, status, handler_id, result, now
        )
        if not resolved:
            raise ConflictError("Denuncia ja processada")

        if approved:
            comment = await self.store.get_comment(report.comment_id)
            if comment is not None:
                await soft_delete_comment(self.store, comment, now)

        logger.info(
            "report_handled",
            report_id=report_id,
            comment_id=report.comment_id,
            handler_id=handler_id,
            status=status.name.lower(),
        )
        handled = await self.store.get_report(report_id)
        return handled or report

    async def pending_reports(
        self, page: int = 1, size: int = 20
    ) -> list[CommentReport]:
        page = max(page, 1)
        return await self.store.list_reports(
            ReportStatus.PENDING, limit=size, offset=(page - 1) * size
        )

    async def list_rules(self) -> list[FoldRule]:
        return await self.store.list_fold_rules()

    async def save_rule(self, rule: FoldRule) -> FoldRule:
        await self.store.save_fold_rule(rule)
        logger.info(
            "fold_rule_saved",
            name=rule.name,
            rule_type=rule.rule_type.name.lower(),
            enabled=rule.enabled,
        )
        return rule
