"""Background worker that rebuilds hot comment lists.

Runs periodically over every target that has comments. Each target is
rescored and ranked on its own, so a failing target only skips itself.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog


if TYPE_CHECKING:
    from comment_engine.comments.models import CommentTarget
    from comment_engine.comments.store import CommentStore

    from .scoring import ScoreEngine


logger = structlog.get_logger(__name__)


@dataclass
class SweepResult:
    """Outcome of a single sweep."""

    targets: int = 0
    refreshed: int = 0
    failed: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class HotRankingSweeper:
    """Background worker for hot list maintenance."""

    def __init__(
        self,
        store: CommentStore,
        score_engine: ScoreEngine,
        top_k: int | None = None,
    ) -> None:
        self.store = store
        self.score_engine = score_engine
        self.top_k = top_k
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, interval_seconds: int = 600) -> None:
        """Start the background sweep worker.

        Args:
            interval_seconds: Interval between sweeps (default: 10 minutes)
        """
        if self._running:
            logger.warning("hot_ranking_sweeper_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(
            self._worker_loop(interval_seconds),
            name="hot_ranking_sweeper",
        )
        logger.info("hot_ranking_sweeper_started", interval_seconds=interval_seconds)

    async def stop(self) -> None:
        """Stop the background worker."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        logger.info("hot_ranking_sweeper_stopped")

    async def _worker_loop(self, interval_seconds: int) -> None:
        """Main worker loop."""
        while self._running:
            try:
                await self.run_sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("hot_ranking_sweeper_error")

            await asyncio.sleep(interval_seconds)

    async def run_sweep(self, now: datetime | None = None) -> SweepResult:
        """Refresh the hot list of every known target once."""
        now = now or datetime.now(UTC)
        result = SweepResult(started_at=now)
        targets = await self.store.list_targets()
        result.targets = len(targets)

        for target in targets:
            if await self._refresh(target, now):
                result.refreshed += 1
            else:
                result.failed.append(target.key)

        logger.info(
            "hot_ranking_sweep_completed",
            targets=result.targets,
            refreshed=result.refreshed,
            failed=len(result.failed),
        )
        return result

    async def _refresh(self, target: CommentTarget, now: datetime) -> bool:
        try:
            await self.score_engine.refresh_hot_list(target, self.top_k, now)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("hot_list_refresh_failed", target=target.key)
            return False
        return True
