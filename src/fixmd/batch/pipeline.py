"""Two-phase batch run: back up everything, then transform in parallel."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from fixmd.batch.backup import BackupManager, BackupProgressCallback
from fixmd.batch.models import BatchSummary, FileTask
from fixmd.batch.progress import ProgressAggregator
from fixmd.batch.scheduler import BoundedScheduler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class BatchPipeline:
    """Coordinates the backup gate, the worker scheduler and progress accounting."""

    def __init__(
        self,
        *,
        backup_manager: BackupManager,
        scheduler: BoundedScheduler,
        on_backup: BackupProgressCallback | None = None,
        on_progress: ProgressCallback | None = None,
        on_phase: ProgressCallback | None = None,
    ) -> None:
        self.backup_manager = backup_manager
        self.scheduler = scheduler
        self._on_backup = on_backup
        self._on_progress = on_progress
        self._on_phase = on_phase or (lambda _msg: None)

    def run(self, tasks: Sequence[FileTask]) -> BatchSummary:
        """Back up all tasks, then transform them.

        Raises `BackupError` before any original is touched if a single backup
        fails. Per-file transform failures are counted, never raised.
        """

        summary = BatchSummary(total=len(tasks))
        if not tasks:
            return summary

        self._on_phase("=== Creating Backups ===")
        summary.backups = self.backup_manager.backup_all(tasks, on_progress=self._on_backup)
        self._on_phase("All files successfully backed up.")

        self._on_phase("=== Processing Files ===")
        aggregator = ProgressAggregator(len(tasks), on_render=self._on_progress)
        for outcome in self.scheduler.iter_outcomes(tasks):
            if outcome.succeeded:
                aggregator.record_success()
            else:
                aggregator.record_failure()
                summary.failures.append(outcome)
        aggregator.finish()

        counters = aggregator.snapshot()
        summary.succeeded = counters.succeeded
        summary.failed = counters.failed
        summary.elapsed_seconds = aggregator.elapsed_seconds()
        logger.info(
            "Batch finished: total=%d succeeded=%d failed=%d peak_in_flight=%d",
            summary.total,
            summary.succeeded,
            summary.failed,
            self.scheduler.limiter.peak_in_flight,
        )
        return summary
