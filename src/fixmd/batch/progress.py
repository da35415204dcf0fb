"""Thread-safe success/failure accounting with a live status line."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from fixmd.batch.models import ProgressCounters

PROGRESS_BAR_WIDTH = 20

RenderCallback = Callable[[str], None]


def progress_bar(percentage: float, *, width: int = PROGRESS_BAR_WIDTH) -> str:
    completed = max(0, min(width, int(percentage / 100 * width)))
    return "=" * completed + " " * (width - completed)


def render_status(counters: ProgressCounters, *, elapsed_seconds: float) -> str:
    percentage = counters.percentage
    return (
        f"[{progress_bar(percentage)}] Processing: {counters.processed}/{counters.total} "
        f"({percentage:.1f}%) | Success: {counters.succeeded} | Failed: {counters.failed} "
        f"| Elapsed: {elapsed_seconds:.1f}s"
    )


def render_final(counters: ProgressCounters, *, elapsed_seconds: float) -> str:
    return (
        f"[{progress_bar(100)}] Completed: {counters.total}/{counters.total} (100%) "
        f"| Success: {counters.succeeded} | Failed: {counters.failed} "
        f"| Elapsed: {elapsed_seconds:.1f}s"
    )


class ProgressAggregator:
    """Owns the batch counters; every mutation and render happens under one lock."""

    def __init__(
        self,
        total: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_render: RenderCallback | None = None,
    ) -> None:
        if total < 0:
            raise ValueError("total must be >= 0")
        self._lock = threading.Lock()
        self._clock = clock
        self._on_render = on_render or (lambda _line: None)
        self._total = total
        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._started_at = clock()

    def record_success(self) -> str:
        return self._record(succeeded=True)

    def record_failure(self) -> str:
        return self._record(succeeded=False)

    def finish(self) -> str:
        with self._lock:
            line = render_final(self._counters(), elapsed_seconds=self._elapsed())
            self._on_render(line)
            return line

    def snapshot(self) -> ProgressCounters:
        with self._lock:
            return self._counters()

    def elapsed_seconds(self) -> float:
        with self._lock:
            return self._elapsed()

    def _record(self, *, succeeded: bool) -> str:
        with self._lock:
            if self._processed >= self._total:
                raise ValueError(
                    f"Cannot record more than {self._total} outcome(s) for this batch.",
                )
            self._processed += 1
            if succeeded:
                self._succeeded += 1
            else:
                self._failed += 1
            line = render_status(self._counters(), elapsed_seconds=self._elapsed())
            self._on_render(line)
            return line

    def _counters(self) -> ProgressCounters:
        return ProgressCounters(
            total=self._total,
            processed=self._processed,
            succeeded=self._succeeded,
            failed=self._failed,
            started_at=self._started_at,
        )

    def _elapsed(self) -> float:
        return self._clock() - self._started_at
