"""Bounded fan-out of transform-and-write tasks."""

from __future__ import annotations

import logging
import os
import queue
import shutil
import threading
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path

from fixmd.batch.models import FileTask, TaskOutcome
from fixmd.batch.retry import RetryingTransformClient
from fixmd.http.base import RetriesExhaustedError, TransformError

logger = logging.getLogger(__name__)


class AdmissionLimiter:
    """Counting semaphore capping in-flight remote calls."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("concurrency limit must be > 0")
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    @contextmanager
    def admit(self) -> Iterator[None]:
        self._semaphore.acquire()
        try:
            with self._lock:
                self._in_flight += 1
                self._peak = max(self._peak, self._in_flight)
            try:
                yield
            finally:
                with self._lock:
                    self._in_flight -= 1
        finally:
            self._semaphore.release()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        with self._lock:
            return self._peak


def write_result_atomically(path: Path, text: str) -> None:
    """Replace `path` with `text` so readers never see a partial file.

    A symlinked `path` is written through to its target; the link stays.
    """

    target = path.resolve()
    tmp_path = target.with_name(f".{target.name}.tmp.{os.getpid()}.{threading.get_ident()}")
    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        shutil.copymode(target, tmp_path)
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class BoundedScheduler:
    """Runs one task per file with at most `concurrency` transform calls in flight."""

    def __init__(
        self,
        *,
        client: RetryingTransformClient,
        concurrency: int,
    ) -> None:
        self.client = client
        self.limiter = AdmissionLimiter(concurrency)

    @property
    def concurrency(self) -> int:
        return self.limiter.limit

    def iter_outcomes(self, tasks: Sequence[FileTask]) -> Iterator[TaskOutcome]:
        """Yield exactly one outcome per task, in completion order."""

        if not tasks:
            return
        outcomes: queue.Queue[TaskOutcome] = queue.Queue()
        with ThreadPoolExecutor(
            max_workers=min(self.concurrency, len(tasks)),
            thread_name_prefix="fixmd-worker",
        ) as pool:
            for task in tasks:
                pool.submit(self._run_task, task, outcomes)
            for _ in range(len(tasks)):
                yield outcomes.get()

    def _run_task(self, task: FileTask, outcomes: queue.Queue[TaskOutcome]) -> None:
        try:
            outcome = self._process(task)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error processing %s", task.source_path)
            outcome = TaskOutcome(task=task, succeeded=False, error=str(exc))
        outcomes.put(outcome)

    def _process(self, task: FileTask) -> TaskOutcome:
        try:
            with self.limiter.admit():
                result = self.client.execute(task.decoded_content())
        except RetriesExhaustedError as exc:
            logger.error("Error processing file %s: %s", task.source_path, exc)
            return TaskOutcome(task=task, succeeded=False, error=str(exc), attempts=exc.attempts)
        except TransformError as exc:
            logger.error("Error processing file %s: %s", task.source_path, exc)
            return TaskOutcome(task=task, succeeded=False, error=str(exc))

        try:
            write_result_atomically(task.source_path, result.text)
        except OSError as exc:
            logger.error("Error writing to file %s: %s", task.source_path, exc)
            return TaskOutcome(
                task=task,
                succeeded=False,
                error=f"error writing to file: {exc}",
                attempts=result.attempts,
            )
        return TaskOutcome(task=task, succeeded=True, attempts=result.attempts)
