"""Domain models for the backup-then-transform batch run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class FileTask:
    """One file to transform, with its content snapshot taken at discovery."""

    source_path: Path
    content: bytes
    backup_path: Path

    def decoded_content(self) -> str:
        return self.content.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class BackupRecord:
    """Durable byte-identical copy of one original file."""

    source_path: Path
    backup_path: Path
    size: int


@dataclass(slots=True)
class RetryState:
    """Per-call retry bookkeeping; never shared between files."""

    attempt: int = 0
    last_error: Exception | None = None
    next_delay_seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class ProgressCounters:
    """Point-in-time copy of the aggregator counters."""

    total: int
    processed: int
    succeeded: int
    failed: int
    started_at: float

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 100.0
        return self.processed / self.total * 100


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    """Terminal state of one scheduled file task."""

    task: FileTask
    succeeded: bool
    error: str | None = None
    attempts: int = 0


@dataclass(slots=True)
class BatchSummary:
    """Result of one batch run for CLI reporting."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
    backups: list[BackupRecord] = field(default_factory=list)
    failures: list[TaskOutcome] = field(default_factory=list)
