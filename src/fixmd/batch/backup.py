"""Backup phase: every original is copied before any file may be mutated."""

from __future__ import annotations

import itertools
import logging
import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from fixmd.batch.models import BackupRecord, FileTask

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_SUFFIX = ".bak"
FLATTEN_FILLER = "_"

BackupProgressCallback = Callable[[int, int, FileTask], None]


@dataclass(slots=True)
class BackupError(Exception):
    """Backup-phase failure that must abort the whole batch."""

    message: str
    source_path: Path
    backup_path: Path
    code: str = "backup_failed"

    def __str__(self) -> str:
        return self.message


def derive_backup_path(
    source_path: Path,
    *,
    work_dir: Path,
    backup_root: Path,
    suffix: str = DEFAULT_BACKUP_SUFFIX,
) -> Path:
    """Mirror `source_path` under `backup_root`.

    Files under `work_dir` keep their relative layout. Files elsewhere get their
    absolute path flattened into a single file name so that the backup can
    never land outside `backup_root`.
    """

    absolute = Path(os.path.abspath(source_path))
    base = Path(os.path.abspath(work_dir))
    try:
        relative = absolute.relative_to(base)
    except ValueError:
        flattened = str(absolute).replace(os.sep, FLATTEN_FILLER)
        if os.altsep:
            flattened = flattened.replace(os.altsep, FLATTEN_FILLER)
        return backup_root / f"{flattened}{suffix}"
    return backup_root / relative.parent / f"{relative.name}{suffix}"


class BackupManager:
    """Sequential all-or-nothing backup gate.

    Backups are created exclusively and never overwritten. When the derived
    path already holds different bytes (an earlier run, or another file whose
    path flattened to the same name) the next free generation is used:
    `a.md.bak`, `a.md.1.bak`, `a.md.2.bak`, ...
    """

    def __init__(self, *, verify: bool = True, suffix: str = DEFAULT_BACKUP_SUFFIX) -> None:
        self.verify = verify
        self.suffix = suffix

    def backup_all(
        self,
        tasks: Sequence[FileTask],
        *,
        on_progress: BackupProgressCallback | None = None,
    ) -> list[BackupRecord]:
        """Write one backup per task in order; raise `BackupError` on the first failure."""

        records: list[BackupRecord] = []
        total = len(tasks)
        for index, task in enumerate(tasks, start=1):
            records.append(self._backup_one(task))
            if on_progress is not None:
                on_progress(index, total, task)
        logger.info("Backed up %d file(s)", total)
        return records

    def _backup_one(self, task: FileTask) -> BackupRecord:
        backup_dir = task.backup_path.parent
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackupError(
                message=(
                    f"error creating backup directory structure for {task.source_path}: {exc}"
                ),
                source_path=task.source_path,
                backup_path=task.backup_path,
                code="mkdir_failed",
            ) from exc

        backup_path = task.backup_path
        try:
            for backup_path in backup_generations(task.backup_path, self.suffix):
                if _create_exclusive(backup_path, task.content):
                    break
                if backup_path.is_file() and backup_path.read_bytes() == task.content:
                    logger.debug("Reusing identical backup %s", backup_path)
                    break
            if self.verify and backup_path.read_bytes() != task.content:
                raise BackupError(
                    message=f"backup file for {task.source_path} does not match the original",
                    source_path=task.source_path,
                    backup_path=backup_path,
                    code="verify_failed",
                )
        except OSError as exc:
            raise BackupError(
                message=f"error creating backup file for {task.source_path}: {exc}",
                source_path=task.source_path,
                backup_path=backup_path,
                code="write_failed",
            ) from exc

        logger.debug("Backup created: %s -> %s", task.source_path, backup_path)
        return BackupRecord(
            source_path=task.source_path,
            backup_path=backup_path,
            size=len(task.content),
        )


def backup_generations(
    backup_path: Path,
    suffix: str = DEFAULT_BACKUP_SUFFIX,
) -> Iterator[Path]:
    """Yield `backup_path` followed by its numbered siblings."""

    yield backup_path
    name = backup_path.name
    stem = name[: -len(suffix)] if suffix and name.endswith(suffix) else name
    for generation in itertools.count(1):
        yield backup_path.with_name(f"{stem}.{generation}{suffix}")


def _create_exclusive(path: Path, content: bytes) -> bool:
    """Write `content` to a new file at `path`; return False if `path` already exists."""

    try:
        handle = path.open("xb")
    except FileExistsError:
        return False
    with handle:
        handle.write(content)
        handle.flush()
        os.fsync(handle.fileno())
    return True
