"""Collect Markdown files into backup-ready file tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from fixmd.batch.backup import DEFAULT_BACKUP_SUFFIX, derive_backup_path
from fixmd.batch.models import FileTask

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


@dataclass(slots=True)
class DiscoveryError(Exception):
    """Input path cannot be turned into a task list."""

    message: str
    path: Path

    def __str__(self) -> str:
        return self.message


def is_markdown(path: Path) -> bool:
    return path.name.lower().endswith(MARKDOWN_SUFFIX)


def discover_tasks(
    path: Path,
    *,
    recursive: bool,
    work_dir: Path,
    backup_root: Path,
    backup_suffix: str = DEFAULT_BACKUP_SUFFIX,
) -> list[FileTask]:
    """Return tasks for every Markdown file at `path`, in deterministic order.

    A directory yields its top-level `.md` files, or all nested ones when
    `recursive` is set. A single file yields one task if it is Markdown and
    nothing otherwise.
    """

    if not path.exists():
        raise DiscoveryError(message=f"Error accessing path: {path} does not exist", path=path)

    if path.is_dir():
        candidates = _list_markdown_files(path, recursive=recursive)
    elif is_markdown(path):
        candidates = [path]
    else:
        logger.info("Skipping non-markdown file: %s", path)
        candidates = []

    return [
        _prepare_task(
            candidate,
            work_dir=work_dir,
            backup_root=backup_root,
            backup_suffix=backup_suffix,
        )
        for candidate in candidates
    ]


def _list_markdown_files(directory: Path, *, recursive: bool) -> list[Path]:
    pattern = directory.rglob("*") if recursive else directory.glob("*")
    return sorted(item for item in pattern if item.is_file() and is_markdown(item))


def _prepare_task(
    path: Path,
    *,
    work_dir: Path,
    backup_root: Path,
    backup_suffix: str,
) -> FileTask:
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise DiscoveryError(message=f"error reading file {path}: {exc}", path=path) from exc
    return FileTask(
        source_path=path,
        content=content,
        backup_path=derive_backup_path(
            path,
            work_dir=work_dir,
            backup_root=backup_root,
            suffix=backup_suffix,
        ),
    )
