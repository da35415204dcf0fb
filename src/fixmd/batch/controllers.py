"""Controller for the `fixmd` CLI command."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from fixmd.batch.backup import BackupManager
from fixmd.batch.discovery import discover_tasks, is_markdown
from fixmd.batch.models import BatchSummary, FileTask
from fixmd.batch.pipeline import BatchPipeline
from fixmd.batch.retry import RetryingTransformClient
from fixmd.batch.scheduler import BoundedScheduler
from fixmd.config import Settings
from fixmd.http.base import Transformer
from fixmd.http.gemini import GeminiTransformClient

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]
TransformerFactory = Callable[[Settings], Transformer]
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(slots=True)
class FixCommand:
    """CLI inputs for one fix run."""

    path: Path
    recursive: bool = False
    concurrency: int | None = None


@dataclass(slots=True)
class FixRunResult:
    """Outcome of one CLI run; `summary` is None when nothing was processed."""

    lines: list[str]
    summary: BatchSummary | None = None


class FixCliController:
    """Coordinates settings, discovery and the two-phase batch pipeline."""

    def __init__(self, *, transformer_factory: TransformerFactory | None = None) -> None:
        self._transformer_factory = transformer_factory or _gemini_transformer

    def run(
        self,
        command: FixCommand,
        *,
        echo: LineCallback,
        progress: LineCallback,
    ) -> FixRunResult:
        settings = Settings.from_env()
        if command.concurrency is not None:
            settings.batch.max_concurrent = command.concurrency
        settings.validate()
        configure_logging(settings)

        work_dir = Path.cwd()
        path = command.path
        if path.is_file() and not is_markdown(path):
            return FixRunResult(lines=[f"Skipping non-markdown file: {path}"])
        if path.is_dir():
            echo(f"Collecting markdown files from directory: {path}")

        tasks = discover_tasks(
            path,
            recursive=command.recursive,
            work_dir=work_dir,
            backup_root=settings.backup_root(work_dir),
            backup_suffix=settings.batch.backup_suffix,
        )
        if path.is_dir():
            echo(f"Found {len(tasks)} markdown files to process")
        if not tasks:
            return FixRunResult(lines=["No markdown files found to process."])

        def _on_backup(index: int, total: int, task: FileTask) -> None:
            echo(f"[{index}/{total}] Backup created: {task.source_path}")

        with _transformer(self._transformer_factory, settings) as transformer:
            pipeline = BatchPipeline(
                backup_manager=BackupManager(suffix=settings.batch.backup_suffix),
                scheduler=BoundedScheduler(
                    client=RetryingTransformClient.from_settings(transformer, settings.retry),
                    concurrency=settings.batch.max_concurrent,
                ),
                on_backup=_on_backup,
                on_progress=progress,
                on_phase=echo,
            )
            summary = pipeline.run(tasks)

        lines = ["Processing complete!"]
        for failure in summary.failures:
            lines.append(f"  failed: {failure.task.source_path} ({failure.error})")
        return FixRunResult(lines=lines, summary=summary)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)


def _gemini_transformer(settings: Settings) -> Transformer:
    return GeminiTransformClient(settings.gemini)


@contextmanager
def _transformer(factory: TransformerFactory, settings: Settings) -> Iterator[Transformer]:
    transformer = factory(settings)
    try:
        yield transformer
    finally:
        close = getattr(transformer, "close", None)
        if callable(close):
            close()
