"""CLI entrypoint for fixmd."""

from pathlib import Path

import rich_click as click

from fixmd import __version__
from fixmd.batch.backup import BackupError
from fixmd.batch.controllers import FixCliController, FixCommand
from fixmd.batch.discovery import DiscoveryError

click.rich_click.USE_MARKDOWN = True
FIX_CONTROLLER = FixCliController()


@click.command()
@click.version_option(version=__version__, prog_name="fixmd")
@click.argument("path", type=click.Path(path_type=Path))
@click.option(
    "-r",
    "--recursive",
    is_flag=True,
    default=False,
    help="Process directories recursively.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1, max=64),
    default=None,
    help="Max concurrent API calls. Defaults to FIXMD_MAX_CONCURRENT (3).",
)
def fixmd(path: Path, recursive: bool, concurrency: int | None) -> None:
    """Fix grammar and Markdown formatting of `.md` files in place.

    Every file is backed up under `./backup` before anything is rewritten.
    """

    try:
        result = FIX_CONTROLLER.run(
            FixCommand(path=path, recursive=recursive, concurrency=concurrency),
            echo=click.echo,
            progress=_emit_progress,
        )
    except (ValueError, DiscoveryError, BackupError) as exc:
        raise click.ClickException(str(exc)) from exc

    if result.summary is not None:
        click.echo()
    _emit_lines(result.lines)


def _emit_progress(line: str) -> None:
    click.echo(f"\r{line}", nl=False)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    fixmd()
