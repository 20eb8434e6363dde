"""Backup command for the auxiliaire CLI.

Commands:
- backup: Back up solutions to a local directory
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path
from types import FrameType

import click

from auxiliaire.client.cli.config import resolve_token
from auxiliaire.core.types import IterationSyncPolicy, OverwritePolicy, SolutionStatus

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# "any" is the lowest status, every listed solution has at least that
STATUS_CHOICES: dict[str, SolutionStatus] = {
    "any": SolutionStatus.STARTED,
    **{status.value: status for status in SolutionStatus},
}

EXIT_FATAL = 1
EXIT_CANCELLED = 130


def configure_logging(verbose: int = 0, quiet: bool = False) -> None:
    """Configure the auxiliaire logger to write to stderr.

    Args:
        verbose: Verbosity count (-v for INFO, -vv for DEBUG).
        quiet: Only show errors.
    """
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    package_logger = logging.getLogger("auxiliaire")
    package_logger.setLevel(level)

    # Replace handlers from a previous invocation in the same process
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(stderr_handler)


def install_cancel_handler(cancel_event: threading.Event) -> None:
    """Turn the first Ctrl+C into a graceful cancellation.

    A second Ctrl+C interrupts immediately.

    Args:
        cancel_event: Token set on SIGINT.
    """
    if threading.current_thread() is not threading.main_thread():
        return

    def handle_sigint(signum: int, frame: FrameType | None) -> None:
        click.echo("\nCancelling, waiting for in-flight downloads... (Ctrl+C again to abort)", err=True)
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, handle_sigint)


@click.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--token",
    help="Exercism API token. Defaults to the token of the Exercism CLI.",
)
@click.option(
    "--track", "-t", "tracks",
    multiple=True,
    help="Only back up solutions in this track (repeatable).",
)
@click.option(
    "--exercise", "-e", "exercises",
    multiple=True,
    help="Only back up solutions to this exercise (repeatable).",
)
@click.option(
    "--status", "-s",
    type=click.Choice(list(STATUS_CHOICES)),
    default="any",
    show_default=True,
    help="Only back up solutions with at least this status.",
)
@click.option(
    "--overwrite", "-o",
    type=click.Choice([p.value for p in OverwritePolicy]),
    default=OverwritePolicy.IF_NEWER.value,
    show_default=True,
    help="What to do with solutions already backed up.",
)
@click.option(
    "--iterations", "-i",
    type=click.Choice([p.value for p in IterationSyncPolicy]),
    default=IterationSyncPolicy.DO_NOT_SYNC.value,
    show_default=True,
    help="Whether and how to back up iterations.",
)
@click.option("--dry-run", is_flag=True, help="Show what would be done without writing anything.")
@click.option(
    "--max-downloads", "-m",
    type=click.IntRange(min=1),
    default=4,
    show_default=True,
    help="Maximum number of solutions downloaded at once.",
)
@click.option("--verbose", "-v", count=True, help="Show more output (-vv for debug).")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
def backup(
    path: Path,
    token: str | None,
    tracks: tuple[str, ...],
    exercises: tuple[str, ...],
    status: str,
    overwrite: str,
    iterations: str,
    dry_run: bool,
    max_downloads: int,
    verbose: int,
    quiet: bool,
) -> None:
    """Back up solutions to PATH.

    Solutions are stored in PATH/<track>/<exercise>. Running the command
    again only fetches what changed remotely.
    """
    from auxiliaire.client.api import ExercismClient
    from auxiliaire.client.backup import BackupFilters, run_backup
    from auxiliaire.client.errors import BackupError
    from auxiliaire.core.config import ApiConfig

    configure_logging(verbose, quiet)

    api_token = resolve_token(token)
    if not api_token:
        click.echo(
            "Error: No API token found. Use --token or configure the Exercism CLI.",
            err=True,
        )
        sys.exit(EXIT_FATAL)

    filters = BackupFilters.create(
        tracks=tracks,
        exercises=exercises,
        status=STATUS_CHOICES[status],
    )

    cancel_event = threading.Event()
    previous_handler = signal.getsignal(signal.SIGINT)
    install_cancel_handler(cancel_event)
    try:
        with ExercismClient(ApiConfig(token=api_token)) as client:
            summary = run_backup(
                client,
                path,
                filters,
                overwrite_policy=OverwritePolicy(overwrite),
                iteration_policy=IterationSyncPolicy(iterations),
                dry_run=dry_run,
                max_concurrency=max_downloads,
                cancel_event=cancel_event,
            )
    except BackupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)
    finally:
        if previous_handler is not None and threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, previous_handler)

    if summary.failures:
        click.echo(click.style("\nErrors:", fg="red"))
        for result in summary.failures:
            for error in result.errors:
                click.echo(f"  ✗ {result.plan.solution.display_name}: {error}")

    prefix = "Dry run" if dry_run else "Backup"
    if len(summary) == 0:
        click.echo("No solutions matched.")
    else:
        click.echo(
            f"\n{prefix} {'cancelled' if summary.cancelled else 'complete'}: "
            f"{summary.fetched} fetched, "
            f"{summary.skipped} up to date, "
            f"{summary.fetched_iterations} iterations fetched, "
            f"{summary.deleted} iterations deleted, "
            f"{summary.failed} failed"
            + (f", {summary.cancelled_count} cancelled" if summary.cancelled else "")
        )

    if summary.failed:
        click.echo(
            click.style(f"Warning: {summary.failed} solution(s) could not be backed up.", fg="yellow"),
            err=True,
        )
    if summary.cancelled:
        sys.exit(EXIT_CANCELLED)
