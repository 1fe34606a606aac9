"""Command-line interface for the Google Photos uploader."""

import asyncio
import logging
from functools import partial
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from gphotos_uploader.auth import AuthError, open_session
from gphotos_uploader.config import Config, ConfigError, load_config
from gphotos_uploader.models import DedupeSummary, PushSummary
from gphotos_uploader.orchestrator import SessionFactory, run_dedupe, run_push
from gphotos_uploader.tracker import TRACKER_FILENAME, FileTracker
from gphotos_uploader.worker import CancelScope, WorkerPool

app = typer.Typer(
    name="gphotos-uploader",
    help="Upload local folders to Google Photos and merge duplicate albums",
    add_completion=False,
)
console = Console()

CONFIG_DIR_ARGUMENT = typer.Argument(
    ...,
    help="Directory holding config.json and the account tokens",
    exists=True,
    file_okay=False,
    dir_okay=True,
    readable=True,
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable verbose logging",
)


def setup_logging(verbose: bool) -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def session_factory_for(config: Config) -> SessionFactory:
    return partial(open_session, config.config_dir, app_credentials=config.credentials)


async def async_push(
    config: Config,
    session_factory: SessionFactory,
    workers: int,
    timeout: float | None,
) -> PushSummary:
    """Async upload implementation.

    Args:
        config: Resolved configuration
        session_factory: Provides an API client per account
        workers: Number of concurrent uploads
        timeout: Seconds after which pending uploads are cancelled

    Returns:
        Summary of the run
    """
    tracker = FileTracker(config.config_dir / TRACKER_FILENAME)
    scope = CancelScope(timeout)
    try:
        async with WorkerPool(workers) as pool:
            return await run_push(config, session_factory, tracker, pool, scope)
    finally:
        scope.close()
        tracker.save()


async def async_dedupe(
    config: Config, session_factory: SessionFactory, workers: int
) -> DedupeSummary:
    async with WorkerPool(workers) as pool:
        return await run_dedupe(config, session_factory, pool)


def print_push_summary(summary: PushSummary) -> None:
    console.print("\n[bold]Upload Summary:[/bold]")
    console.print(f"  Submitted: {summary.submitted}")
    console.print(f"  [green]Succeeded: {summary.succeeded}[/green]")
    console.print(f"  [red]Failed: {summary.failed}[/red]")
    if summary.already_uploaded:
        console.print(f"  Already uploaded: {summary.already_uploaded}")
    for folder in summary.failed_targets:
        console.print(f"  [red]Could not scan folder: {folder}[/red]")


def print_dedupe_summary(summary: DedupeSummary) -> None:
    console.print("\n[bold]Deduplication Summary:[/bold]")
    for report in summary.reports:
        console.print(
            f"  {report.account}: {report.albums_scanned} album(s) scanned, "
            f"{len(report.merges)} merged"
        )
    for account, error in summary.failed_accounts.items():
        console.print(f"  [red]{account}: aborted ({error})[/red]")

    if summary.merges:
        console.print("\n[bold]Albums to delete:[/bold]")
        for merge in summary.merges:
            console.print(f"  - '{merge.title}': {merge.loser_url or merge.loser_id}")


def _load_or_exit(config_dir: Path) -> Config:
    try:
        return load_config(config_dir)
    except ConfigError as e:
        console.print(f"[red]Error: please review your configuration: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def push(
    config_dir: Path = CONFIG_DIR_ARGUMENT,
    workers: int = typer.Option(
        5,
        "--workers",
        "-w",
        min=1,
        help="Number of concurrent uploads",
    ),
    timeout: float = typer.Option(
        None,
        "--timeout",
        min=0,
        help="Cancel pending uploads after this many seconds",
    ),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Push local files to Google Photos.

    Scans every folder configured in CONFIG_DIR/config.json and uploads the
    files that were not uploaded before.
    """
    setup_logging(verbose)
    config = _load_or_exit(config_dir)

    try:
        summary = asyncio.run(
            async_push(config, session_factory_for(config), workers, timeout)
        )
    except AuthError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    print_push_summary(summary)


@app.command()
def dedupe(
    config_dir: Path = CONFIG_DIR_ARGUMENT,
    workers: int = typer.Option(
        1,
        "--workers",
        "-w",
        min=1,
        help="Number of accounts processed at once",
    ),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Merge albums sharing a title.

    Items of the smaller album are added to the larger one. Emptied albums
    are listed at the end so they can be deleted by hand.
    """
    setup_logging(verbose)
    config = _load_or_exit(config_dir)

    try:
        summary = asyncio.run(async_dedupe(config, session_factory_for(config), workers))
    except AuthError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    print_dedupe_summary(summary)


if __name__ == "__main__":
    app()
