"""CLI interface for diskdive."""

import logging
import os
from queue import SimpleQueue
from typing import Optional

import typer

from diskdive import __version__
from diskdive.deleter import DeletionExecutor
from diskdive.display import (
    console,
    show_directory_summary,
    show_large_files,
    show_scanning_progress,
)
from diskdive.navigation import NavigationModel
from diskdive.render import format_number, humanize_bytes
from diskdive.scanner import Scanner
from diskdive.settings import load_settings

# Create Typer app
app = typer.Typer(
    name="diskdive",
    help="Interactive disk usage analyzer - find what fills your disk and clear it",
    add_completion=False,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(log_file: Optional[str]) -> None:
    """Send diskdive logs to a file; stay silent otherwise so the dashboard is never overdrawn."""
    logger = logging.getLogger("diskdive")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.setLevel(logging.DEBUG)
    else:
        handler = logging.NullHandler()
    logger.addHandler(handler)
    logger.propagate = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"diskdive version {__version__}")
        raise typer.Exit()


def _require_directory(path: str) -> str:
    resolved = os.path.abspath(os.path.expanduser(path))
    if not os.path.isdir(resolved):
        console.print(f"[red]Not a directory: {path}[/red]")
        raise typer.Exit(1)
    return resolved


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    log_file: Optional[str] = typer.Option(
        None,
        "--log-file",
        help="Write debug logs to this file.",
    ),
) -> None:
    """diskdive - interactive disk usage analyzer."""
    configure_logging(log_file)
    # If no command specified, open the overview dashboard
    if ctx.invoked_subcommand is None:
        ctx.invoke(analyze, path=None)


@app.command()
def analyze(
    path: Optional[str] = typer.Argument(
        None, help="Directory to open (defaults to the overview of common locations)"
    ),
) -> None:
    """Browse disk usage interactively."""
    start_path = _require_directory(path) if path else None

    from diskdive.tui import run_tui

    run_tui(start_path=start_path, settings=load_settings())


@app.command()
def summary(
    path: str = typer.Argument(".", help="Directory to measure"),
    limit: int = typer.Option(30, "--limit", "-n", help="Number of entries to show"),
) -> None:
    """Measure a directory once and print its largest children."""
    start_path = _require_directory(path)
    settings = load_settings()

    mailbox: SimpleQueue = SimpleQueue()
    model = NavigationModel(
        scanner=Scanner(mailbox, settings),
        deleter=DeletionExecutor(mailbox),
        mailbox=mailbox,
        settings=settings,
        start_path=start_path,
    )
    model.start()

    with show_scanning_progress() as progress:
        task = progress.add_task("Scanning...", total=None)
        while model.scanning:
            job = model.scan_job
            if job is not None:
                job.wait(settings.tick_interval)
            model.pump()
            snap = model.progress_snapshot()
            progress.update(
                task,
                description=(
                    f"Scanning {format_number(snap.files)} files, "
                    f"{format_number(snap.dirs)} dirs, {humanize_bytes(snap.bytes)}"
                ),
            )

    show_directory_summary(start_path, model.entries, model.total_size, limit=limit)
    console.print()
    show_large_files(model.large_files)


if __name__ == "__main__":
    app()
