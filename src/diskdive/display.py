"""Rich terminal display for non-interactive diskdive commands."""

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from diskdive.models import Entry, LargeFile
from diskdive.render import display_path, humanize_bytes, percent_color

console = Console()


def show_scanning_progress() -> Progress:
    """Create a spinner for a running scan."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def show_directory_summary(path: str, entries: list[Entry], total_size: int, limit: int = 30) -> None:
    """Display the largest children of a scanned directory."""
    table = Table(
        title=f"{escape(display_path(path))}  ({humanize_bytes(total_size)})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Share", justify="right")

    for idx, entry in enumerate(entries[:limit], 1):
        icon = "📁" if entry.is_dir else "📄"
        if entry.pending:
            table.add_row(str(idx), f"{icon} {escape(entry.name)}", "[dim]pending..[/dim]", "--")
            continue
        percent = entry.size / total_size * 100 if total_size > 0 else 0.0
        color = percent_color(percent)
        table.add_row(
            str(idx),
            f"{icon} {escape(entry.name)}",
            f"[{color}]{humanize_bytes(entry.size)}[/{color}]",
            f"{percent:.1f}%",
        )

    console.print(table)
    if len(entries) > limit:
        console.print(f"[dim]...and {len(entries) - limit} more[/dim]")


def show_large_files(files: list[LargeFile]) -> None:
    """Display the large files found by a scan."""
    if not files:
        console.print("[dim]No large files found (>=100MB)[/dim]")
        return

    table = Table(title="Large Files", show_header=True, header_style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Path")
    for item in files:
        table.add_row(humanize_bytes(item.size), escape(display_path(item.path)))
    console.print(table)
