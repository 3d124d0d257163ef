"""Text rendering for the diskdive dashboard.

Everything here is a pure function of its arguments: ``render`` reads the
navigation model and returns rich markup without mutating anything.
"""

import os
from datetime import datetime
from typing import Callable, Optional

from rich.cells import cell_len, get_character_cell_size
from rich.markup import escape

from diskdive.catalog import is_cleanable_dir
from diskdive.models import Entry, LargeFile
from diskdive.navigation import NavigationModel, calculate_viewport
from diskdive.settings import DEFAULT_SETTINGS, Settings
from diskdive.system import last_access_time

ELLIPSIS = "..."
PENDING_TEXT = "pending.."
PERCENT_PLACEHOLDER = "  --  "

BAR_EMPTY = "░"
BAR_FULL = "█"
BAR_DENSE = "▓"
BAR_LIGHT = "▒"

ICON_DIR = "📁"
ICON_FILE = "📄"
ICON_CLEANABLE = "🧹"
ICON_SELECTED = "▶"


def humanize_bytes(size: int) -> str:
    """Format bytes with binary units, one decimal place from 1 KB up."""
    if size < 0:
        return "0 B"
    if size < 1024:
        return f"{size} B"
    div, exp = 1024, 0
    n = size // 1024
    while n >= 1024 and exp < 5:
        div *= 1024
        exp += 1
        n //= 1024
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def format_number(n: int) -> str:
    """Compact count: 999, 1.5k, 2.3M."""
    if n < 1000:
        return str(n)
    if n < 1_000_000:
        return f"{n / 1000:.1f}k"
    return f"{n / 1_000_000:.1f}M"


def display_width(text: str) -> int:
    """Terminal columns taken by text; wide glyphs count as two."""
    return cell_len(text)


def trim_name(name: str, max_width: int) -> str:
    """
    Cut a name so that it fits within max_width columns.

    Wide characters are measured by display width. When the name is cut,
    an ellipsis replaces the tail.

    Args:
        name: Name to trim
        max_width: Available columns

    Returns:
        The name, or a prefix of it followed by an ellipsis
    """
    ellipsis_width = len(ELLIPSIS)
    widths = [get_character_cell_size(c) for c in name]

    current = 0
    for i, w in enumerate(widths):
        if current + w > max_width:
            kept = i
            kept_width = current
            while kept > 0 and kept_width + ellipsis_width > max_width:
                kept -= 1
                kept_width -= widths[kept]
            if kept == 0:
                return ELLIPSIS
            return name[:kept] + ELLIPSIS
        current += w

    return name


def pad_name(name: str, target_width: int) -> str:
    """Right-pad with spaces up to target_width display columns."""
    current = display_width(name)
    if current >= target_width:
        return name
    return name + " " * (target_width - current)


def truncate_middle(text: str, max_width: int) -> str:
    """Shorten text in the middle, keeping more of the tail."""
    if display_width(text) <= max_width:
        return text

    if max_width < 10:
        width = 0
        for i, c in enumerate(text):
            width += get_character_cell_size(c)
            if width > max_width:
                return text[:i]
        return text

    head_target = (max_width - len(ELLIPSIS)) // 3
    tail_target = max_width - len(ELLIPSIS) - head_target

    head_width = 0
    head_end = 0
    for i, c in enumerate(text):
        w = get_character_cell_size(c)
        if head_width + w > head_target:
            break
        head_width += w
        head_end = i + 1

    tail_width = 0
    tail_start = len(text)
    for i in range(len(text) - 1, -1, -1):
        w = get_character_cell_size(text[i])
        if tail_width + w > tail_target:
            break
        tail_width += w
        tail_start = i

    return text[:head_end] + ELLIPSIS + text[tail_start:]


def display_path(path: str, home: Optional[str] = None) -> str:
    """Replace the home directory prefix with ~."""
    home = home if home is not None else os.path.expanduser("~")
    if home and (path == home or path.startswith(home.rstrip(os.sep) + os.sep)):
        return "~" + path[len(home.rstrip(os.sep)):]
    return path


def name_column_width(term_width: int, settings: Settings = DEFAULT_SETTINGS) -> int:
    """Width of the name column for a terminal of term_width columns."""
    if term_width <= 0:
        term_width = settings.default_width
    available = term_width - settings.fixed_overhead
    return max(settings.name_width_min, min(settings.name_width_max, available))


def percent_color(percent: float) -> str:
    if percent >= 50:
        return "red"
    if percent >= 20:
        return "yellow"
    if percent >= 5:
        return "blue"
    return "green"


def progress_bar(value: int, maximum: int, percent: float, width: int = DEFAULT_SETTINGS.bar_width) -> str:
    """
    Bar proportional to value / maximum, as rich markup.

    The last filled cell is shaded by how much of it the value covers; the
    maximum value always fills every cell.
    """
    if maximum <= 0:
        return f"[grey50]{BAR_EMPTY * width}[/grey50]"

    value = max(0, value)
    filled = min(width, (value * width) // maximum)
    remainder = (value * width) % maximum if filled < width else 0

    cells = []
    for i in range(filled):
        if i < filled - 1 or remainder == 0 or remainder > maximum / 2:
            cells.append(BAR_FULL)
        elif remainder > maximum / 4:
            cells.append(BAR_DENSE)
        else:
            cells.append(BAR_LIGHT)

    color = percent_color(percent)
    bar = f"[{color}]{''.join(cells)}[/{color}]" if cells else ""
    if filled < width:
        bar += f"[grey50]{BAR_EMPTY * (width - filled)}[/grey50]"
    return bar


def format_unused_time(
    last_access: Optional[datetime],
    now: Optional[datetime] = None,
    unused_days: int = DEFAULT_SETTINGS.unused_days,
) -> str:
    """Compact age label for entries untouched for a long time, else ''."""
    if last_access is None:
        return ""
    now = now or datetime.now()
    days = (now - last_access).days
    if days < unused_days:
        return ""

    months = days // 30
    years = days // 365
    if years >= 2:
        return f">{years}yr"
    if years >= 1:
        return ">1yr"
    if months >= 3:
        return f">{months}mo"
    return ""


def _hint(
    entry: Entry,
    now: datetime,
    settings: Settings,
    is_cleanable: Callable[[str], bool],
    access_time: Callable[[str], Optional[datetime]],
) -> str:
    # Cleanable wins over the unused label
    if entry.is_dir and is_cleanable(entry.path):
        return f"[yellow]{ICON_CLEANABLE}[/yellow]"
    last_access = entry.last_access
    if last_access is None and entry.path:
        last_access = access_time(entry.path)
    unused = format_unused_time(last_access, now, settings.unused_days)
    return f"[grey50]{unused}[/grey50]" if unused else ""


def _entry_row(
    entry: Entry,
    index: int,
    selected: bool,
    max_size: int,
    total_size: int,
    name_width: int,
    hint: str,
    settings: Settings,
) -> str:
    resolved = not entry.pending
    percent = entry.size / total_size * 100 if total_size > 0 and resolved else 0.0
    percent_text = f"{percent:5.1f}%" if total_size > 0 and resolved else PERCENT_PLACEHOLDER
    bar = progress_bar(entry.size if resolved else 0, max_size, percent, settings.bar_width)
    size_text = humanize_bytes(entry.size) if resolved else PENDING_TEXT

    size_color = "grey50"
    if resolved and total_size > 0 and percent >= 5:
        size_color = percent_color(percent)

    icon = ICON_DIR if entry.is_dir else ICON_FILE
    name = escape(pad_name(trim_name(entry.name, name_width), name_width))

    if selected:
        prefix = f" [bold cyan]{ICON_SELECTED}[/bold cyan] "
        number = f"[cyan]{index + 1:2d}.[/cyan]"
        percent_text = f"[cyan]{percent_text}[/cyan]"
        name_segment = f"[cyan]{icon} {name}[/cyan]"
        size_color = "cyan"
    else:
        prefix = "   "
        number = f"{index + 1:2d}."
        name_segment = f"{icon} {name}"

    line = f"{prefix}{number} {bar} {percent_text}  |  {name_segment} [{size_color}]{size_text:>10}[/{size_color}]"
    if hint:
        line += f"  {hint}"
    return line


def _large_file_row(
    item: LargeFile,
    index: int,
    selected: bool,
    max_size: int,
    name_width: int,
    home: Optional[str],
    settings: Settings,
) -> str:
    short = truncate_middle(display_path(item.path, home), name_width)
    padded = escape(pad_name(short, name_width))
    bar = progress_bar(item.size, max_size, 0, settings.bar_width)
    size_text = f"{humanize_bytes(item.size):>10}"
    if selected:
        return (
            f" [bold cyan]{ICON_SELECTED}[/bold cyan] [cyan]{index + 1:2d}.[/cyan] {bar}  |  "
            f"{ICON_FILE} [cyan]{padded}[/cyan]  [cyan]{size_text}[/cyan]"
        )
    return f"   {index + 1:2d}. {bar}  |  {ICON_FILE} {padded}  [grey50]{size_text}[/grey50]"


def _footer(model: NavigationModel) -> str:
    if model.in_overview:
        if model.history:
            keys = "↑↓←→ | Enter | R Refresh | O Open | F File | ← Back | Q Quit"
        else:
            keys = "↑↓→ | Enter | R Refresh | O Open | F File | Q Quit"
    elif model.show_large_files:
        keys = "↑↓← | R Refresh | O Open | F File | ⌫ Del | ← Back | Q Quit"
    elif model.large_files:
        keys = (
            "↑↓←→ | Enter | R Refresh | O Open | F File | ⌫ Del | "
            f"T Top({len(model.large_files)}) | Q Quit"
        )
    else:
        keys = "↑↓←→ | Enter | R Refresh | O Open | F File | ⌫ Del | Q Quit"
    return f"[grey50]{keys}[/grey50]"


def render(
    model: NavigationModel,
    *,
    now: Optional[datetime] = None,
    is_cleanable: Callable[[str], bool] = is_cleanable_dir,
    access_time: Callable[[str], Optional[datetime]] = last_access_time,
    home: Optional[str] = None,
) -> str:
    """
    Draw the dashboard for the current model state.

    Args:
        model: Navigation model to draw (read only)
        now: Reference time for unused-age labels
        is_cleanable: Predicate marking directories with a cleanup hint
        access_time: Lookup used when an entry has no last access time
        home: Home directory for ~ abbreviation

    Returns:
        Rich markup string
    """
    settings = model.settings
    now = now or datetime.now()
    spinner = settings.spinner_frames[model.spinner_frame % len(settings.spinner_frames)]
    lines: list[str] = [""]

    if model.in_overview:
        lines.append("[bold magenta]Analyze Disk[/bold magenta]")
        if model.overview_scanning and all(e.pending for e in model.entries):
            lines.append(f"[bold cyan]{spinner}[/bold cyan] Analyzing disk usage, please wait...")
            return "\n".join(lines)
        if model.overview_scanning or any(e.pending for e in model.entries):
            lines.append(
                f"[grey50]Select a location to explore:[/grey50]  [bold cyan]{spinner}[/bold cyan] Scanning..."
            )
        else:
            lines.append("[grey50]Select a location to explore:[/grey50]")
        lines.append("")
    else:
        header = (
            f"[bold magenta]Analyze Disk[/bold magenta]  "
            f"[grey50]{escape(display_path(model.path or '', home))}[/grey50]"
        )
        if not model.scanning:
            header += f"  |  Total: {humanize_bytes(model.total_size)}"
        lines.append(header)
        lines.append("")

    if model.deleting:
        lines.append(
            f"[bold cyan]{spinner}[/bold cyan] Deleting: "
            f"[yellow]{format_number(model.delete_count)} items[/yellow] removed, please wait..."
        )
        return "\n".join(lines)

    if model.scanning and not model.in_overview:
        snap = model.progress_snapshot()
        lines.append(
            f"[bold cyan]{spinner}[/bold cyan] Scanning: "
            f"[yellow]{format_number(snap.files)} files[/yellow], "
            f"[yellow]{format_number(snap.dirs)} dirs[/yellow], "
            f"[green]{humanize_bytes(snap.bytes)}[/green]"
        )
        if snap.current_path:
            short = truncate_middle(display_path(snap.current_path, home), 50)
            lines.append(f"[grey50]{escape(short)}[/grey50]")

    name_width = name_column_width(model.width, settings)

    if model.show_large_files:
        if not model.large_files:
            lines.append("  No large files found (>=100MB)")
        else:
            viewport = calculate_viewport(model.height, True, settings)
            max_size = max([1] + [f.size for f in model.large_files])
            start = max(0, model.large_offset)
            end = min(len(model.large_files), start + viewport)
            for idx in range(start, end):
                lines.append(
                    _large_file_row(
                        model.large_files[idx],
                        idx,
                        idx == model.large_selected,
                        max_size,
                        name_width,
                        home,
                        settings,
                    )
                )
    elif not model.entries:
        if not model.scanning:
            lines.append("  Empty directory")
    else:
        viewport = calculate_viewport(model.height, False, settings)
        max_size = max([1] + [e.size for e in model.entries])
        start = max(0, model.offset)
        end = min(len(model.entries), start + viewport)
        for idx in range(start, end):
            entry = model.entries[idx]
            lines.append(
                _entry_row(
                    entry,
                    idx,
                    idx == model.selected,
                    max_size,
                    model.total_size,
                    name_width,
                    _hint(entry, now, settings, is_cleanable, access_time),
                    settings,
                )
            )

    lines.append("")
    lines.append(_footer(model))

    if model.delete_confirm and model.delete_target is not None:
        target = model.delete_target
        lines.append("")
        lines.append(
            f"[red]Delete:[/red] {escape(target.name)} ({humanize_bytes(target.size)})  "
            "[grey50]Press ⌫ again  |  ESC cancel[/grey50]"
        )

    if model.status:
        lines.append(f"[yellow]{escape(model.status)}[/yellow]")

    return "\n".join(lines)
