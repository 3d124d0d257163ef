"""Host OS integration: open, reveal, metadata lookups and overview roots."""

import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from diskdive.settings import Settings

log = logging.getLogger(__name__)

# (label, path) pairs shown in the overview when nothing is configured
MACOS_OVERVIEW_ROOTS = [
    ("Home", "~"),
    ("App Library", "~/Library"),
    ("Applications", "/Applications"),
    ("System Library", "/Library"),
]

POSIX_OVERVIEW_ROOTS = [
    ("Home", "~"),
    ("Optional Software", "/opt"),
    ("System Programs", "/usr"),
    ("Variable Data", "/var"),
]


def expand_path(path: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


def is_macos() -> bool:
    return sys.platform == "darwin"


def _spawn(cmd: list[str]) -> None:
    """Start a command without waiting for it; failures are only logged."""
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        log.debug("Could not run %s: %s", cmd[0], e)


def open_path(path: str) -> None:
    """Open a path with the host's default application."""
    if is_macos():
        _spawn(["open", path])
    else:
        _spawn(["xdg-open", path])


def reveal_path(path: str) -> None:
    """Show a path in the host file manager."""
    if is_macos():
        _spawn(["open", "-R", path])
    else:
        _spawn(["xdg-open", os.path.dirname(path) or path])


def last_access_time(path: str) -> Optional[datetime]:
    """Return the last access time of a path, or None if it cannot be read."""
    try:
        return datetime.fromtimestamp(os.lstat(path).st_atime)
    except (OSError, ValueError, OverflowError):
        return None


def overview_roots(settings: Settings) -> list[tuple[str, str]]:
    """
    Labelled top-level locations for the overview.

    Configured paths win over the platform defaults. Locations that do not
    exist are left out.

    Args:
        settings: Active settings

    Returns:
        List of (label, absolute path) pairs
    """
    if settings.overview_paths:
        candidates = [(os.path.basename(p.rstrip("/")) or p, p) for p in settings.overview_paths]
    elif is_macos():
        candidates = MACOS_OVERVIEW_ROOTS
    else:
        candidates = POSIX_OVERVIEW_ROOTS

    roots = []
    seen: set[str] = set()
    for label, raw in candidates:
        path = str(expand_path(raw).resolve())
        if path in seen or not os.path.isdir(path):
            continue
        seen.add(path)
        roots.append((label, path))
    return roots
