"""Navigation state machine for the diskdive dashboard.

The model is owned by a single control loop. Keys, ticks and resizes are
dispatched to it directly; background scan and delete workers put messages
into the mailbox, which the control loop drains with ``pump``. Nothing else
mutates the model.
"""

import logging
import os
from queue import Empty, SimpleQueue
from typing import Callable, Optional

from diskdive.deleter import DeleteJob, DeletionExecutor
from diskdive.messages import (
    DeleteFinished,
    EntrySized,
    KeyPressed,
    ListingReady,
    Resized,
    ScanFinished,
    Tick,
)
from diskdive.models import Entry, HistoryFrame, LargeFile, ProgressSnapshot
from diskdive.scanner import Scanner, ScanJob
from diskdive.settings import DEFAULT_SETTINGS, Settings
from diskdive.system import open_path, reveal_path

log = logging.getLogger(__name__)

DELETE_KEYS = frozenset({"backspace", "delete"})


def calculate_viewport(term_height: int, large_files: bool, settings: Settings = DEFAULT_SETTINGS) -> int:
    """
    Number of list rows that fit in the terminal.

    Args:
        term_height: Terminal rows, 0 or less when unknown
        large_files: Whether the large files view (smaller footer) is shown
        settings: Active settings

    Returns:
        Row count between 1 and settings.max_viewport
    """
    if term_height <= 0:
        return min(settings.default_viewport, settings.max_viewport)
    reserved = settings.reserved_rows_large if large_files else settings.reserved_rows
    return max(1, min(settings.max_viewport, term_height - reserved))


def clamp_offset(offset: int, selected: int, count: int, viewport: int) -> int:
    """Scroll offset that keeps the selection visible and stays in range."""
    if selected < offset:
        offset = selected
    elif selected >= offset + viewport:
        offset = selected - viewport + 1
    return max(0, min(offset, max(0, count - viewport)))


def _without(entries, path: str, size: int) -> list[Entry]:
    """Copies of entries after ``path`` (of ``size`` bytes) was deleted."""
    result = []
    for entry in entries:
        if entry.path == path:
            continue
        if size > 0 and entry.size >= size and entry.contains(path):
            entry = entry.model_copy(update={"size": entry.size - size})
        result.append(entry)
    return result


def _outside(large_files, path: str) -> list[LargeFile]:
    prefix = path.rstrip(os.sep) + os.sep
    return [f for f in large_files if f.path != path and not f.path.startswith(prefix)]


class NavigationModel:
    """Dashboard state: listing, selection, history and overlay flags."""

    def __init__(
        self,
        scanner: Scanner,
        deleter: DeletionExecutor,
        mailbox: SimpleQueue,
        settings: Settings = DEFAULT_SETTINGS,
        start_path: Optional[str] = None,
        overview_roots: Optional[list[tuple[str, str]]] = None,
        opener: Callable[[str], None] = open_path,
        revealer: Callable[[str], None] = reveal_path,
    ) -> None:
        self.scanner = scanner
        self.deleter = deleter
        self.mailbox = mailbox
        self.settings = settings
        self.opener = opener
        self.revealer = revealer
        self.overview_roots = overview_roots

        # None means the overview of several top-level locations
        self.path: Optional[str] = os.path.abspath(start_path) if start_path else None
        self.entries: list[Entry] = []
        self.selected = 0
        self.offset = 0
        self.history: list[HistoryFrame] = []
        self.total_size = 0

        self.scanning = False
        self.deleting = False
        self.delete_target: Optional[Entry] = None
        self.delete_confirm = False

        self.show_large_files = False
        self.large_files: list[LargeFile] = []
        self.large_selected = 0
        self.large_offset = 0

        self.width = settings.default_width
        self.height = 0
        self.spinner_frame = 0
        self.status = ""
        self.quit_requested = False

        self._index: dict[str, int] = {}
        self._scan_job: Optional[ScanJob] = None
        self._delete_job: Optional[DeleteJob] = None
        self._deleting_entry: Optional[Entry] = None
        self._refresh_after_delete = False

        self._handlers = {
            KeyPressed: self._on_key,
            Tick: self._on_tick,
            Resized: self._on_resize,
            ListingReady: self._on_listing,
            EntrySized: self._on_entry_sized,
            ScanFinished: self._on_scan_finished,
            DeleteFinished: self._on_delete_finished,
        }

    # ------------------------------------------------------------------
    # Read-only views used by the renderer
    # ------------------------------------------------------------------

    @property
    def in_overview(self) -> bool:
        return self.path is None

    @property
    def overview_scanning(self) -> bool:
        return self.scanning and self.in_overview

    @property
    def delete_count(self) -> int:
        """Items removed so far by the running deletion."""
        return self._delete_job.counter.value if self._delete_job is not None else 0

    @property
    def scan_job(self) -> Optional[ScanJob]:
        return self._scan_job

    @property
    def delete_job(self) -> Optional[DeleteJob]:
        return self._delete_job

    def progress_snapshot(self) -> ProgressSnapshot:
        if self._scan_job is None:
            return ProgressSnapshot()
        return self._scan_job.progress.snapshot()

    def selected_entry(self) -> Optional[Entry]:
        if 0 <= self.selected < len(self.entries):
            return self.entries[self.selected]
        return None

    def selected_large_file(self) -> Optional[LargeFile]:
        if 0 <= self.large_selected < len(self.large_files):
            return self.large_files[self.large_selected]
        return None

    # ------------------------------------------------------------------
    # Control loop entry points
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin scanning the initial location."""
        self._start_scan()

    def pump(self) -> int:
        """Apply every message waiting in the mailbox; returns how many."""
        count = 0
        while True:
            try:
                message = self.mailbox.get_nowait()
            except Empty:
                return count
            self.dispatch(message)
            count += 1

    def dispatch(self, message) -> None:
        """Apply one message to the model."""
        handler = self._handlers.get(type(message))
        if handler is None:
            log.debug("Ignoring unknown message %r", message)
            return
        handler(message)

    def shutdown(self) -> None:
        """Stop all background work."""
        self._cancel_scan()
        if self._delete_job is not None:
            self._delete_job.cancel()
            self._delete_job = None
            self._deleting_entry = None
            self.deleting = False

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _cancel_scan(self) -> None:
        if self._scan_job is not None:
            self._scan_job.cancel()
            self._scan_job = None
        self.scanning = False

    def _start_scan(self) -> bool:
        """Scan the current location from an empty listing."""
        if self.deleting:
            self._refresh_after_delete = True
            self.status = "Refresh queued until the deletion finishes"
            return False

        self._cancel_scan()
        self.entries = []
        self._index = {}
        self.total_size = 0
        self.selected = 0
        self.offset = 0

        if self.in_overview:
            self._scan_job = self.scanner.scan_overview(self.overview_roots)
        else:
            self.large_files = []
            self.large_selected = 0
            self.large_offset = 0
            self.show_large_files = False
            self._scan_job = self.scanner.scan_directory(self.path)
        self.scanning = True
        return True

    def _resume_scan(self) -> None:
        """Size entries a restored listing left pending."""
        if not any(e.pending for e in self.entries):
            return
        self._scan_job = self.scanner.resume(self.entries, detail=not self.in_overview)
        self.scanning = True

    def _is_current_scan(self, job_id: int) -> bool:
        return self._scan_job is not None and self._scan_job.id == job_id

    def _reindex(self) -> None:
        self._index = {e.path: i for i, e in enumerate(self.entries)}

    def _on_listing(self, message: ListingReady) -> None:
        if not self._is_current_scan(message.job_id):
            return
        self.entries = list(message.entries)
        self._reindex()
        self.total_size = sum(e.size for e in self.entries if not e.pending)
        self._clamp()

    def _on_entry_sized(self, message: EntrySized) -> None:
        if not self._is_current_scan(message.job_id):
            return
        idx = self._index.get(message.path)
        if idx is None:
            return
        entry = self.entries[idx]
        if not entry.pending:
            return
        entry.size = message.size
        self.total_size += message.size

    def _on_scan_finished(self, message: ScanFinished) -> None:
        if not self._is_current_scan(message.job_id):
            return
        self._scan_job = None
        self.scanning = False

        if message.order:
            current = self.selected_entry()
            rank = {path: i for i, path in enumerate(message.order)}
            # Stable, so paths the scanner did not rank keep their place at the end
            self.entries.sort(key=lambda e: rank.get(e.path, len(rank)))
            self._reindex()
            if current is not None:
                self.selected = self._index.get(current.path, 0)

        if not self.in_overview:
            merged = {f.path: f for f in self.large_files}
            for item in message.large_files:
                merged[item.path] = item
            self.large_files = sorted(merged.values(), key=lambda f: f.size, reverse=True)[
                : self.settings.max_large_files
            ]
        self._clamp()

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def _disarm(self) -> None:
        self.delete_confirm = False
        self.delete_target = None

    def _delete_candidate(self) -> Optional[Entry]:
        if self.show_large_files:
            item = self.selected_large_file()
            if item is None:
                return None
            return Entry(name=item.name, path=item.path, is_dir=False, size=item.size)
        return self.selected_entry()

    def _press_delete(self) -> None:
        if self.in_overview:
            self._disarm()
            return
        target = self._delete_candidate()
        if target is None:
            self._disarm()
            return
        if self.scanning:
            self._disarm()
            self.status = "Wait for the scan to finish before deleting"
            return

        if self.delete_confirm and self.delete_target is not None and self.delete_target.path == target.path:
            self._start_delete()
            return

        self.delete_target = target
        self.delete_confirm = True

    def _start_delete(self) -> None:
        target = self.delete_target
        self._disarm()
        self._deleting_entry = target
        self.deleting = True
        self._delete_job = self.deleter.delete(target.path)
        log.debug("Deleting %s", target.path)

    def _on_delete_finished(self, message: DeleteFinished) -> None:
        if self._delete_job is None or self._delete_job.id != message.job_id:
            return
        target = self._deleting_entry
        tally = message.tally
        self._delete_job = None
        self._deleting_entry = None
        self.deleting = False

        if tally.succeeded:
            self.status = f"Deleted {target.name} ({tally.removed} items)"
        else:
            self.status = f"Deleted {tally.removed} items, {tally.failed} failed"

        if tally.succeeded and not target.pending:
            self._apply_deletion(target)
        else:
            # Sizes below the target are unknown now
            self._refresh_after_delete = True

        if self._refresh_after_delete:
            self._refresh_after_delete = False
            self._start_scan()

    def _apply_deletion(self, target: Entry) -> None:
        """Drop a deleted path from the listing, totals and history."""
        path, size = target.path, target.size

        if path in self._index:
            self.total_size -= size
        elif any(e.contains(path) and e.size >= size for e in self.entries):
            self.total_size -= size
        self.entries = _without(self.entries, path, size)
        self._reindex()
        self.large_files = _outside(self.large_files, path)

        self.history = [
            frame.model_copy(
                update={
                    "entries": tuple(_without(frame.entries, path, size)),
                    "large_files": tuple(_outside(frame.large_files, path)),
                }
            )
            for frame in self.history
        ]
        if self.show_large_files and not self.large_files:
            self.show_large_files = False
        self._clamp()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def _on_key(self, message: KeyPressed) -> None:
        key = message.key.lower() if len(message.key) == 1 else message.key

        if key == "q":
            self.shutdown()
            self.quit_requested = True
            return
        if self.deleting:
            if key == "r":
                self._start_scan()
            return

        self.status = ""
        if key in DELETE_KEYS:
            self._press_delete()
            return

        was_armed = self.delete_confirm
        self._disarm()

        if key == "escape":
            if not was_armed and self.show_large_files:
                self.show_large_files = False
        elif key == "up":
            self._move(-1)
        elif key == "down":
            self._move(1)
        elif key in ("enter", "right"):
            self._enter()
        elif key == "left":
            self._back()
        elif key == "r":
            self._start_scan()
        elif key == "t":
            self._toggle_large_files()
        elif key == "o":
            self._with_selected_path(self.opener)
        elif key == "f":
            self._with_selected_path(self.revealer)

    def _move(self, delta: int) -> None:
        if self.show_large_files:
            if self.large_files:
                self.large_selected = max(0, min(len(self.large_files) - 1, self.large_selected + delta))
        elif self.entries:
            self.selected = max(0, min(len(self.entries) - 1, self.selected + delta))
        self._clamp()

    def _enter(self) -> None:
        if self.show_large_files:
            return
        entry = self.selected_entry()
        if entry is None or not entry.is_dir:
            return

        self._cancel_scan()
        self.history.append(
            HistoryFrame.capture(self.path, self.entries, self.selected, self.offset, self.large_files)
        )
        self.path = entry.path
        self._start_scan()

    def _back(self) -> None:
        if self.show_large_files:
            self.show_large_files = False
            return
        if not self.history:
            return

        self._cancel_scan()
        frame = self.history.pop()
        self.path = frame.path
        self.entries = frame.restore_entries()
        self._reindex()
        self.selected = frame.selected
        self.offset = frame.offset
        self.large_files = frame.restore_large_files()
        self.large_selected = 0
        self.large_offset = 0
        self.total_size = sum(e.size for e in self.entries if not e.pending)
        self._clamp()
        self._resume_scan()

    def _toggle_large_files(self) -> None:
        if self.show_large_files:
            self.show_large_files = False
        elif self.in_overview:
            return
        elif self.large_files:
            self.show_large_files = True
            self._clamp()
        elif not self.scanning:
            self.status = "No large files found"

    def _with_selected_path(self, action: Callable[[str], None]) -> None:
        if self.show_large_files:
            item = self.selected_large_file()
            path = item.path if item else None
        else:
            entry = self.selected_entry()
            path = entry.path if entry else None
        if path:
            action(path)

    # ------------------------------------------------------------------
    # Ticks and layout
    # ------------------------------------------------------------------

    def _on_tick(self, message: Tick) -> None:
        self.spinner_frame = (self.spinner_frame + 1) % len(self.settings.spinner_frames)

    def _on_resize(self, message: Resized) -> None:
        self.width = message.width if message.width > 0 else self.settings.default_width
        self.height = max(0, message.height)
        self._clamp()

    def _clamp(self) -> None:
        """Pull selections and offsets back into range."""
        if self.entries:
            self.selected = max(0, min(self.selected, len(self.entries) - 1))
        else:
            self.selected = 0
        viewport = calculate_viewport(self.height, False, self.settings)
        self.offset = clamp_offset(self.offset, self.selected, len(self.entries), viewport)

        if self.large_files:
            self.large_selected = max(0, min(self.large_selected, len(self.large_files) - 1))
        else:
            self.large_selected = 0
        large_viewport = calculate_viewport(self.height, True, self.settings)
        self.large_offset = clamp_offset(
            self.large_offset, self.large_selected, len(self.large_files), large_viewport
        )
